from __future__ import annotations

import pytest

from synapse_core.directives.heuristics import (
    COURSE_NAME_HEURISTICS,
    CourseNameExtractor,
    TextHeuristic,
    extract_quick_learn_query,
    mentioned_subject,
    mentioned_subjects,
)
from synapse_core.directives.slugs import SlugResolver
from synapse_core.models import SubjectRecord

SUBJECTS = [
    SubjectRecord(name="Linear Algebra", slug="linear-algebra"),
    SubjectRecord(name="Organic Chemistry", slug="organic-chemistry"),
    SubjectRecord(name="New Course", slug="new-course", is_placeholder=True),
]

HEURISTICS = {heuristic.label: heuristic for heuristic in COURSE_NAME_HEURISTICS}


def test_heuristics_are_ordered_by_priority() -> None:
    priorities = [heuristic.priority for heuristic in CourseNameExtractor().heuristics]

    assert priorities == sorted(priorities)
    assert CourseNameExtractor().heuristics[0].label == "assistant.known-subject"


def test_mentioned_subject_prefers_longest_name_and_skips_placeholders() -> None:
    subjects = SUBJECTS + [SubjectRecord(name="Algebra", slug="algebra")]

    assert mentioned_subject("Your Linear Algebra exam is set.", subjects) == "Linear Algebra"
    assert mentioned_subject("Let's start a new course today.", subjects) is None


@pytest.mark.parametrize(
    ("label", "text", "expected"),
    [
        ("assistant.for-phrase", "Exam date set for Organic Chem to May 4.", "Organic Chem"),
        ("assistant.capitalized", "Thermodynamics exam moved to Friday.", "Thermodynamics"),
        ("user.after-duration", "my exam is in 3 weeks linear algebra", "linear algebra"),
        ("user.possessive", "when is my Organic Chemistry exam", "Organic Chemistry"),
        ("user.for-phrase", "set the date for Linear Algebra to friday", "Linear Algebra"),
    ],
)
def test_individual_heuristics(label: str, text: str, expected: str) -> None:
    assert HEURISTICS[label].extract(text, SUBJECTS) == expected


def test_extract_recovers_known_course_from_user_text() -> None:
    extractor = CourseNameExtractor()

    recovered = extractor.extract(
        SlugResolver(SUBJECTS),
        assistant_text="Sure!",
        user_text="open my Linear Algebra course",
    )

    assert recovered == ("linear-algebra", "user.known-subject")


def test_extract_prefers_assistant_text() -> None:
    recovered = CourseNameExtractor().extract(
        SlugResolver(SUBJECTS),
        assistant_text="I've set the exam for Organic Chemistry to next Friday.",
        user_text="my linear algebra exam is next friday",
    )

    assert recovered == ("organic-chemistry", "assistant.known-subject")


def test_extract_fails_closed_on_unknown_course() -> None:
    recovered = CourseNameExtractor().extract(
        SlugResolver(SUBJECTS),
        assistant_text="Setting the exam for Quantum Physics to May 3.",
        user_text="",
    )

    assert recovered is None


def test_several_mentioned_subjects_prefer_the_bound_one() -> None:
    subjects = SUBJECTS + [SubjectRecord(name="Physics", slug="physics")]
    text = "Setting the exam date for Physics. After that we can revisit Linear Algebra."

    assert mentioned_subjects(text, subjects) == ["Physics", "Linear Algebra"]
    assert mentioned_subject(text, subjects) == "Physics"
    assert mentioned_subject("Physics and Linear Algebra both look good.", subjects) is None


def test_extract_skips_text_that_names_several_courses() -> None:
    subjects = SUBJECTS + [SubjectRecord(name="Physics", slug="physics")]

    recovered = CourseNameExtractor().extract(
        SlugResolver(subjects),
        assistant_text="Physics is fun, but Linear Algebra is harder.",
        user_text="set my exam in 5 days",
    )

    assert recovered is None


def test_custom_heuristic_list() -> None:
    always = TextHeuristic(1, "fixed", "user", lambda text, subjects: "Organic Chemistry")
    extractor = CourseNameExtractor([always])

    assert extractor.extract(SlugResolver(SUBJECTS), user_text="anything") == ("organic-chemistry", "fixed")
    assert extractor.extract(SlugResolver(SUBJECTS), user_text="   ") is None


@pytest.mark.parametrize(
    ("utterance", "expected"),
    [
        ("Can you teach me about binary search trees please", "binary search trees"),
        ("I want a lesson on graph coloring", "graph coloring"),
        ("topic: dynamic programming", "dynamic programming"),
        ("photosynthesis please", "photosynthesis"),
        ("", ""),
    ],
)
def test_extract_quick_learn_query(utterance: str, expected: str) -> None:
    assert extract_quick_learn_query(utterance) == expected
