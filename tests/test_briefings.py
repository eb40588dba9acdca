from __future__ import annotations

from synapse_core.dispatch.briefings import find_exam_snipe, render_exam_snipe, render_practice_log

HISTORY = [
    {"courseName": "", "slug": "untitled", "results": {"totalExams": 1}},
    {"courseName": "Signals and Systems", "slug": "sigsys", "results": {"totalExams": 3}},
    {"courseName": "Control Theory", "slug": "control", "results": {"totalExams": 2}},
]


def test_find_exam_snipe_matches_names_before_slugs() -> None:
    assert find_exam_snipe(HISTORY, "Signals")["slug"] == "sigsys"
    assert find_exam_snipe(HISTORY, "my Control Theory course")["slug"] == "control"
    assert find_exam_snipe(HISTORY, "control")["slug"] == "control"
    assert find_exam_snipe(HISTORY, "sigsys")["slug"] == "sigsys"
    assert find_exam_snipe(HISTORY, "Quantum Optics") is None
    assert find_exam_snipe(HISTORY, "   ") is None


def test_render_exam_snipe_lists_concepts_and_questions() -> None:
    exam = {
        "courseName": "Control Theory",
        "results": {
            "totalExams": 2,
            "patternAnalysis": "Root locus every year",
            "concepts": [{"name": "Root locus", "description": "Sketching rules"}, {}],
            "commonQuestions": [{"question": "Sketch the root locus", "examCount": 2, "averagePoints": 7.5}],
        },
    }

    briefing = render_exam_snipe(exam, "control")

    assert briefing.split("\n\n") == [
        "DETAILED EXAM SNIPE DATA FOR Control Theory:",
        "Total exams analyzed: 2",
        "Pattern analysis: Root locus every year",
        "STUDY ORDER (priority, all concepts):\n1. Root locus - Sketching rules\n2. Concept 2",
        'ALL COMMON QUESTIONS:\n1. "Sketch the root locus" (appears in 2 exams, avg 7.5 pts)',
    ]


def test_render_practice_log_caps_recent_sessions_and_previews() -> None:
    long_question = "◊" + "x" * 120
    entries = [{"topic": "Limits", "grade": 5, "timestamp": index, "question": long_question} for index in range(12)]
    entries.append({"grade": "not a number"})

    briefing = render_practice_log("calculus", entries)

    assert "Limits:\n  - Questions practiced: 12\n  - Average grade: 5.0/10" in briefing
    assert "General:\n  - Questions practiced: 1\n  - Average grade: 0.0/10" in briefing
    recent = briefing.split("RECENT PRACTICE SESSIONS:\n")[1].splitlines()
    assert len([line for line in recent if not line.startswith("   Q:")]) == 10
    assert f"   Q: {'x' * 80}..." in recent
