"""Best-effort extraction of course names and quick-learn topics from prose.

These are guesses, not protocol. Each heuristic is tagged with a priority and
a label and is tried in ascending priority order. Course-name candidates are
only accepted once they resolve to a subject that already exists, so a miss
ends in a no-op rather than a write against the wrong course.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from synapse_core.models import SubjectRecord

from .slugs import SlugResolver

LOGGER = logging.getLogger("synapse.dispatch")

Source = Literal["assistant", "user"]
Extractor = Callable[[str, Sequence[SubjectRecord]], Optional[str]]

_CAPITAL = "A-ZÅÄÖÆØÜ"
_NAME_WORDS = rf"[{_CAPITAL}][\w'&+-]*(?:[ \t]+[\w'&+-]+)*?"
_TRAILING_NOISE = re.compile(r"\s+(?:exam|to|is|on|date)$", re.IGNORECASE)
_STOPWORDS = {"set", "the", "to", "for", "exam", "date", "my", "course"}

_FOR_PHRASE = re.compile(
    rf"(?i:setting.*?for|for|exam|course|subject)\s+({_NAME_WORDS})(?=\s+(?i:to|exam|is|on)\b|[.,!?]|\s*$)"
)
_CAPITALIZED_BEFORE_KEYWORD = re.compile(
    rf"\b([{_CAPITAL}][\w'&+-]{{2,}}(?:[ \t]+[\w'&+-]+)*?)\s+(?i:exam|to|is|on)\b"
)
_AFTER_DURATION = re.compile(r"(?i:days?|weeks?|months?)\s+(\w[\w\s'&+-]{2,}?)\s*[.!?]*$")
_POSSESSIVE_COURSE = re.compile(r"\b(?:my|the|our)\s+([\w][\w\s'&+-]*?)\s+(?:course|class|subject|exam)\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class TextHeuristic:
    priority: int
    label: str
    source: Source
    extract: Extractor


def _clean_candidate(raw: str | None) -> Optional[str]:
    if not raw:
        return None
    candidate = _TRAILING_NOISE.sub("", raw.strip()).strip(" \t.,!?")
    if len(candidate) < 3 or candidate.lower() in _STOPWORDS:
        return None
    return candidate


def _regex_extractor(pattern: re.Pattern) -> Extractor:
    def _extract(text: str, subjects: Sequence[SubjectRecord]) -> Optional[str]:
        for match in pattern.finditer(text):
            candidate = _clean_candidate(match.group(1))
            if candidate:
                return candidate
        return None

    return _extract


def mentioned_subjects(text: str, subjects: Sequence[SubjectRecord]) -> List[str]:
    """Known subject names mentioned as whole words, in order of first mention.

    A name only seen inside a longer mentioned name ("Algebra" in "Linear
    Algebra") does not count.
    """

    lowered = text.lower()
    spans: List[Tuple[int, int, str]] = []
    for subject in subjects:
        name = subject.name.strip()
        if len(name) < 3 or subject.is_placeholder:
            continue
        for match in re.finditer(rf"(?<!\w){re.escape(name.lower())}(?!\w)", lowered):
            spans.append((match.start(), match.end(), name))
    kept = [
        (start, end, name)
        for start, end, name in spans
        if not any(
            other_start <= start and end <= other_end and (other_end - other_start) > (end - start)
            for other_start, other_end, _ in spans
        )
    ]
    names: List[str] = []
    for _, _, name in sorted(kept):
        if name not in names:
            names.append(name)
    return names


def _is_bound(text: str, name: str) -> bool:
    escaped = re.escape(name)
    pattern = rf"\bfor\s+(?:the\s+|my\s+|your\s+)?{escaped}(?!\w)|(?<!\w){escaped}\s+(?:exam|test|final|midterm)\b"
    return re.search(pattern, text, re.IGNORECASE) is not None


def mentioned_subject(text: str, subjects: Sequence[SubjectRecord]) -> Optional[str]:
    """Return the one known subject ``text`` is about, or ``None`` when that is unclear.

    With several subjects mentioned, the one bound by "for X" or "X exam" wins;
    otherwise the text is ambiguous and no subject is returned.
    """

    names = mentioned_subjects(text, subjects)
    if len(names) <= 1:
        return names[0] if names else None
    bound = [name for name in names if _is_bound(text, name)]
    if len(bound) == 1:
        return bound[0]
    LOGGER.debug("Several known subjects mentioned; none chosen", extra={"candidates": names})
    return None


COURSE_NAME_HEURISTICS: Tuple[TextHeuristic, ...] = (
    TextHeuristic(10, "assistant.known-subject", "assistant", mentioned_subject),
    TextHeuristic(20, "assistant.for-phrase", "assistant", _regex_extractor(_FOR_PHRASE)),
    TextHeuristic(30, "assistant.capitalized", "assistant", _regex_extractor(_CAPITALIZED_BEFORE_KEYWORD)),
    TextHeuristic(40, "user.known-subject", "user", mentioned_subject),
    TextHeuristic(50, "user.after-duration", "user", _regex_extractor(_AFTER_DURATION)),
    TextHeuristic(60, "user.possessive", "user", _regex_extractor(_POSSESSIVE_COURSE)),
    TextHeuristic(70, "user.for-phrase", "user", _regex_extractor(_FOR_PHRASE)),
)


class CourseNameExtractor:
    """Recover a verified slug from conversation text when a directive lacks one."""

    def __init__(self, heuristics: Sequence[TextHeuristic] | None = None) -> None:
        chosen = COURSE_NAME_HEURISTICS if heuristics is None else heuristics
        self.heuristics: List[TextHeuristic] = sorted(chosen, key=lambda heuristic: heuristic.priority)

    def candidates(self, *, assistant_text: str = "", user_text: str = "", subjects: Sequence[SubjectRecord] = ()):
        """Yield ``(heuristic, candidate)`` pairs; a source naming several courses yields nothing."""

        texts = {"assistant": assistant_text, "user": user_text}
        ambiguous = {
            source
            for source, text in texts.items()
            if text and len(mentioned_subjects(text, subjects)) > 1 and mentioned_subject(text, subjects) is None
        }
        for source in sorted(ambiguous):
            LOGGER.info("Ambiguous course mention; not recovering from it", extra={"source": source})
        for heuristic in self.heuristics:
            text = texts[heuristic.source]
            if not text or not text.strip() or heuristic.source in ambiguous:
                continue
            candidate = heuristic.extract(text, subjects)
            if candidate:
                yield heuristic, candidate

    def extract(
        self,
        resolver: SlugResolver,
        *,
        assistant_text: str = "",
        user_text: str = "",
    ) -> Optional[Tuple[str, str]]:
        """Return ``(slug, heuristic_label)`` for the first candidate naming a known course."""

        for heuristic, candidate in self.candidates(
            assistant_text=assistant_text, user_text=user_text, subjects=resolver.subjects
        ):
            slug = resolver.resolve_known(candidate)
            if slug:
                LOGGER.info(
                    "Recovered course from text",
                    extra={"heuristic": heuristic.label, "candidate": candidate, "slug": slug},
                )
                return slug, heuristic.label
            LOGGER.debug("Discarded unverified course candidate", extra={"heuristic": heuristic.label, "candidate": candidate})
        return None


_QUICK_LEARN_PATTERNS: Tuple[Tuple[int, str, re.Pattern], ...] = (
    (
        10,
        "request-about",
        re.compile(
            r"(?:teach|explain|show|create|make|generate|do).*?(?:about|on|for|regarding|concerning)\s+(.+?)(?:\s+please|\s*$)",
            re.IGNORECASE,
        ),
    ),
    (
        20,
        "learn-about",
        re.compile(
            r"(?:quick learn|lesson|learn).*?(?:about|on|for|regarding|concerning)\s+(.+?)(?:\s+please|\s*$)",
            re.IGNORECASE,
        ),
    ),
    (30, "labelled-topic", re.compile(r"(?:subject|topic).*?:\s*(.+?)(?:\s+please|\s*$)", re.IGNORECASE)),
)
_LEADING_FILLER = re.compile(
    r"^(?:please|can you|could you|i want|i need|i'd like|create|make|generate|do|teach|explain|show)\s+",
    re.IGNORECASE,
)
_TRAILING_FILLER = re.compile(r"\s+(?:please|for me|now|quickly)$", re.IGNORECASE)


def extract_quick_learn_query(user_text: str | None) -> str:
    """Derive a lesson topic from the user's request; '' when there is nothing to use."""

    if not user_text or not user_text.strip():
        return ""
    text = user_text.strip()
    for _, label, pattern in _QUICK_LEARN_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            LOGGER.debug("Quick-learn topic extracted", extra={"heuristic": label})
            return match.group(1).strip().rstrip("?.!")
    stripped = _TRAILING_FILLER.sub("", _LEADING_FILLER.sub("", text))
    return stripped.strip().rstrip("?.!")


__all__ = [
    "COURSE_NAME_HEURISTICS",
    "CourseNameExtractor",
    "TextHeuristic",
    "extract_quick_learn_query",
    "mentioned_subject",
    "mentioned_subjects",
]
