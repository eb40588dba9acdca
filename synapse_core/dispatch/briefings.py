"""Plain-text briefings handed back to the assistant after a fetch action.

``fetch_practice_logs`` and ``fetch_exam_snipe_data`` change no state. They
gather what the model asked for and the chat session feeds the text back as a
system message before asking the model to continue.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from synapse_core.directives.slugs import SLUG_PATTERN

QUESTION_PREVIEW_CHARS = 80
RECENT_SESSIONS = 10
FOLLOW_UP_PROMPT = "What did you find?"

_MARKUP = re.compile(r"<[^>]*>")


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _grade(entry: Mapping[str, Any]) -> float:
    return _number(entry.get("grade") or entry.get("rating"))


def _entry_date(entry: Mapping[str, Any]) -> str:
    stamp = _number(entry.get("timestamp"))
    if not stamp:
        return "Unknown date"
    try:
        return datetime.fromtimestamp(stamp / 1000, tz=timezone.utc).date().isoformat()
    except (OverflowError, OSError, ValueError):
        return "Unknown date"


def _question_preview(question: Any) -> str:
    preview = _MARKUP.sub("", str(question).replace("◊", ""))[:QUESTION_PREVIEW_CHARS]
    return f"{preview}..." if len(preview) >= QUESTION_PREVIEW_CHARS else preview


def render_practice_log(label: str, entries: Sequence[Mapping[str, Any]]) -> str:
    """Per-topic counts and average grades, most practiced first, then the latest sessions."""

    topics: Dict[str, List[Mapping[str, Any]]] = {}
    for entry in entries:
        topics.setdefault(entry.get("topic") or "General", []).append(entry)

    lines = [f"PRACTICE LOG DATA FOR {label.upper()}:", f"Total practice entries: {len(entries)}", ""]
    for topic, topic_entries in sorted(topics.items(), key=lambda item: len(item[1]), reverse=True):
        average = sum(_grade(entry) for entry in topic_entries) / len(topic_entries)
        lines.append(f"{topic}:")
        lines.append(f"  - Questions practiced: {len(topic_entries)}")
        lines.append(f"  - Average grade: {average:.1f}/10")
        lines.append("")

    recent = sorted(entries, key=lambda entry: _number(entry.get("timestamp")), reverse=True)[:RECENT_SESSIONS]
    if recent:
        lines.append("RECENT PRACTICE SESSIONS:")
        for index, entry in enumerate(recent, start=1):
            topic = entry.get("topic") or "General"
            lines.append(f"{index}. [{_entry_date(entry)}] {topic} - Grade: {_grade(entry):g}/10")
            if entry.get("question"):
                lines.append(f"   Q: {_question_preview(entry['question'])}")
    return "\n".join(lines)


def find_exam_snipe(history: Sequence[Mapping[str, Any]], query: str) -> Optional[Mapping[str, Any]]:
    """Match by course name first (either side containing the other), then by exact slug."""

    wanted = query.strip().lower()
    if not wanted:
        return None
    for exam in history:
        course = str(exam.get("courseName") or "").strip().lower()
        if course and (course == wanted or course in wanted or wanted in course):
            return exam
    if SLUG_PATTERN.match(wanted):
        for exam in history:
            if str(exam.get("slug") or "").strip().lower() == wanted:
                return exam
    return None


def render_exam_snipe(exam: Mapping[str, Any], label: str) -> str:
    results = exam.get("results") or {}
    sections = [
        f"DETAILED EXAM SNIPE DATA FOR {exam.get('courseName') or label.upper()}:",
        f"Total exams analyzed: {results.get('totalExams') or 0}",
    ]
    if results.get("gradeInfo"):
        sections.append(f"Grade info: {results['gradeInfo']}")
    if results.get("patternAnalysis"):
        sections.append(f"Pattern analysis: {results['patternAnalysis']}")

    concepts = results.get("concepts")
    if isinstance(concepts, list) and concepts:
        order = []
        for index, concept in enumerate(concepts, start=1):
            concept = concept if isinstance(concept, Mapping) else {}
            name = concept.get("name") or f"Concept {index}"
            description = f" - {concept['description']}" if concept.get("description") else ""
            order.append(f"{index}. {name}{description}")
        sections.append("STUDY ORDER (priority, all concepts):\n" + "\n".join(order))

    questions = results.get("commonQuestions")
    if isinstance(questions, list) and questions:
        listed = []
        for index, question in enumerate(questions, start=1):
            question = question if isinstance(question, Mapping) else {}
            listed.append(
                f'{index}. "{question.get("question") or ""}" '
                f"(appears in {question.get('examCount') or 0} exams, "
                f"avg {_number(question.get('averagePoints')):g} pts)"
            )
        sections.append("ALL COMMON QUESTIONS:\n" + "\n".join(listed))
    return "\n\n".join(sections)


__all__ = [
    "FOLLOW_UP_PROMPT",
    "find_exam_snipe",
    "render_exam_snipe",
    "render_practice_log",
]
