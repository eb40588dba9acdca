"""Free-text date parsing for exam deadlines.

Parsing runs an explicitly ordered list of ``DateHeuristic`` entries; the
first one that yields a valid calendar date wins. Every heuristic is a pure
function of the input text and a reference date so each can be exercised on
its own.
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

LOGGER = logging.getLogger("synapse.dates")

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_MONTH_NAME = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

Resolver = Callable[[re.Match, date], Optional[date]]


@dataclass(frozen=True, slots=True)
class DateHeuristic:
    priority: int
    label: str
    pattern: re.Pattern
    resolve: Resolver

    def apply(self, text: str, today: date) -> Optional[date]:
        match = self.pattern.search(text)
        if match is None:
            return None
        try:
            return self.resolve(match, today)
        except (OverflowError, ValueError):
            LOGGER.debug("Date offset out of range", extra={"heuristic": self.label, "text": text})
            return None


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(raw: str) -> int:
    year = int(raw)
    if len(raw) == 2:
        return 2000 + year if year < 50 else 1900 + year
    return year


def _roll_forward(candidate: Optional[date], today: date) -> Optional[date]:
    """Move a past date to the same day next year."""
    if candidate is None or candidate >= today:
        return candidate
    return _safe_date(candidate.year + 1, candidate.month, candidate.day)


def add_months(start: date, months: int) -> date:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _iso(match: re.Match, today: date) -> Optional[date]:
    return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def _days(match: re.Match, today: date) -> Optional[date]:
    return today + timedelta(days=int(match.group(1)))


def _weeks(match: re.Match, today: date) -> Optional[date]:
    return today + timedelta(weeks=int(match.group(1)))


def _months(match: re.Match, today: date) -> Optional[date]:
    return add_months(today, int(match.group(1)))


def _relative_word(match: re.Match, today: date) -> Optional[date]:
    word = match.group(1).lower()
    offsets = {"today": 0, "tomorrow": 1, "day after tomorrow": 2, "next week": 7}
    return today + timedelta(days=offsets[" ".join(word.split())])


def _weekday(match: re.Match, today: date) -> Optional[date]:
    target = WEEKDAYS.index(match.group(1).lower())
    ahead = (target - today.weekday()) % 7 or 7
    return today + timedelta(days=ahead)


def _strict_day_month(match: re.Match, today: date) -> Optional[date]:
    day, month = int(match.group(1)), int(match.group(2))
    return _roll_forward(_safe_date(_expand_year(match.group(3)), month, day), today)


def _month_day(match: re.Match, today: date) -> Optional[date]:
    month = MONTHS[match.group(1)[:3].lower()]
    day = int(match.group(2))
    if match.group(3):
        return _safe_date(int(match.group(3)), month, day)
    return _roll_forward(_safe_date(today.year, month, day), today)


def _day_month(match: re.Match, today: date) -> Optional[date]:
    day = int(match.group(1))
    month = MONTHS[match.group(2)[:3].lower()]
    if match.group(3):
        return _safe_date(int(match.group(3)), month, day)
    return _roll_forward(_safe_date(today.year, month, day), today)


def _ambiguous_numeric(match: re.Match, today: date) -> Optional[date]:
    first, second = int(match.group(1)), int(match.group(2))
    year = _expand_year(match.group(3))
    if first > 12:
        candidate = _safe_date(year, second, first)
    elif second > 12:
        candidate = _safe_date(year, first, second)
    else:
        day_first = _safe_date(year, second, first)
        month_first = _safe_date(year, first, second)
        options = [option for option in (day_first, month_first) if option is not None]
        if not options:
            return None
        candidate = min(options, key=lambda option: abs((option - today).days))
    return _roll_forward(candidate, today)


DEFAULT_HEURISTICS: Tuple[DateHeuristic, ...] = (
    DateHeuristic(10, "iso", re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})\s*$"), _iso),
    DateHeuristic(20, "bare-days", re.compile(r"^\s*(\d+)\s*$"), _days),
    DateHeuristic(
        30,
        "strict-day-month-year",
        re.compile(r"^\s*(\d{1,2})[/.](\d{1,2})[/.](\d{2}|\d{4})\s*$"),
        _strict_day_month,
    ),
    DateHeuristic(40, "days", re.compile(r"(\d+)\s*days?\b", re.IGNORECASE), _days),
    DateHeuristic(50, "weeks", re.compile(r"(\d+)\s*weeks?\b", re.IGNORECASE), _weeks),
    DateHeuristic(60, "months", re.compile(r"(\d+)\s*months?\b", re.IGNORECASE), _months),
    DateHeuristic(
        70,
        "relative-word",
        re.compile(r"\b(day\s+after\s+tomorrow|tomorrow|today|next\s+week)\b", re.IGNORECASE),
        _relative_word,
    ),
    DateHeuristic(
        75,
        "weekday",
        re.compile(r"\b(" + "|".join(WEEKDAYS) + r")\b", re.IGNORECASE),
        _weekday,
    ),
    DateHeuristic(
        80,
        "month-day",
        re.compile(r"\b" + _MONTH_NAME + r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s+(\d{4}))?", re.IGNORECASE),
        _month_day,
    ),
    DateHeuristic(
        85,
        "day-month",
        re.compile(
            r"\b(\d{1,2})(?:st|nd|rd|th)?\s+(?:of\s+)?" + _MONTH_NAME + r"\b\.?(?:,?\s+(\d{4}))?",
            re.IGNORECASE,
        ),
        _day_month,
    ),
    DateHeuristic(
        90,
        "numeric-embedded",
        re.compile(r"\b(\d{1,2})[/.](\d{1,2})[/.](\d{2}|\d{4})\b"),
        _ambiguous_numeric,
    ),
)


class NaturalDateParser:
    """Apply date heuristics in ascending priority order."""

    def __init__(self, heuristics: Sequence[DateHeuristic] | None = None) -> None:
        chosen = DEFAULT_HEURISTICS if heuristics is None else heuristics
        self.heuristics: List[DateHeuristic] = sorted(chosen, key=lambda heuristic: heuristic.priority)

    def match(self, text: str | None, *, today: date | None = None) -> Optional[Tuple[date, str]]:
        if not text or not text.strip():
            return None
        reference = today or date.today()
        for heuristic in self.heuristics:
            result = heuristic.apply(text, reference)
            if result is not None:
                return result, heuristic.label
        return None

    def parse_date(self, text: str | None, *, today: date | None = None) -> Optional[date]:
        matched = self.match(text, today=today)
        return matched[0] if matched else None

    def parse(self, text: str | None, *, today: date | None = None) -> Optional[str]:
        parsed = self.parse_date(text, today=today)
        return parsed.isoformat() if parsed else None


_DEFAULT_PARSER = NaturalDateParser()


def parse_natural_date(text: str | None, *, today: date | None = None) -> Optional[str]:
    """Return an ISO ``YYYY-MM-DD`` string, or ``None`` when nothing matches."""
    return _DEFAULT_PARSER.parse(text, today=today)


__all__ = [
    "DEFAULT_HEURISTICS",
    "DateHeuristic",
    "NaturalDateParser",
    "add_months",
    "parse_natural_date",
]
