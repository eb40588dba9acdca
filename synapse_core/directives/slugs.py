"""Map loosely specified course references onto course slugs."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence

from synapse_core.models import SubjectRecord

LOGGER = logging.getLogger("synapse.dispatch")

SLUG_PATTERN = re.compile(r"^[a-z0-9\-_]+$")
_DISALLOWED = re.compile(r"[^a-zA-Z0-9\-_]")
_SLUGIFY_STRIP = re.compile(r"[^a-z0-9\s-]")


def normalize_slug(value: str | None) -> str:
    """Trim, drop characters outside ``[a-zA-Z0-9-_]`` and lowercase."""
    if not value:
        return ""
    return _DISALLOWED.sub("", value.strip()).lower()


def slugify(name: str | None, default: str = "subject") -> str:
    """Derive a slug from a display name; empty results fall back to ``default``."""
    lowered = (name or "").lower().strip()
    lowered = _SLUGIFY_STRIP.sub("", lowered)
    lowered = re.sub(r"\s+", "-", lowered)
    lowered = re.sub(r"-+", "-", lowered).strip("-")
    return lowered or default


def unique_slug(base: str, existing: Iterable[str]) -> str:
    taken = set(existing)
    if base not in taken:
        return base
    counter = 2
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"


class SlugResolver:
    """Resolve a slug-or-name against the current subject list.

    ``resolve`` is permissive and is used for navigation; ``resolve_known``
    only ever answers with a slug that exists and is used before writes.
    """

    def __init__(self, subjects: Sequence[SubjectRecord] | None = None, *, min_match_length: int = 3) -> None:
        self.subjects: List[SubjectRecord] = list(subjects or [])
        self.min_match_length = min_match_length

    @property
    def slugs(self) -> List[str]:
        return [subject.slug for subject in self.subjects]

    def is_known(self, slug: str | None) -> bool:
        return bool(slug) and slug in self.slugs

    def find(self, slug: str) -> Optional[SubjectRecord]:
        return next((subject for subject in self.subjects if subject.slug == slug), None)

    def match_name(self, value: str) -> Optional[SubjectRecord]:
        """Exact case-insensitive name match, then bidirectional substring match."""

        query = value.strip().lower()
        if not query:
            return None
        for subject in self.subjects:
            if subject.name.strip().lower() == query:
                return subject
        if len(query) < self.min_match_length:
            return None
        for subject in self.subjects:
            name = subject.name.strip().lower()
            if len(name) < self.min_match_length:
                continue
            if query in name or name in query:
                return subject
        return None

    def resolve(self, value: str | None) -> Optional[str]:
        if value is None:
            return None
        trimmed = value.strip()
        if not trimmed:
            return None
        if SLUG_PATTERN.match(trimmed):
            return normalize_slug(trimmed)
        subject = self.match_name(trimmed)
        if subject is not None:
            return subject.slug
        return normalize_slug(trimmed) or None

    def resolve_known(self, value: str | None) -> Optional[str]:
        if not value or not value.strip():
            return None
        normalized = normalize_slug(value)
        if self.is_known(normalized):
            return normalized
        subject = self.match_name(value)
        if subject is not None:
            return subject.slug
        derived = slugify(value, default="")
        if derived and self.is_known(derived):
            return derived
        return None


__all__ = [
    "SLUG_PATTERN",
    "SlugResolver",
    "normalize_slug",
    "slugify",
    "unique_slug",
]
