"""Key/value persistence contract for session records and the subject list."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import SubjectRecord

LOGGER = logging.getLogger("synapse.store")

SUBJECTS_KEY = "subjects"
RECORD_PREFIX = "subjectData:"
PRACTICE_LOG_PREFIX = "practiceLog:"


def record_key(slug: str) -> str:
    return f"{RECORD_PREFIX}{slug}"


@runtime_checkable
class SessionStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySessionStore:
    """Dictionary-backed store; values are deep-copied in and out."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


def list_subjects(store: SessionStore) -> List[SubjectRecord]:
    """Read the subject list; malformed or missing data reads as empty."""
    raw = store.get(SUBJECTS_KEY)
    if not isinstance(raw, list):
        return []
    subjects: List[SubjectRecord] = []
    for item in raw:
        if isinstance(item, SubjectRecord):
            subjects.append(item)
        elif isinstance(item, dict) and item.get("slug") and item.get("name") is not None:
            subjects.append(SubjectRecord.model_validate(item))
        else:
            LOGGER.debug("Ignoring malformed subject entry", extra={"entry": item})
    return subjects


def save_subjects(store: SessionStore, subjects: List[SubjectRecord]) -> None:
    store.set(SUBJECTS_KEY, [subject.model_dump(exclude_defaults=True) for subject in subjects])


def load_record(store: SessionStore, slug: str) -> Dict[str, Any] | None:
    raw = store.get(record_key(slug))
    return raw if isinstance(raw, dict) else None


def save_record(store: SessionStore, slug: str, record: Dict[str, Any]) -> None:
    store.set(record_key(slug), record)


def load_practice_log(store: SessionStore, slug: str) -> List[Dict[str, Any]]:
    """Practice entries for ``slug``; anything but a list of objects reads as empty."""
    raw = store.get(f"{PRACTICE_LOG_PREFIX}{slug}")
    if not isinstance(raw, list):
        return []
    return [entry for entry in raw if isinstance(entry, dict)]


def save_practice_log(store: SessionStore, slug: str, entries: List[Dict[str, Any]]) -> None:
    store.set(f"{PRACTICE_LOG_PREFIX}{slug}", entries)


__all__ = [
    "InMemorySessionStore",
    "SessionStore",
    "PRACTICE_LOG_PREFIX",
    "list_subjects",
    "load_practice_log",
    "load_record",
    "record_key",
    "save_practice_log",
    "save_record",
    "save_subjects",
]
