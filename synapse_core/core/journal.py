"""Append-only JSONL journal of dispatched actions and course-creation phases.

Every line is one ``JournalEntry``. Dispatch entries carry the action name and
its outcome status; creation entries carry the pipeline phase and the slug the
phase touched. The file is only ever appended to, so a crashed session still
leaves a readable trail for ``inspect_directives``-style tooling.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

EntryKind = Literal["dispatch", "creation"]


class JournalEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    kind: EntryKind
    stage: str = Field(..., description="Action name for dispatch entries, 'creation.<phase>' otherwise.")
    status: Literal["ok", "skipped", "failed"] = "ok"
    slug: Optional[str] = None
    message: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class ActivityJournal:
    def __init__(self, output_path: Path):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def record_action(
        self,
        action: str,
        status: str,
        *,
        detail: str = "",
        data: Mapping[str, Any] | None = None,
    ) -> JournalEntry:
        """Journal one dispatched action; ``slug`` is lifted out of ``data`` when present."""
        payload = dict(data or {})
        entry = JournalEntry(
            kind="dispatch",
            stage=action,
            status=status,
            slug=payload.get("slug"),
            message=detail or f"{action}: {status}",
            data=payload,
        )
        return self._append(entry)

    def record_phase(
        self,
        phase: str,
        message: str,
        *,
        slug: Optional[str] = None,
        failed: bool = False,
        **data: Any,
    ) -> JournalEntry:
        entry = JournalEntry(
            kind="creation",
            stage=f"creation.{phase}",
            status="failed" if failed else "ok",
            slug=slug,
            message=message,
            data=data,
        )
        return self._append(entry)

    def _append(self, entry: JournalEntry) -> JournalEntry:
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(entry.model_dump_json() + "\n")
        return entry

    def read(self, kind: Optional[EntryKind] = None) -> List[JournalEntry]:
        if not self.output_path.exists():
            return []
        entries = [
            JournalEntry.model_validate_json(line)
            for line in self.output_path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]
        if kind is not None:
            entries = [entry for entry in entries if entry.kind == kind]
        return entries

    def failures(self) -> List[JournalEntry]:
        return [entry for entry in self.read() if entry.failed]

    def for_slug(self, slug: str) -> List[JournalEntry]:
        return [entry for entry in self.read() if entry.slug == slug]


__all__ = ["ActivityJournal", "EntryKind", "JournalEntry"]
