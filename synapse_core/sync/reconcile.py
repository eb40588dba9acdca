"""Pull the server's subjects and records into the local cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from synapse_core.models import SubjectRecord
from synapse_core.store import SessionStore, load_record, save_record, save_subjects

from .merge import merge_course_data

LOGGER = logging.getLogger("synapse.sync")


class RemoteSessionSource(Protocol):
    async def fetch_subjects(self) -> List[SubjectRecord]: ...

    async def fetch_record(self, slug: str) -> Optional[Dict[str, Any]]: ...


@dataclass(slots=True)
class SyncReport:
    merged: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


class SessionSynchronizer:
    def __init__(self, local: SessionStore, remote: RemoteSessionSource) -> None:
        self.local = local
        self.remote = remote

    async def sync(self) -> SyncReport:
        report = SyncReport()
        try:
            subjects = await self.remote.fetch_subjects()
        except Exception as exc:
            LOGGER.warning("Could not fetch subjects from server", exc_info=True)
            report.error = str(exc) or type(exc).__name__
            return report

        save_subjects(self.local, subjects)
        for subject in subjects:
            try:
                server_record = await self.remote.fetch_record(subject.slug)
                if server_record is None:
                    report.missing.append(subject.slug)
                    continue
                merged = merge_course_data(server_record, load_record(self.local, subject.slug))
                save_record(self.local, subject.slug, merged)
                report.merged.append(subject.slug)
            except Exception:
                LOGGER.warning("Skipping subject after sync failure", extra={"slug": subject.slug}, exc_info=True)
                report.failed.append(subject.slug)
        LOGGER.info(
            "Session sync finished",
            extra={"merged": len(report.merged), "missing": len(report.missing), "failed": len(report.failed)},
        )
        return report


__all__ = ["RemoteSessionSource", "SessionSynchronizer", "SyncReport"]
