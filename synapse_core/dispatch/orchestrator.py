"""Multi-phase course creation: reserve, materialize, summarize, rename, enrich.

Phases 2-4 and the background work are best-effort: a failure is logged and
the pipeline carries on with whatever state it had before that phase. Only a
failed reservation (or an unexpected error while finalizing) aborts the flow,
in which case the placeholder is removed and ``course-created`` fires with an
error flag.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set

from synapse_core.core.config import (
    CreationSettings,
    LanguageOption,
    default_languages,
    language_code,
    normalize_language_name,
)
from synapse_core.core.journal import ActivityJournal
from synapse_core.directives.slugs import slugify, unique_slug
from synapse_core.events import EventBus
from synapse_core.models import FileMeta, SessionRecord, SubjectRecord
from synapse_core.store import (
    SessionStore,
    list_subjects,
    load_record,
    record_key,
    save_record,
    save_subjects,
)

from .errors import CreationInProgressError, ReservationError
from .state import CreationFlowGuard

LOGGER = logging.getLogger("synapse.orchestrator")

PLACEHOLDER_NAME = "New Course"


@dataclass(slots=True)
class CourseFile:
    name: str
    data: bytes = b""
    content_type: str = ""

    def is_text(self, extensions: Sequence[str]) -> bool:
        lowered = self.name.lower()
        return self.content_type.startswith("text/") or any(lowered.endswith(ext) for ext in extensions)

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass(slots=True)
class CreationRequest:
    name: str = PLACEHOLDER_NAME
    syllabus: str = ""
    files: List[CourseFile] = field(default_factory=list)
    language: Optional[str] = None

    @property
    def text_only(self) -> bool:
        return not self.files


@dataclass(slots=True)
class CourseCreationResult:
    slug: Optional[str]
    name: Optional[str]
    error: bool = False
    detail: str = ""


class CourseServices(Protocol):
    """External collaborators the pipeline talks to (summaries, naming, uploads)."""

    async def course_from_text(self, description: str, course_name: Optional[str] = None) -> Dict[str, Any]: ...

    async def upload_file(self, file: CourseFile) -> List[Dict[str, str]]: ...

    async def summarize(
        self,
        *,
        subject: str,
        syllabus: str,
        text: str,
        documents: List[Dict[str, str]],
        language: Optional[str] = None,
    ) -> Optional[str]: ...

    async def detect_name(self, *, context: str, fallback_title: str, language: Optional[str] = None) -> Optional[str]: ...

    async def quick_summary(self, *, context: str, language: Optional[str] = None) -> Optional[str]: ...

    async def detect_exam_files(self, snippets: List[Dict[str, str]]) -> List[str]: ...

    async def analyze_exams(self, *, slug: str, course_name: str, exams: List[Dict[str, str]]) -> None: ...


@dataclass(slots=True)
class _Flow:
    request: CreationRequest
    name: str
    slug: str = ""
    effective_text: str = ""
    context: str = ""
    documents: List[Dict[str, str]] = field(default_factory=list)
    language_name: str = ""


class CourseCreationOrchestrator:
    """Runs one creation flow at a time; background enrichment is tracked for ``drain()``."""

    def __init__(
        self,
        *,
        store: SessionStore,
        events: EventBus,
        services: CourseServices,
        guard: CreationFlowGuard | None = None,
        settings: CreationSettings | None = None,
        languages: Sequence[LanguageOption] | None = None,
        journal: ActivityJournal | None = None,
    ) -> None:
        self.store = store
        self.events = events
        self.services = services
        self.guard = guard or CreationFlowGuard()
        self.settings = settings or CreationSettings()
        self.languages = list(languages) if languages is not None else default_languages()
        self.journal = journal
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ entry points

    async def create(self, request: CreationRequest) -> CourseCreationResult:
        token = self.guard.try_acquire("create_course")
        if token is None:
            raise CreationInProgressError("a course is already being created")
        try:
            return await self._run(request, token)
        finally:
            self.guard.release(token)

    async def create_from_text(
        self,
        description: str,
        *,
        course_name: Optional[str] = None,
        language: Optional[str] = None,
    ) -> CourseCreationResult:
        """Expand a free-text description into course material, then create the course."""

        if not description or not description.strip():
            raise ValueError("create_course_from_text requires a description")
        token = self.guard.try_acquire("create_course_from_text")
        if token is None:
            raise CreationInProgressError("a course is already being created")
        try:
            context = description.strip()
            name = (course_name or "").strip() or PLACEHOLDER_NAME
            try:
                generated = await self.services.course_from_text(context, course_name)
            except Exception:
                LOGGER.warning("course-from-text failed; using the description as context", exc_info=True)
                generated = {}
            context = (generated.get("courseContext") or "").strip() or context
            name = (generated.get("courseName") or "").strip() or name
            return await self._run(CreationRequest(name=name, syllabus=context, language=language), token)
        finally:
            self.guard.release(token)

    async def drain(self) -> None:
        """Wait for outstanding background enrichment."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    @property
    def pending_background(self) -> int:
        return len(self._background)

    # ------------------------------------------------------------------ pipeline

    async def _run(self, request: CreationRequest, token: Optional[int] = None) -> CourseCreationResult:
        flow = _Flow(request=request, name=(request.name or "").strip() or PLACEHOLDER_NAME)
        flow.language_name = normalize_language_name(request.language, self.languages)
        try:
            self._reserve(flow)
        except ReservationError as exc:
            LOGGER.error("Course reservation failed", extra={"course": flow.name, "error": str(exc)})
            return self._abort(flow, str(exc))

        try:
            self.guard.advance(2, token)
            try:
                self._materialize(flow)
            except Exception:
                LOGGER.warning("Initial course record not stored", extra={"slug": flow.slug}, exc_info=True)
            await self._upload(flow)
            self.guard.advance(3, token)
            await self._summarize(flow)
            self.guard.advance(4, token)
            await self._rename(flow)
            self._finalize(flow)
        except Exception as exc:
            LOGGER.exception("Course creation failed", extra={"course": flow.name, "slug": flow.slug})
            return self._abort(flow, str(exc))

        self.guard.advance(5, token)
        self._spawn(self._quick_summary(flow))
        if request.files:
            self._spawn(self._detect_exams(flow))
        return CourseCreationResult(slug=flow.slug, name=flow.name)

    def _reserve(self, flow: _Flow) -> None:
        try:
            subjects = list_subjects(self.store)
            flow.slug = unique_slug(slugify(flow.name), [subject.slug for subject in subjects])
            placeholder = SubjectRecord(name=flow.name, slug=flow.slug, is_placeholder=True)
            save_subjects(self.store, [placeholder, *subjects])
        except Exception as exc:
            raise ReservationError(f"could not reserve a slug for {flow.name!r}") from exc
        self.events.emit("course-preparing", slug=flow.slug, name=flow.name)
        self._record("reserve", f"Reserved {flow.slug}", slug=flow.slug, name=flow.name)

    def _materialize(self, flow: _Flow) -> None:
        request = flow.request
        parts: List[str] = []
        for item in request.files:
            if not item.is_text(self.settings.text_extensions):
                continue
            text = item.text()
            if text:
                parts.append(f"--- {item.name} ---\n{text}")
        flow.effective_text = "\n\n".join(parts) if request.files else request.syllabus
        record = SessionRecord(
            slug=flow.slug,
            subject=flow.name,
            files=[FileMeta(name=item.name, type=item.content_type or None) for item in request.files],
            combinedText=flow.effective_text,
            course_context=request.syllabus,
            course_language_name=flow.language_name or None,
            course_language_code=language_code(flow.language_name, self.languages),
        )
        save_record(self.store, flow.slug, record.to_store())
        self._record("materialize", "Stored initial record", slug=flow.slug, files=len(request.files))

    async def _upload(self, flow: _Flow) -> None:
        for item in flow.request.files:
            try:
                flow.documents.extend(await self.services.upload_file(item))
            except Exception:
                LOGGER.warning("File extraction failed", extra={"file": item.name, "slug": flow.slug}, exc_info=True)

    async def _summarize(self, flow: _Flow) -> None:
        summary: Optional[str] = None
        try:
            summary = await self.services.summarize(
                subject=flow.name,
                syllabus=flow.request.syllabus,
                text=flow.effective_text,
                documents=flow.documents,
                language=flow.language_name or None,
            )
            if summary:
                self._update_record(flow.slug, course_context=summary)
        except Exception:
            LOGGER.warning("Course summary failed; keeping raw text", extra={"slug": flow.slug}, exc_info=True)
            summary = None
        if summary:
            flow.context = summary
            self._record("summarize", "Summary stored", slug=flow.slug)
        else:
            try:
                record = load_record(self.store, flow.slug) or {}
            except Exception:
                LOGGER.warning("Course record unreadable; using raw text", extra={"slug": flow.slug}, exc_info=True)
                record = {}
            flow.context = record.get("course_context") or flow.effective_text
            self._record("summarize", "Summary unavailable; using raw text", slug=flow.slug)

    def _should_rename(self, flow: _Flow) -> bool:
        has_syllabus = bool(flow.request.syllabus.strip())
        return (flow.request.text_only and has_syllabus) or self.settings.is_placeholder_name(flow.name)

    async def _rename(self, flow: _Flow) -> None:
        if not self._should_rename(flow):
            return
        if flow.documents:
            context = "\n\n".join(f"--- {doc.get('name', '')} ---\n{doc.get('text', '')}" for doc in flow.documents)
        else:
            context = flow.context or flow.effective_text
        if not context.strip():
            return
        if flow.request.syllabus.strip():
            fallback = flow.request.syllabus
        elif flow.request.files:
            fallback = ", ".join(item.name for item in flow.request.files)
        else:
            fallback = flow.name
        try:
            detected = await self.services.detect_name(
                context=context, fallback_title=fallback, language=flow.language_name or None
            )
        except Exception:
            LOGGER.warning("Name detection failed; keeping current name", extra={"slug": flow.slug}, exc_info=True)
            return
        detected = (detected or "").strip()
        if not detected or detected == flow.name:
            return
        self._apply_rename(flow, detected)

    def _apply_rename(self, flow: _Flow, new_name: str) -> None:
        old_slug = flow.slug
        subjects = list_subjects(self.store)
        new_base = slugify(new_name, default="course")
        if self.settings.is_generic_slug(old_slug) and not self.settings.is_generic_slug(new_base):
            others = [subject.slug for subject in subjects if subject.slug != old_slug]
            new_slug = unique_slug(new_base, others)
        else:
            new_slug = old_slug
        updated = [
            subject.model_copy(update={"name": new_name, "slug": new_slug}) if subject.slug == old_slug else subject
            for subject in subjects
        ]
        save_subjects(self.store, updated)
        record = load_record(self.store, old_slug)
        if record is not None:
            record["subject"] = new_name
            record["slug"] = new_slug
            save_record(self.store, new_slug, record)
            if new_slug != old_slug:
                self.store.delete(record_key(old_slug))
        LOGGER.info("Course renamed", extra={"old_slug": old_slug, "slug": new_slug, "course": new_name})
        self._record("rename", f"Renamed to {new_name}", old_slug=old_slug, slug=new_slug)
        flow.name = new_name
        flow.slug = new_slug

    def _finalize(self, flow: _Flow) -> None:
        subjects = list_subjects(self.store)
        finalized: List[SubjectRecord] = []
        present = False
        for subject in subjects:
            if subject.slug == flow.slug:
                present = True
                finalized.append(SubjectRecord(name=flow.name, slug=flow.slug))
            else:
                finalized.append(subject)
        if not present:
            finalized.insert(0, SubjectRecord(name=flow.name, slug=flow.slug))
        save_subjects(self.store, finalized)
        self.events.emit("course-created", name=flow.name, slug=flow.slug)
        self._record("complete", f"Created {flow.slug}", slug=flow.slug, name=flow.name)

    def _abort(self, flow: _Flow, detail: str) -> CourseCreationResult:
        try:
            subjects = list_subjects(self.store)
            remaining = [
                subject for subject in subjects if not (subject.is_placeholder and subject.slug == flow.slug)
            ]
            if len(remaining) != len(subjects):
                save_subjects(self.store, remaining)
        except Exception:
            LOGGER.exception("Could not clear the course placeholder")
        self.events.emit("course-created", error=True)
        self._record("failed", detail or "Course creation failed", slug=flow.slug or None, failed=True)
        return CourseCreationResult(slug=None, name=None, error=True, detail=detail)

    # ------------------------------------------------------------------ background

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _quick_summary(self, flow: _Flow) -> None:
        record = load_record(self.store, flow.slug) or {}
        context = record.get("course_context") or flow.context or flow.effective_text
        if not context:
            return
        try:
            summary = await self.services.quick_summary(context=context, language=flow.language_name or None)
        except Exception:
            LOGGER.warning("Quick summary failed", extra={"slug": flow.slug}, exc_info=True)
            return
        if summary:
            self._update_record(flow.slug, course_quick_summary=summary)

    def _previews(self, flow: _Flow) -> List[Dict[str, str]]:
        extracted = {doc.get("name"): doc.get("text", "") for doc in flow.documents}
        previews: List[Dict[str, str]] = []
        for item in flow.request.files:
            text = item.text() if item.is_text(self.settings.text_extensions) else extracted.get(item.name, "")
            preview = (text or "")[: self.settings.exam_preview_chars].strip()
            if len(preview) > self.settings.exam_preview_min_chars:
                previews.append({"name": item.name, "preview": preview})
        return previews

    async def _detect_exams(self, flow: _Flow) -> None:
        previews = self._previews(flow)
        if not previews:
            return
        try:
            exam_names = set(await self.services.detect_exam_files(previews))
        except Exception:
            LOGGER.warning("Exam detection failed", extra={"slug": flow.slug}, exc_info=True)
            return
        exams = [preview for preview in previews if preview["name"] in exam_names]
        if not exams:
            self.events.emit("no-exam-snipe", subjectSlug=flow.slug, courseName=flow.name)
            return
        self.events.emit(
            "exam-files-detected",
            subjectSlug=flow.slug,
            courseName=flow.name,
            files=[exam["name"] for exam in exams],
        )
        try:
            await self.services.analyze_exams(
                slug=flow.slug,
                course_name=flow.name,
                exams=[{"name": exam["name"], "text": exam["preview"]} for exam in exams],
            )
        except Exception:
            LOGGER.warning("Exam analysis request failed", extra={"slug": flow.slug}, exc_info=True)
        self._record("enrich", "Exam files detected", slug=flow.slug, files=len(exams))

    # ------------------------------------------------------------------ helpers

    def _update_record(self, slug: str, **fields: Any) -> None:
        record = load_record(self.store, slug)
        if record is None:
            return
        record.update(fields)
        save_record(self.store, slug, record)

    def _record(
        self, phase: str, message: str, *, slug: Optional[str] = None, failed: bool = False, **data: Any
    ) -> None:
        if self.journal is None:
            return
        self.journal.record_phase(phase, message, slug=slug, failed=failed, **data)


__all__ = [
    "CourseCreationOrchestrator",
    "CourseCreationResult",
    "CourseFile",
    "CourseServices",
    "CreationRequest",
]
