"""Execute canonical actions once a stream has finished.

Every handler returns an ``ActionOutcome``; exceptions are caught per action
so one broken action never stops the rest of the batch. Writes (exam dates,
course language) only ever target a slug that exists in the subject list.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol
from urllib.parse import quote

from synapse_core.core.config import (
    AppConfig,
    language_code,
    normalize_language_name,
)
from synapse_core.core.journal import ActivityJournal
from synapse_core.directives.dates import NaturalDateParser
from synapse_core.directives.heuristics import CourseNameExtractor, extract_quick_learn_query
from synapse_core.directives.slugs import SlugResolver, normalize_slug
from synapse_core.events import EventBus
from synapse_core.models import CanonicalAction, ExamDate, SessionRecord
from synapse_core.store import SessionStore, list_subjects, load_practice_log, load_record, save_record

from .briefings import find_exam_snipe, render_exam_snipe, render_practice_log
from .errors import CreationInProgressError
from .orchestrator import CourseCreationOrchestrator, CreationRequest, PLACEHOLDER_NAME
from .outcomes import ActionOutcome, DispatchReport
from .state import FlowState
from .tutorial import FEATURE_SCRIPT, TutorialPlayer

LOGGER = logging.getLogger("synapse.dispatch")

Handler = Callable[["_Context", CanonicalAction], Awaitable[ActionOutcome]]

DEFAULT_FILE_REQUEST = "Please upload the files I need."

CREATION_ACTIONS = frozenset({"create_course", "create_course_from_text"})
SLUG_ROUTES: Dict[str, str] = {
    "navigate_course": "/subjects/{slug}",
    "navigate_practice": "/subjects/{slug}/practice",
    "navigate_surge": "/subjects/{slug}/surge",
}


class ExamSnipeSource(Protocol):
    async def exam_snipe_history(self) -> List[Dict[str, Any]]: ...


class _Context:
    """Per-dispatch inputs shared by the handlers."""

    def __init__(self, resolver: SlugResolver, user_message: str, assistant_text: str) -> None:
        self.resolver = resolver
        self.user_message = user_message
        self.assistant_text = assistant_text
        self.creation_started = False


def _ok(action: CanonicalAction, detail: str = "", **data) -> ActionOutcome:
    return ActionOutcome(name=action.name, status="ok", detail=detail, data=data)


def _skipped(action: CanonicalAction, detail: str, **data) -> ActionOutcome:
    return ActionOutcome(name=action.name, status="skipped", detail=detail, data=data)


class ActionDispatcher:
    def __init__(
        self,
        *,
        store: SessionStore,
        events: EventBus,
        orchestrator: CourseCreationOrchestrator | None = None,
        config: AppConfig | None = None,
        tutorial: TutorialPlayer | None = None,
        date_parser: NaturalDateParser | None = None,
        name_extractor: CourseNameExtractor | None = None,
        exam_snipe: ExamSnipeSource | None = None,
        journal: ActivityJournal | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.events = events
        self.orchestrator = orchestrator
        self.config = config or AppConfig()
        self.tutorial = tutorial or TutorialPlayer(events, self.config.tutorial)
        self.date_parser = date_parser or NaturalDateParser()
        self.name_extractor = name_extractor or CourseNameExtractor()
        self.journal = journal
        self.exam_snipe = exam_snipe
        self.today = today
        self.state = FlowState.IDLE
        self._handlers: Dict[str, Handler] = {
            "navigate": self._navigate,
            "navigate_course": self._navigate_slug,
            "navigate_practice": self._navigate_slug,
            "navigate_surge": self._navigate_slug,
            "navigate_topic": self._navigate_topic,
            "navigate_lesson": self._navigate_topic,
            "start_exam_snipe": self._start_exam_snipe,
            "open_course_modal": self._open_course_modal,
            "generate_course": self._open_course_modal,
            "open_flashcards": self._open_flashcards,
            "open_lesson_flashcards": self._open_lesson_flashcards,
            "request_files": self._request_files,
            "fetch_practice_logs": self._fetch_practice_logs,
            "fetch_exam_snipe_data": self._fetch_exam_snipe_data,
            "generate_quick_learn": self._quick_learn,
            "set_course_language": self._set_course_language,
            "set_exam_date": self._set_exam_date,
            "create_course": self._create_course,
            "create_course_from_text": self._create_course,
            "tutorial_continue": self._tutorial_continue,
        }

    @property
    def supported_actions(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def dispatch(
        self,
        actions: Iterable[CanonicalAction],
        *,
        user_message: str = "",
        assistant_text: str = "",
    ) -> DispatchReport:
        """Run each action once, in order, and report what happened."""

        report = DispatchReport()
        context = _Context(SlugResolver(list_subjects(self.store)), user_message or "", assistant_text or "")
        self.state = FlowState.DISPATCHING
        try:
            for action in actions:
                outcome = await self._run_one(context, action)
                report.add(outcome)
                self._record(outcome)
        finally:
            self.state = FlowState.IDLE
        return report

    def reset(self) -> None:
        """'New chat': drop the creation guard and stop any tutorial playback."""
        self.tutorial.cancel()
        if self.orchestrator is not None:
            self.orchestrator.guard.reset()

    async def _run_one(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        handler = self._handlers.get(action.name)
        if handler is None:
            LOGGER.warning("Unknown action ignored", extra={"action": action.name})
            return _skipped(action, "unknown action")
        try:
            return await handler(context, action)
        except Exception as exc:
            LOGGER.exception("Action failed", extra={"action": action.name, "params": dict(action.params)})
            return ActionOutcome(name=action.name, status="failed", detail=str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------ slug helpers

    def _navigation_slug(self, context: _Context, raw: str) -> Optional[str]:
        settings = self.config.directives
        normalized = normalize_slug(raw)
        if raw and not (settings.is_placeholder_slug(raw) and not context.resolver.is_known(normalized)):
            return context.resolver.resolve(raw)
        recovered = self.name_extractor.extract(
            context.resolver, assistant_text=context.assistant_text, user_text=context.user_message
        )
        return recovered[0] if recovered else None

    def _verified_slug(self, context: _Context, raw: str) -> Optional[str]:
        settings = self.config.directives
        if raw:
            normalized = normalize_slug(raw)
            if context.resolver.is_known(normalized):
                return normalized
            if not settings.is_placeholder_slug(raw):
                known = context.resolver.resolve_known(raw)
                if known:
                    return known
        recovered = self.name_extractor.extract(
            context.resolver, assistant_text=context.assistant_text, user_text=context.user_message
        )
        return recovered[0] if recovered else None

    def _load_or_create_record(self, context: _Context, slug: str) -> Dict:
        record = load_record(self.store, slug)
        if record is not None:
            return record
        subject = context.resolver.find(slug)
        return SessionRecord(slug=slug, subject=subject.name if subject else slug).to_store()

    # ------------------------------------------------------------------ handlers

    async def _navigate(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        path = action.param("path")
        if not path:
            return _skipped(action, "no path")
        self.events.navigate(path)
        return _ok(action, path=path)

    async def _navigate_slug(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        slug = self._navigation_slug(context, action.param("slug", "course"))
        if not slug:
            LOGGER.warning("Navigation target not resolved", extra={"action": action.name, "params": dict(action.params)})
            return _skipped(action, "unresolved slug")
        path = SLUG_ROUTES[action.name].format(slug=slug)
        self.events.navigate(path)
        return _ok(action, path=path, slug=slug)

    async def _navigate_topic(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        slug = self._navigation_slug(context, action.param("slug", "course"))
        topic = action.param("topic")
        if not slug or not topic:
            LOGGER.warning("Topic navigation incomplete", extra={"action": action.name, "params": dict(action.params)})
            return _skipped(action, "unresolved slug or topic")
        path = f"/subjects/{slug}/node/{quote(topic, safe='')}"
        if action.name == "navigate_lesson":
            index = action.param("lessonIndex", "lesson")
            if not index.isdigit():
                return _skipped(action, "invalid lesson index")
            path = f"{path}/lesson/{int(index)}"
        self.events.navigate(path)
        return _ok(action, path=path, slug=slug)

    async def _start_exam_snipe(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        self.events.navigate("/exam-snipe")
        return _ok(action, path="/exam-snipe")

    async def _open_course_modal(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        self.events.emit("open-course-modal")
        return _ok(action)

    async def _open_flashcards(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        slug = self._navigation_slug(context, action.param("slug", "course"))
        if not slug:
            return _skipped(action, "unresolved slug")
        path = f"/subjects/{slug}"
        self.events.navigate(path)
        self.events.emit("open-flashcards", slug=slug)
        return _ok(action, path=path, slug=slug)

    async def _open_lesson_flashcards(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        slug = self._navigation_slug(context, action.param("slug", "course"))
        topic = action.param("topic")
        index = action.param("lessonIndex", "lesson")
        if not slug or not topic or not index.isdigit():
            LOGGER.warning("Lesson flashcards incomplete", extra={"params": dict(action.params)})
            return _skipped(action, "unresolved slug, topic or lesson")
        path = f"/subjects/{slug}/node/{quote(topic, safe='')}/lesson/{int(index)}"
        self.events.navigate(path)
        self.events.emit("open-lesson-flashcards", slug=slug, topic=topic, lessonIndex=int(index))
        return _ok(action, path=path, slug=slug)

    async def _request_files(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        message = action.param("message") or DEFAULT_FILE_REQUEST
        self.events.emit("request-files", message=message)
        return _ok(action, message=message)

    async def _fetch_practice_logs(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        raw = action.param("slug", "course")
        slug = self._navigation_slug(context, raw)
        if not slug:
            return _skipped(action, "unresolved slug")
        label = raw or slug
        entries = load_practice_log(self.store, slug)
        if not entries:
            notice = f'No practice logs found for "{label}". Start practicing this course to generate logs.'
            return _skipped(action, "no practice logs", slug=slug, notice=notice)
        return _ok(action, slug=slug, entries=len(entries), briefing=render_practice_log(label, entries))

    async def _fetch_exam_snipe_data(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        # Exam snipe results are keyed by course name, so the raw value is matched as given.
        query = action.param("slug", "course", "name")
        if not query:
            return _skipped(action, "no course")
        if self.exam_snipe is None:
            return _skipped(action, "exam snipe data unavailable")
        exam = find_exam_snipe(await self.exam_snipe.exam_snipe_history(), query)
        if exam is None or not exam.get("results"):
            notice = f'No exam snipe data found for "{query}". You may need to run Exam Snipe first for this course.'
            return _skipped(action, "no exam snipe data", notice=notice)
        course = exam.get("courseName") or query
        return _ok(action, course=course, briefing=render_exam_snipe(exam, query))

    async def _quick_learn(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        query = action.param("query", "topic") or extract_quick_learn_query(context.user_message)
        if not query:
            return _skipped(action, "no query")
        self.events.emit("quick-learn", query=query)
        return _ok(action, query=query)

    async def _set_course_language(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        value = action.param("language", "lang", "value", "name")
        if not value:
            return _skipped(action, "no language")
        slug = self._verified_slug(context, action.param("slug", "course"))
        if not slug:
            LOGGER.warning("Course for language change not found", extra={"params": dict(action.params)})
            return _skipped(action, "unresolved slug")
        label = normalize_language_name(value, self.config.languages)
        code = language_code(label, self.config.languages)
        record = self._load_or_create_record(context, slug)
        record["course_language_name"] = label
        if code:
            record["course_language_code"] = code
        else:
            record.pop("course_language_code", None)
        save_record(self.store, slug, record)
        self.events.emit("course-language-updated", slug=slug, language=label, code=code)
        return _ok(action, slug=slug, language=label, code=code)

    async def _set_exam_date(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        raw_date = action.param("date", "days")
        if not raw_date:
            LOGGER.warning("set_exam_date without a date", extra={"params": dict(action.params)})
            return _skipped(action, "no date")
        slug = self._verified_slug(context, action.param("slug", "course"))
        if not slug:
            LOGGER.warning("Course for exam date not found", extra={"params": dict(action.params)})
            return _skipped(action, "unresolved slug")
        parsed = self.date_parser.parse(raw_date, today=self.today())
        if not parsed:
            LOGGER.warning("Exam date not understood", extra={"slug": slug, "date": raw_date})
            return _skipped(action, "unparseable date", slug=slug)
        exam = ExamDate(date=parsed, name=action.param("name") or None)
        record = self._load_or_create_record(context, slug)
        record["examDates"] = [exam.model_dump(exclude_none=True)]
        save_record(self.store, slug, record)
        self.events.emit("exam-date-updated", slug=slug, date=parsed, name=exam.name)
        return _ok(action, slug=slug, date=parsed)

    async def _create_course(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        if self.orchestrator is None:
            return _skipped(action, "course creation unavailable")
        if context.creation_started:
            return _skipped(action, "creation already requested in this batch")
        language = action.param("language", "lang") or None
        try:
            if action.name == "create_course_from_text":
                description = action.param("description")
                if not description:
                    return _skipped(action, "no description")
                context.creation_started = True
                result = await self.orchestrator.create_from_text(
                    description, course_name=action.param("name") or None, language=language
                )
            else:
                context.creation_started = True
                result = await self.orchestrator.create(
                    CreationRequest(
                        name=action.param("name") or PLACEHOLDER_NAME,
                        syllabus=action.param("syllabus", "description"),
                        language=language,
                    )
                )
        except CreationInProgressError:
            return _skipped(action, "creation already in progress")
        if result.error:
            return ActionOutcome(name=action.name, status="failed", detail=result.detail or "creation failed")
        return _ok(action, slug=result.slug, course=result.name)

    async def _tutorial_continue(self, context: _Context, action: CanonicalAction) -> ActionOutcome:
        self.tutorial.start(FEATURE_SCRIPT)
        return _ok(action)

    def _record(self, outcome: ActionOutcome) -> None:
        if self.journal is None:
            return
        self.journal.record_action(outcome.name, outcome.status, detail=outcome.detail, data=outcome.data)


__all__ = ["ActionDispatcher", "CREATION_ACTIONS", "SLUG_ROUTES"]
