"""One chat conversation: stream a reply, render it as it grows, act on it once done."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterable, Dict, List, Literal, Optional, Protocol, Sequence

from synapse_core.directives.message import MessageParser
from synapse_core.dispatch.briefings import FOLLOW_UP_PROMPT
from synapse_core.dispatch import (
    ActionDispatcher,
    ActionOutcome,
    CourseFile,
    CreationInProgressError,
    CreationRequest,
    DispatchReport,
)
from synapse_core.models import CanonicalAction, ParsedMessage, UIElement

from .stream import StreamEvent

LOGGER = logging.getLogger("synapse.chat")

FILE_CREATION_ACTIONS = frozenset({"generate_course", "create_course"})
FALLBACK_ERROR = "Failed to send. Please try again."


class StreamSource(Protocol):
    def stream(
        self,
        messages: Sequence[Dict[str, str]],
        *,
        context: str = "",
        path: str = "/",
    ) -> AsyncIterable[StreamEvent]: ...


@dataclass(slots=True)
class ChatMessage:
    role: Literal["user", "assistant", "system"]
    content: str = ""
    ui_elements: List[UIElement] = field(default_factory=list)
    hidden: bool = False


@dataclass(slots=True)
class TurnResult:
    parsed: ParsedMessage
    report: DispatchReport
    error: Optional[str] = None
    briefings: List[str] = field(default_factory=list)
    follow_up: Optional["TurnResult"] = None


class ChatSession:
    def __init__(
        self,
        *,
        dispatcher: ActionDispatcher,
        client: StreamSource | None = None,
        parser: MessageParser | None = None,
        context: str = "",
        path: str = "/",
    ) -> None:
        self.dispatcher = dispatcher
        self.client = client
        self.parser = parser or MessageParser(dispatcher.config.directives)
        self.context = context
        self.path = path
        self.messages: List[ChatMessage] = []
        self.assistant_name: Optional[str] = None
        self.pending_exam_files: List[CourseFile] = []

    @property
    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user" and not message.hidden:
                return message.content
        return ""

    def history(self) -> List[Dict[str, str]]:
        """Everything the model should see, including briefings and hidden prompts."""
        return [{"role": message.role, "content": message.content} for message in self.messages if message.content]

    def visible(self) -> List[ChatMessage]:
        return [message for message in self.messages if message.role != "system" and not message.hidden]

    async def send(self, text: str) -> TurnResult:
        if self.client is None:
            raise RuntimeError("ChatSession.send requires a stream client")
        self.messages.append(ChatMessage(role="user", content=text))
        result = await self._stream_turn(text)
        if result.briefings:
            self.messages.append(ChatMessage(role="user", content=FOLLOW_UP_PROMPT, hidden=True))
            result.follow_up = await self._stream_turn(text)
        return result

    async def _stream_turn(self, user_message: str) -> TurnResult:
        events = self.client.stream(self.history(), context=self.context, path=self.path)
        return await self.consume(events, user_message=user_message)

    async def consume(self, events: AsyncIterable[StreamEvent], *, user_message: str = "") -> TurnResult:
        """Accumulate ``text`` events, then dispatch once the stream is done.

        If the stream fails, whatever text arrived is still parsed and
        dispatched, and an error message is appended afterwards. The event
        iterator is always closed so an HTTP response never outlives the turn.
        """

        reply = ChatMessage(role="assistant")
        self.messages.append(reply)
        buffer = ""
        error: Optional[str] = None
        try:
            async for event in events:
                if event.type == "text":
                    buffer += event.content
                    self._render(reply, self.parser.parse(buffer, final=False))
                elif event.type == "name":
                    self.assistant_name = event.content.strip() or self.assistant_name
                elif event.type == "error":
                    error = event.error or event.content or FALLBACK_ERROR
                    break
                elif event.type == "done":
                    break
        except Exception as exc:
            LOGGER.warning("Chat stream ended abnormally", extra={"error": str(exc)}, exc_info=True)
            error = str(exc) or FALLBACK_ERROR
        finally:
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

        parsed = self.parser.parse(buffer, final=True)
        self._render(reply, parsed)
        report = await self.dispatcher.dispatch(
            parsed.actions,
            user_message=user_message or self.last_user_message,
            assistant_text=parsed.cleaned_text,
        )
        briefings = self._apply_fetched(report)
        if error:
            self.messages.append(ChatMessage(role="assistant", content=f"Error: {error}"))
        return TurnResult(parsed=parsed, report=report, error=error, briefings=briefings)

    async def click(self, element: UIElement, files: Sequence[CourseFile] = ()) -> DispatchReport:
        """Handle a rendered BUTTON or FILE_UPLOAD being used."""

        report = DispatchReport()
        action = element.action or ""
        if element.type == "file_upload":
            if not files:
                report.add(ActionOutcome(name=action, status="skipped", detail="no files"))
            elif action == "start_exam_snipe":
                self.pending_exam_files = list(files)
                self.dispatcher.events.navigate("/exam-snipe")
                report.add(ActionOutcome(name=action, status="ok", data={"files": len(files)}))
            elif action in FILE_CREATION_ACTIONS:
                report.add(await self._create_from_files(element, list(files)))
            else:
                report.add(ActionOutcome(name=action, status="skipped", detail="unsupported upload action"))
            return report

        if not action or action in FILE_CREATION_ACTIONS:
            report.add(ActionOutcome(name=action, status="skipped", detail="button needs an upload"))
            return report
        if action == "tutorial_continue":
            self._clear_last_ui()
        return await self.dispatcher.dispatch(
            [CanonicalAction(name=action, params=dict(element.params))],
            user_message=self.last_user_message,
        )

    def reset(self) -> None:
        """Start a new chat: forget messages and release every in-flight guard."""
        self.messages.clear()
        self.assistant_name = None
        self.pending_exam_files = []
        self.dispatcher.reset()

    async def _create_from_files(self, element: UIElement, files: List[CourseFile]) -> ActionOutcome:
        orchestrator = self.dispatcher.orchestrator
        name = element.action or "create_course"
        if orchestrator is None:
            return ActionOutcome(name=name, status="skipped", detail="course creation unavailable")
        request = CreationRequest(
            name=element.params.get("name") or "New Course",
            syllabus=element.params.get("syllabus", ""),
            files=files,
            language=element.params.get("language"),
        )
        try:
            result = await orchestrator.create(request)
        except CreationInProgressError:
            return ActionOutcome(name=name, status="skipped", detail="creation already in progress")
        if result.error:
            return ActionOutcome(name=name, status="failed", detail=result.detail)
        return ActionOutcome(name=name, status="ok", data={"slug": result.slug, "course": result.name})

    def _render(self, message: ChatMessage, parsed: ParsedMessage) -> None:
        if parsed.has_action("create_course_from_text"):
            message.content = ""
            message.ui_elements = []
            return
        message.content = parsed.cleaned_text
        message.ui_elements = list(parsed.ui_elements)

    def _apply_fetched(self, report: DispatchReport) -> List[str]:
        """Post fetched briefings as system messages and fetch misses as assistant notices."""
        briefings: List[str] = []
        for outcome in report.outcomes:
            if outcome.data.get("briefing"):
                briefings.append(outcome.data["briefing"])
                self.messages.append(ChatMessage(role="system", content=outcome.data["briefing"]))
            elif outcome.data.get("notice"):
                self.messages.append(ChatMessage(role="assistant", content=outcome.data["notice"]))
        return briefings

    def _clear_last_ui(self) -> None:
        for message in reversed(self.messages):
            if message.role == "assistant":
                message.ui_elements = []
                return


__all__ = ["ChatMessage", "ChatSession", "TurnResult"]
