"""Scripted walkthrough played into the chat one character at a time."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

from synapse_core.core.config import TutorialSettings
from synapse_core.events import EventBus
from synapse_core.models import UIElement

LOGGER = logging.getLogger("synapse.dispatch")

Sleep = Callable[[float], Awaitable[None]]
UpdateHook = Callable[[str, str], None]


@dataclass(slots=True)
class ScriptStep:
    id: str
    text: str
    ui_elements: List[UIElement] = field(default_factory=list)


WELCOME_SCRIPT: tuple[ScriptStep, ...] = (
    ScriptStep("welcome", "Welcome to Synapse. I'm your study assistant and I can structure, explain and run actions for you."),
    ScriptStep("method", "I'm available on every page. Start typing and I will pop up ready to help."),
    ScriptStep(
        "cta",
        "Let's look at the features of Synapse.",
        [UIElement(type="button", id="tutorial_start", label="Start", action="tutorial_continue")],
    ),
)

FEATURE_SCRIPT: tuple[ScriptStep, ...] = (
    ScriptStep(
        "features",
        "Use this chat like mission control. Ask me to start a course, run an exam snipe, "
        "open a page or explain something from your current lesson.\n\n"
        "## Exam Snipe\n\nPast exams give the best results, so keep them ready when creating a course.\n\n"
        "## Courses\n\nCourses store every document you add and are split into topics you can jump between.\n\n"
        "## Practice Mode\n\nPractice Mode turns lessons into recall questions and tracks what you have covered.\n\n"
        "## Surge\n\nSurge prioritises the highest-value concepts so you build understanding quickly.",
    ),
)


class TutorialPlayer:
    """Streams script steps; ``cancel()`` stops playback at the next character.

    Each playback holds the generation number it started with. Cancelling or
    starting a new playback bumps the generation, which every running loop
    polls between characters and between steps.
    """

    def __init__(
        self,
        events: EventBus,
        settings: TutorialSettings | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
        on_update: UpdateHook | None = None,
    ) -> None:
        self.events = events
        self.settings = settings or TutorialSettings()
        self._sleep = sleep
        self._on_update = on_update
        self._generation = 0
        self._running: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._running is not None and self._running == self._generation

    def cancel(self) -> None:
        self._generation += 1

    def start(self, steps: Sequence[ScriptStep]) -> asyncio.Task:
        """Schedule playback on the running loop, replacing any current playback."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._play(steps, self._generation))
        return self._task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def play(self, steps: Sequence[ScriptStep]) -> bool:
        """Return True when every step was played to the end."""
        return await self._play(steps, self._generation)

    async def _play(self, steps: Sequence[ScriptStep], generation: int) -> bool:
        if generation != self._generation:
            return False
        self._running = generation
        try:
            for step in steps:
                if generation != self._generation:
                    return False
                if not await self._stream_step(step, generation):
                    return False
                await self._sleep(self.settings.step_delay)
            return generation == self._generation
        finally:
            if self._running == generation:
                self._running = None

    async def _stream_step(self, step: ScriptStep, generation: int) -> bool:
        for index in range(1, len(step.text) + 1):
            if generation != self._generation:
                LOGGER.info("Tutorial playback cancelled", extra={"step": step.id, "position": index})
                return False
            if self._on_update is not None:
                self._on_update(step.id, step.text[:index])
            await self._sleep(self.settings.char_delay)
        self.events.emit(
            "tutorial-message",
            step=step.id,
            content=step.text,
            ui_elements=[element.model_dump() for element in step.ui_elements],
        )
        return True


__all__ = ["FEATURE_SCRIPT", "ScriptStep", "TutorialPlayer", "WELCOME_SCRIPT"]
