"""Re-entrancy guard for the course-creation flow."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

LOGGER = logging.getLogger("synapse.dispatch")


class FlowState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"


class CreationFlowGuard:
    """``Idle -> Dispatching -> Idle``; a second acquire while dispatching is refused.

    The event loop is single-threaded, so a plain flag is enough. Each acquire
    hands out a new generation number; a flow that outlived a ``reset()`` holds
    a stale one, so its ``release`` and ``advance`` calls no longer touch the
    flow that replaced it. ``phase`` is informational.
    """

    def __init__(self) -> None:
        self.state = FlowState.IDLE
        self.phase = 0
        self.owner: str | None = None
        self.generation = 0

    @property
    def busy(self) -> bool:
        return self.state is FlowState.DISPATCHING

    def try_acquire(self, owner: str) -> Optional[int]:
        """Return the flow's generation token, or ``None`` while another flow runs."""
        if self.busy:
            LOGGER.warning(
                "Creation flow already running; request rejected",
                extra={"owner": self.owner, "requested_by": owner},
            )
            return None
        self.generation += 1
        self.state = FlowState.DISPATCHING
        self.phase = 0
        self.owner = owner
        return self.generation

    def owns(self, token: Optional[int]) -> bool:
        return token is None or (self.busy and token == self.generation)

    def advance(self, phase: int, token: Optional[int] = None) -> None:
        if self.busy and self.owns(token):
            self.phase = phase

    def release(self, token: Optional[int] = None) -> None:
        if not self.owns(token):
            LOGGER.debug("Stale creation flow finished; guard left alone", extra={"token": token})
            return
        self.state = FlowState.IDLE
        self.owner = None

    def reset(self) -> None:
        """Unconditional release used by 'new chat' and navigation."""
        self.release()
        self.phase = 0


__all__ = ["CreationFlowGuard", "FlowState"]
