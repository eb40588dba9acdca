"""In-process notification bus standing in for the UI layer."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger("synapse.events")

Handler = Callable[["Event"], None]


@dataclass(slots=True)
class Event:
    name: str
    detail: Dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Synchronous fan-out; a failing handler never blocks the others."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self.history: List[Event] = []

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        self._handlers[name].append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers[name]:
                self._handlers[name].remove(handler)

        return _unsubscribe

    def emit(self, name: str, /, **detail: Any) -> Event:
        event = Event(name=name, detail=detail)
        self.history.append(event)
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(event)
            except Exception:
                LOGGER.exception("Event handler failed", extra={"event": name})
        return event

    def named(self, name: str) -> List[Event]:
        return [event for event in self.history if event.name == name]

    def navigate(self, path: str) -> Event:
        return self.emit("navigate", path=path)


__all__ = ["Event", "EventBus"]
