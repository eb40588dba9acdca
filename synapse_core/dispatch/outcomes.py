from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

Status = Literal["ok", "skipped", "failed"]


class ActionOutcome(BaseModel):
    name: str
    status: Status
    detail: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


class DispatchReport(BaseModel):
    """Per-action results of one dispatch cycle, in dispatch order."""

    outcomes: List[ActionOutcome] = Field(default_factory=list)

    def add(self, outcome: ActionOutcome) -> ActionOutcome:
        self.outcomes.append(outcome)
        return outcome

    def by_name(self, name: str) -> ActionOutcome | None:
        return next((outcome for outcome in self.outcomes if outcome.name == name), None)

    def with_status(self, status: Status) -> List[ActionOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def ok(self) -> bool:
        return not self.with_status("failed")


__all__ = ["ActionOutcome", "DispatchReport"]
