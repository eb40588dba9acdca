"""Shared data shapes for directives, subjects, and session records."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CanonicalAction(BaseModel):
    """The single authoritative occurrence of an action name within one stream."""

    model_config = ConfigDict(frozen=True)

    name: str
    params: Dict[str, str] = Field(default_factory=dict)

    def param(self, *keys: str) -> str:
        """Return the first non-blank value among ``keys`` (trimmed), else ''."""
        for key in keys:
            value = self.params.get(key)
            if value and value.strip():
                return value.strip()
        return ""


class UIElement(BaseModel):
    """A widget the UI layer renders under an assistant message."""

    type: Literal["button", "file_upload"]
    id: str
    label: Optional[str] = None
    message: Optional[str] = None
    action: Optional[str] = None
    params: Dict[str, str] = Field(default_factory=dict)


class ParsedMessage(BaseModel):
    cleaned_text: str
    ui_elements: List[UIElement] = Field(default_factory=list)
    actions: List[CanonicalAction] = Field(default_factory=list)

    def has_action(self, name: str) -> bool:
        return any(action.name == name for action in self.actions)

    def action(self, name: str) -> CanonicalAction | None:
        return next((action for action in self.actions if action.name == name), None)


class SubjectRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    slug: str
    is_placeholder: bool = Field(default=False, alias="isPlaceholder")


class SurgeLogEntry(BaseModel):
    """A completed review session; only ``timestamp`` is user-editable."""

    model_config = ConfigDict(extra="allow")

    sessionId: str
    timestamp: str


class ExamDate(BaseModel):
    date: str
    name: Optional[str] = None


class FileMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    type: Optional[str] = None


class SessionRecord(BaseModel):
    """Per-course data aggregate exchanged with the persistence layer."""

    model_config = ConfigDict(extra="allow")

    slug: Optional[str] = None
    subject: str
    files: List[FileMeta] = Field(default_factory=list)
    combinedText: str = ""
    course_context: Optional[str] = None
    course_language_name: Optional[str] = None
    course_language_code: Optional[str] = None
    course_quick_summary: Optional[str] = None
    examDates: List[ExamDate] = Field(default_factory=list)
    surgeLog: Optional[List[SurgeLogEntry]] = None

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
