"""Turn raw assistant text into display text, UI widgets and canonical actions."""

from __future__ import annotations

from typing import Dict, List

from synapse_core.core.config import DirectiveSettings
from synapse_core.models import ParsedMessage, UIElement

from .dedupe import ActionDeduplicator
from .scanner import Directive, DirectiveScanner, strip_spans

DEFAULT_BUTTON_LABEL = "Button"
DEFAULT_UPLOAD_MESSAGE = "Upload files"
DEFAULT_UPLOAD_ACTION = "generate_course"
DEFAULT_UPLOAD_BUTTON_LABEL = "Generate"


def _without(params: Dict[str, str], *keys: str) -> Dict[str, str]:
    return {key: value for key, value in params.items() if key not in keys}


def build_ui_element(directive: Directive) -> UIElement:
    params = dict(directive.raw_params)
    if directive.kind == "button":
        return UIElement(
            type="button",
            id=directive.name,
            label=params.get("label") or DEFAULT_BUTTON_LABEL,
            action=params.get("action") or None,
            params=_without(params, "label", "action"),
        )
    if directive.kind == "file_upload":
        extra = _without(params, "message", "action", "buttonLabel")
        extra["buttonLabel"] = params.get("buttonLabel") or DEFAULT_UPLOAD_BUTTON_LABEL
        return UIElement(
            type="file_upload",
            id=directive.name,
            message=params.get("message") or DEFAULT_UPLOAD_MESSAGE,
            action=params.get("action") or DEFAULT_UPLOAD_ACTION,
            params=extra,
        )
    raise ValueError(f"Directive kind {directive.kind!r} is not a UI element")


class MessageParser:
    """Scanner and deduplicator bound to one set of directive settings."""

    def __init__(self, settings: DirectiveSettings | None = None) -> None:
        self.settings = settings or DirectiveSettings()
        self.scanner = DirectiveScanner(self.settings.long_form)
        self.deduplicator = ActionDeduplicator(self.settings.long_form)

    def parse(self, text: str, *, final: bool = False) -> ParsedMessage:
        result = self.scanner.tokenize(text or "", final=final)
        elements: List[UIElement] = []
        seen: Dict[str, int] = {}
        for directive in result.directives:
            if directive.kind == "action":
                continue
            element = build_ui_element(directive)
            key = f"{element.type}:{element.id}"
            if key in seen:
                # A repeated widget id replaces the earlier, less complete copy.
                elements[seen[key]] = element
            else:
                seen[key] = len(elements)
                elements.append(element)
        return ParsedMessage(
            cleaned_text=strip_spans(text or "", result),
            ui_elements=elements,
            actions=self.deduplicator.fold(result.directives),
        )


def parse_message(text: str, *, final: bool = False) -> ParsedMessage:
    return MessageParser().parse(text, final=final)


__all__ = [
    "MessageParser",
    "build_ui_element",
    "parse_message",
]
