"""Directive protocol: scanning, folding and the text heuristics around it."""

from .dates import DateHeuristic, NaturalDateParser, parse_natural_date
from .dedupe import ActionDeduplicator, dedupe_actions
from .heuristics import CourseNameExtractor, TextHeuristic, extract_quick_learn_query
from .message import MessageParser, build_ui_element, parse_message
from .scanner import (
    ActionDirective,
    ButtonDirective,
    Directive,
    DirectiveScanner,
    FileUploadDirective,
    ScanResult,
    scan,
)
from .slugs import SlugResolver, normalize_slug, slugify, unique_slug

__all__ = [
    "ActionDeduplicator",
    "ActionDirective",
    "ButtonDirective",
    "CourseNameExtractor",
    "DateHeuristic",
    "Directive",
    "DirectiveScanner",
    "FileUploadDirective",
    "MessageParser",
    "NaturalDateParser",
    "ScanResult",
    "SlugResolver",
    "TextHeuristic",
    "build_ui_element",
    "dedupe_actions",
    "extract_quick_learn_query",
    "normalize_slug",
    "parse_message",
    "parse_natural_date",
    "scan",
    "slugify",
    "unique_slug",
]
