"""Tokenizer for ACTION/BUTTON/FILE_UPLOAD directives embedded in assistant text.

The scanner is a pure function of the text it is given: it keeps no position
between calls, so re-running it on a longer prefix of the same stream yields
every earlier directive again plus whatever became parseable since.

Grammar (one directive)::

    KEYWORD ':' NAME ( WS? '|' WS? KEY ':' VALUE )*

``KEYWORD`` is one of ``ACTION``, ``BUTTON``, ``FILE_UPLOAD`` and must not be
glued to a preceding word character. ``NAME`` and ``KEY`` are ``\\w+``.
Short values stop at the first whitespace or pipe. Long-form values (see
``DirectiveSettings.long_form_keys``) may contain spaces and stop at a pipe,
a line break, or the next directive keyword; a pipe followed by a segment
without ``key:`` is treated as an accidental split and re-joined.

A directive still running into the end of the text is *pending*: while the
stream is open it is dropped (and hidden from display), once the stream is
final it is parsed as-is.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import ClassVar, Dict, FrozenSet, List, Literal, Optional, Union

from synapse_core.core.config import DEFAULT_LONG_FORM_KEYS

LOGGER = logging.getLogger("synapse.scanner")

KEYWORD_KINDS: Dict[str, str] = {
    "ACTION": "action",
    "BUTTON": "button",
    "FILE_UPLOAD": "file_upload",
}

_KEYWORD = re.compile(r"(?<!\w)(ACTION|BUTTON|FILE_UPLOAD):")
_WORD = re.compile(r"\w+")
_PARAM_KEY = re.compile(r"(\w+)[ \t]*:")
_PARTIAL_KEY = re.compile(r"\w*[ \t]*")
_HSPACE = " \t"


@dataclass(frozen=True, slots=True)
class _DirectiveBase:
    name: str
    raw_params: Dict[str, str] = field(default_factory=dict)
    start: int = 0
    end: int = 0

    kind: ClassVar[str] = ""

    @property
    def span(self) -> tuple[int, int]:
        return (self.start, self.end)


@dataclass(frozen=True, slots=True)
class ActionDirective(_DirectiveBase):
    kind: ClassVar[Literal["action"]] = "action"


@dataclass(frozen=True, slots=True)
class ButtonDirective(_DirectiveBase):
    kind: ClassVar[Literal["button"]] = "button"


@dataclass(frozen=True, slots=True)
class FileUploadDirective(_DirectiveBase):
    kind: ClassVar[Literal["file_upload"]] = "file_upload"


Directive = Union[ActionDirective, ButtonDirective, FileUploadDirective]

_DIRECTIVE_TYPES = {
    "action": ActionDirective,
    "button": ButtonDirective,
    "file_upload": FileUploadDirective,
}


class _Pending(Exception):
    """Raised internally when a directive runs into the end of an open stream."""


@dataclass(slots=True)
class ScanResult:
    directives: List[Directive]
    pending_start: Optional[int] = None

    def of_kind(self, kind: str) -> List[Directive]:
        return [directive for directive in self.directives if directive.kind == kind]


class DirectiveScanner:
    """Cursor-based parser; one instance can be shared across streams."""

    def __init__(self, long_form_keys: FrozenSet[str] | None = None) -> None:
        self.long_form_keys = frozenset(long_form_keys or DEFAULT_LONG_FORM_KEYS)

    def scan(self, text: str, *, final: bool = False) -> List[Directive]:
        return self.tokenize(text, final=final).directives

    def tokenize(self, text: str, *, final: bool = False) -> ScanResult:
        directives: List[Directive] = []
        pos = 0
        while True:
            match = _KEYWORD.search(text, pos)
            if match is None:
                return ScanResult(directives)
            kind = KEYWORD_KINDS[match.group(1)]
            try:
                directive = self._parse_directive(text, match.start(), match.end(), kind, final)
            except _Pending:
                return ScanResult(directives, pending_start=match.start())
            if directive is None:
                pos = match.end()
                continue
            directives.append(directive)
            pos = max(directive.end, match.end())

    def strip(self, text: str, *, final: bool = False) -> str:
        """Return ``text`` with every directive (and any pending tail) removed."""
        return strip_spans(text, self.tokenize(text, final=final))

    def _parse_directive(
        self,
        text: str,
        start: int,
        body: int,
        kind: str,
        final: bool,
    ) -> Optional[Directive]:
        length = len(text)
        name_match = _WORD.match(text, body)
        if name_match is None:
            if body >= length and not final:
                raise _Pending()
            LOGGER.debug("Directive keyword without a name treated as prose", extra={"offset": start})
            return None
        cursor = name_match.end()
        if cursor >= length and not final:
            raise _Pending()

        params: Dict[str, str] = {}
        end = cursor
        while True:
            after = _skip(text, cursor, _HSPACE)
            if after >= length:
                if not final:
                    raise _Pending()
                break
            if text[after] != "|":
                break
            segment = _skip(text, after + 1, _HSPACE)
            if segment >= length:
                if not final:
                    raise _Pending()
                # A trailing pipe at the end of a finished message belongs to the directive.
                end = segment
                break
            key_match = _PARAM_KEY.match(text, segment)
            if key_match is None:
                if not final and _PARTIAL_KEY.fullmatch(text, segment):
                    raise _Pending()
                break
            key = key_match.group(1)
            value_start = _skip(text, key_match.end(), _HSPACE)
            if key in self.long_form_keys:
                value, value_end = self._read_long_value(text, value_start, final)
            else:
                value, value_end = self._read_short_value(text, value_start, final)
            if value:
                existing = params.get(key)
                if not (key in self.long_form_keys and existing and len(existing) > len(value)):
                    params[key] = value
            cursor = end = value_end

        directive_type = _DIRECTIVE_TYPES[kind]
        return directive_type(name=name_match.group(0), raw_params=params, start=start, end=end)

    def _read_short_value(self, text: str, start: int, final: bool) -> tuple[str, int]:
        length = len(text)
        cursor = start
        while cursor < length and not text[cursor].isspace() and text[cursor] != "|":
            cursor += 1
        if cursor >= length and not final:
            raise _Pending()
        return text[start:cursor], cursor

    def _read_long_value(self, text: str, start: int, final: bool) -> tuple[str, int]:
        stop = _long_value_stop(text, start)
        if stop >= len(text) and not final:
            raise _Pending()
        value = text[start:stop].rstrip()
        end = start + len(value)
        while stop < len(text) and text[stop] == "|":
            segment_start = _skip(text, stop + 1, _HSPACE)
            segment_stop = _long_value_stop(text, segment_start)
            if segment_stop >= len(text) and not final:
                raise _Pending()
            piece = text[segment_start:segment_stop].strip()
            if not piece or _PARAM_KEY.match(text, segment_start):
                break
            value = f"{value} {piece}" if value else piece
            end = segment_start + len(text[segment_start:segment_stop].rstrip())
            stop = segment_stop
        return value.strip(), end


def _skip(text: str, cursor: int, chars: str) -> int:
    length = len(text)
    while cursor < length and text[cursor] in chars:
        cursor += 1
    return cursor


def _long_value_stop(text: str, start: int) -> int:
    stop = len(text)
    for terminator in ("|", "\n", "\r"):
        index = text.find(terminator, start)
        if index != -1 and index < stop:
            stop = index
    keyword = _KEYWORD.search(text, start, stop)
    if keyword is not None:
        stop = keyword.start()
    return stop


def strip_spans(text: str, result: ScanResult) -> str:
    """Cut directive spans out of ``text`` and tidy the whitespace left behind."""

    spans = sorted(directive.span for directive in result.directives)
    if result.pending_start is not None:
        spans.append((result.pending_start, len(text)))
    pieces: List[str] = []
    cursor = 0
    for start, end in spans:
        if start < cursor:
            continue
        left = text[cursor:start]
        right_char = text[end : end + 1]
        if not right_char or right_char.isspace():
            left = left.rstrip(_HSPACE)
        pieces.append(left)
        cursor = end
    pieces.append(text[cursor:])
    cleaned = "".join(pieces)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


_DEFAULT_SCANNER = DirectiveScanner()


def scan(text: str, *, final: bool = False) -> List[Directive]:
    """Scan with the default long-form key set."""
    return _DEFAULT_SCANNER.scan(text, final=final)


__all__ = [
    "ActionDirective",
    "ButtonDirective",
    "Directive",
    "DirectiveScanner",
    "FileUploadDirective",
    "ScanResult",
    "scan",
    "strip_spans",
]
