"""
Typed configuration helpers for the directive core.

Every section has working defaults so the dispatcher and scanner can be
constructed without a config file; ``load_app_config`` layers a YAML file on
top of those defaults.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

DEFAULT_LONG_FORM_KEYS: tuple[str, ...] = (
    "topic",
    "name",
    "syllabus",
    "message",
    "label",
    "buttonLabel",
    "description",
    "query",
    "date",
)

_LIST_DELIMITERS = re.compile(r"[;,]")


def _coerce_str_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [token.strip() for token in _LIST_DELIMITERS.split(value) if token.strip()]
    if isinstance(value, (list, tuple, set)):
        return [item.strip() if isinstance(item, str) else item for item in value]
    return value


class LanguageOption(BaseModel):
    """One entry in the closed set of course languages."""

    label: str
    code: str = Field(..., min_length=2, max_length=5)

    @field_validator("code")
    @classmethod
    def lower_code(cls, value: str) -> str:
        return value.strip().lower()


DEFAULT_LANGUAGES: tuple[tuple[str, str], ...] = (
    ("English", "en"),
    ("Swedish", "sv"),
    ("Spanish", "es"),
    ("French", "fr"),
    ("German", "de"),
    ("Norwegian", "no"),
    ("Danish", "da"),
    ("Finnish", "fi"),
    ("Italian", "it"),
    ("Portuguese", "pt"),
    ("Polish", "pl"),
    ("Dutch", "nl"),
)


def default_languages() -> List[LanguageOption]:
    return [LanguageOption(label=label, code=code) for label, code in DEFAULT_LANGUAGES]


class DirectiveSettings(BaseModel):
    """Grammar-level knobs for the ACTION/BUTTON/FILE_UPLOAD protocol."""

    model_config = ConfigDict(extra="ignore")

    long_form_keys: List[str] = Field(default_factory=lambda: list(DEFAULT_LONG_FORM_KEYS))
    placeholder_slugs: List[str] = Field(default_factory=lambda: ["new-course", "new_course"])
    placeholder_prefixes: List[str] = Field(default_factory=lambda: ["new-"])

    @field_validator("long_form_keys", "placeholder_slugs", "placeholder_prefixes", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _coerce_str_list(value)

    @property
    def long_form(self) -> frozenset[str]:
        return frozenset(self.long_form_keys)

    def is_placeholder_slug(self, slug: str | None) -> bool:
        if not slug:
            return True
        lowered = slug.strip().lower()
        if lowered in {item.lower() for item in self.placeholder_slugs}:
            return True
        return any(lowered.startswith(prefix.lower()) for prefix in self.placeholder_prefixes)


class ServicesSettings(BaseModel):
    """Connection info for the hosted course services (summary, naming, uploads)."""

    model_config = ConfigDict(extra="allow")

    api_base: str = "http://localhost:3000"
    api_key_env: str | None = "SYNAPSE_API_KEY"
    timeout: float = Field(default=60.0, gt=0.0)

    @field_validator("api_base")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")


class CreationSettings(BaseModel):
    """Thresholds used by the course-creation pipeline."""

    placeholder_names: List[str] = Field(default_factory=lambda: ["New Course"])
    min_name_length: int = Field(default=3, ge=1)
    exam_preview_chars: int = Field(default=2000, ge=100)
    exam_preview_min_chars: int = Field(default=50, ge=0)
    generic_slugs: List[str] = Field(default_factory=lambda: ["subject", "course"])
    generic_slug_prefixes: List[str] = Field(default_factory=lambda: ["new-"])
    text_extensions: List[str] = Field(default_factory=lambda: [".txt", ".md", ".markdown"])

    @field_validator(
        "placeholder_names",
        "generic_slugs",
        "generic_slug_prefixes",
        "text_extensions",
        mode="before",
    )
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _coerce_str_list(value)

    @model_validator(mode="after")
    def check_preview_bounds(self) -> "CreationSettings":
        if self.exam_preview_min_chars >= self.exam_preview_chars:
            raise ValueError("exam_preview_min_chars must be smaller than exam_preview_chars")
        return self

    def is_placeholder_name(self, name: str | None) -> bool:
        if not name or len(name.strip()) < self.min_name_length:
            return True
        return name.strip() in self.placeholder_names

    def is_generic_slug(self, slug: str) -> bool:
        if slug in self.generic_slugs:
            return True
        return any(slug.startswith(prefix) for prefix in self.generic_slug_prefixes)


class TutorialSettings(BaseModel):
    """Playback pacing for the scripted walkthrough."""

    char_delay: float = Field(default=0.018, ge=0.0)
    step_delay: float = Field(default=0.25, ge=0.0)


class AppConfig(BaseModel):
    """Top-level configuration consumed by apps/ and scripts/."""

    model_config = ConfigDict(extra="ignore")

    directives: DirectiveSettings = Field(default_factory=DirectiveSettings)
    services: ServicesSettings = Field(default_factory=ServicesSettings)
    creation: CreationSettings = Field(default_factory=CreationSettings)
    tutorial: TutorialSettings = Field(default_factory=TutorialSettings)
    languages: List[LanguageOption] = Field(default_factory=default_languages)

    @model_validator(mode="before")
    @classmethod
    def coerce_language_pairs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        languages = data.get("languages")
        if isinstance(languages, dict):
            # Allow the compact `{English: en, Swedish: sv}` form.
            payload = dict(data)
            payload["languages"] = [{"label": label, "code": code} for label, code in languages.items()]
            return payload
        return data


def normalize_language_name(value: Optional[str], options: Sequence[LanguageOption]) -> str:
    """Map a label or code onto the canonical label; unknown values pass through trimmed."""

    if not value:
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""
    lowered = trimmed.lower()
    for option in options:
        if option.label.lower() == lowered or option.code == lowered:
            return option.label
    return trimmed


def language_code(value: Optional[str], options: Sequence[LanguageOption]) -> str | None:
    if not value:
        return None
    lowered = value.strip().lower()
    for option in options:
        if option.label.lower() == lowered or option.code == lowered:
            return option.code
    return None


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def load_app_config(path: Path | None = None) -> AppConfig:
    """Load the app config; ``None`` returns the built-in defaults."""
    if path is None:
        return AppConfig()
    path = path.expanduser().resolve()
    data = read_yaml_file(path)
    try:
        return AppConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid app config in {path}") from exc
