from __future__ import annotations

import os
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from synapse_core import get_version
from synapse_core.core.config import AppConfig, load_app_config
from synapse_core.directives.dates import NaturalDateParser
from synapse_core.directives.message import MessageParser
from synapse_core.directives.slugs import SlugResolver
from synapse_core.models import CanonicalAction, SubjectRecord, UIElement
from synapse_core.sync.merge import merge_course_data

REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ENV_VAR = "SYNAPSE_CONFIG"


class DirectiveApiSettings(BaseModel):
    """Runtime configuration for the directive API."""

    config_path: Path | None = Field(default=None)

    def load(self) -> AppConfig:
        try:
            return load_app_config(self.config_path)
        except (OSError, ValueError) as exc:
            raise HTTPException(status_code=500, detail=f"Could not load config: {exc}") from exc


@lru_cache
def get_settings() -> DirectiveApiSettings:
    load_dotenv(REPO_ROOT / ".env")
    raw = os.getenv(CONFIG_ENV_VAR)
    return DirectiveApiSettings(config_path=Path(raw).expanduser().resolve() if raw else None)


def get_config(settings: DirectiveApiSettings = Depends(get_settings)) -> AppConfig:
    return settings.load()


class HealthResponse(BaseModel):
    status: str
    version: str


class ParseRequest(BaseModel):
    text: str
    final: bool = True


class ParseResponse(BaseModel):
    cleaned_text: str
    ui_elements: List[UIElement] = Field(default_factory=list)
    actions: List[CanonicalAction] = Field(default_factory=list)


class DateRequest(BaseModel):
    text: str
    today: date | None = None


class DateResponse(BaseModel):
    input: str
    date: str | None = None
    heuristic: str | None = None


class MergeRequest(BaseModel):
    server: Dict[str, Any] | None = None
    local: Dict[str, Any] | None = None


class MergeResponse(BaseModel):
    record: Dict[str, Any]


class SlugRequest(BaseModel):
    value: str
    subjects: List[SubjectRecord] = Field(default_factory=list)
    verified: bool = Field(default=False, description="Only answer with a slug present in `subjects`.")


class SlugResponse(BaseModel):
    value: str
    slug: str | None = None
    known: bool = False


app = FastAPI(title="Synapse Directive API", version=get_version())
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", version=get_version())


@app.post("/directives/parse", response_model=ParseResponse)
def parse_directives(request: ParseRequest, config: AppConfig = Depends(get_config)) -> ParseResponse:
    parsed = MessageParser(config.directives).parse(request.text, final=request.final)
    return ParseResponse(cleaned_text=parsed.cleaned_text, ui_elements=parsed.ui_elements, actions=parsed.actions)


@app.post("/dates/parse", response_model=DateResponse)
def parse_date(request: DateRequest) -> DateResponse:
    matched = NaturalDateParser().match(request.text, today=request.today)
    if matched is None:
        return DateResponse(input=request.text)
    parsed, label = matched
    return DateResponse(input=request.text, date=parsed.isoformat(), heuristic=label)


@app.post("/sessions/merge", response_model=MergeResponse)
def merge_sessions(request: MergeRequest) -> MergeResponse:
    if request.server is None and request.local is None:
        raise HTTPException(status_code=400, detail="Provide at least one of `server` or `local`.")
    return MergeResponse(record=merge_course_data(request.server, request.local))


@app.post("/slugs/resolve", response_model=SlugResponse)
def resolve_slug(request: SlugRequest) -> SlugResponse:
    resolver = SlugResolver(request.subjects)
    slug = resolver.resolve_known(request.value) if request.verified else resolver.resolve(request.value)
    return SlugResponse(value=request.value, slug=slug, known=resolver.is_known(slug))
