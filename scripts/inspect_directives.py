"""CLI helpers for inspecting directive parsing, date expressions and session merges."""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from apps.chat.stream import SSEDecoder
from synapse_core.core.config import AppConfig, load_app_config
from synapse_core.directives.dates import NaturalDateParser
from synapse_core.directives.message import MessageParser
from synapse_core.directives.scanner import DirectiveScanner
from synapse_core.sync.merge import merge_course_data

CONFIG_ENV_VAR = "SYNAPSE_CONFIG"

app = typer.Typer(help="Inspect directives, date expressions and session merges.")
console = Console()


def _load_config(path: Path | None) -> AppConfig:
    candidate = path or (Path(os.environ[CONFIG_ENV_VAR]) if os.environ.get(CONFIG_ENV_VAR) else None)
    if candidate is None:
        return load_app_config(None)
    if not candidate.expanduser().exists():
        raise typer.BadParameter(f"Config file not found at {candidate}")
    try:
        return load_app_config(candidate)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def read_transcript(path: Path, *, sse: bool = False) -> str:
    """Return assistant text from a plain file or from a recorded ``data:`` stream."""

    if not path.exists():
        raise typer.BadParameter(f"Transcript not found at {path}")
    raw = path.read_text(encoding="utf-8")
    if not sse:
        return raw
    decoder = SSEDecoder()
    events = decoder.feed(raw) + decoder.flush()
    return "".join(event.content for event in events if event.type == "text")


def _read_json_object(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise typer.BadParameter(f"File not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object")
    return data


def _parse_today(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"--today must be YYYY-MM-DD, got {raw!r}") from exc


@app.command()
def scan(
    source: Path = typer.Argument(..., help="Text file with assistant output, or a recorded stream with --sse."),
    sse: bool = typer.Option(False, "--sse", help="Treat the file as `data: <json>` stream records."),
    partial: bool = typer.Option(False, "--partial", help="Parse as an unfinished stream."),
    config: Path | None = typer.Option(None, "--config", show_default=False, help="YAML config overriding defaults."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of tables."),
) -> None:
    """List directives, UI elements and canonical actions found in a transcript."""

    settings = _load_config(config)
    text = read_transcript(source, sse=sse)
    scanner = DirectiveScanner(settings.directives.long_form)
    directives = scanner.scan(text, final=not partial)
    parsed = MessageParser(settings.directives).parse(text, final=not partial)

    if as_json:
        payload = {
            "cleaned_text": parsed.cleaned_text,
            "directives": [
                {"kind": directive.kind, "name": directive.name, "params": dict(directive.raw_params)}
                for directive in directives
            ],
            "ui_elements": [element.model_dump(exclude_none=True) for element in parsed.ui_elements],
            "actions": [action.model_dump() for action in parsed.actions],
        }
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    if not directives:
        console.print("[yellow]No directives found.[/yellow]")
    else:
        table = Table("Kind", "Name", "Params", "Span")
        for directive in directives:
            params = ", ".join(f"{key}={value}" for key, value in directive.raw_params.items())
            table.add_row(directive.kind, directive.name, params, f"{directive.start}-{directive.end}")
        console.print(table)

    if parsed.actions:
        actions = Table("Action", "Params", title="Canonical actions")
        for action in parsed.actions:
            actions.add_row(action.name, json.dumps(action.params, ensure_ascii=False))
        console.print(actions)
    console.print(f"[bold]Display text:[/bold] {parsed.cleaned_text or '[dim](empty)[/dim]'}")


@app.command("date")
def parse_date(
    expression: str = typer.Argument(..., help="Free-text date, e.g. '2 weeks' or 'March 15th'."),
    today: Optional[str] = typer.Option(None, "--today", help="Reference date (YYYY-MM-DD)."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Resolve a date expression the way set_exam_date does."""

    reference = _parse_today(today)
    matched = NaturalDateParser().match(expression, today=reference)
    if as_json:
        payload = {
            "input": expression,
            "date": matched[0].isoformat() if matched else None,
            "heuristic": matched[1] if matched else None,
        }
        typer.echo(json.dumps(payload, indent=2))
        if matched is None:
            raise typer.Exit(code=1)
        return
    if matched is None:
        console.print(f"[yellow]No date recognised in[/yellow] {expression!r}")
        raise typer.Exit(code=1)
    console.print(f"{matched[0].isoformat()} [dim]({matched[1]})[/dim]")


@app.command()
def merge(
    server: Path = typer.Argument(..., help="JSON file with the server record."),
    local: Path = typer.Argument(..., help="JSON file with the locally cached record."),
    output: Path | None = typer.Option(None, "--output", "-o", show_default=False, help="Write the merged record here."),
) -> None:
    """Merge a server and a local course record."""

    merged = merge_course_data(_read_json_object(server), _read_json_object(local))
    rendered = json.dumps(merged, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(rendered)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(rendered + "\n", encoding="utf-8")
    console.print(f"[green]Merged record written to[/green] {output}")


if __name__ == "__main__":  # pragma: no cover
    app()
