import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import scripts.inspect_directives as inspect_cli

RUNNER = CliRunner()
TRANSCRIPT = "Opening now. ACTION:navigate_course|slug:linear-algebra BUTTON:b1|label:Go|action:navigate"


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_scan_json_lists_directives_and_actions(tmp_path: Path) -> None:
    source = _write(tmp_path, "reply.txt", TRANSCRIPT)

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["cleaned_text"] == "Opening now."
    assert [(item["kind"], item["name"]) for item in payload["directives"]] == [
        ("action", "navigate_course"),
        ("button", "b1"),
    ]
    assert payload["actions"] == [{"name": "navigate_course", "params": {"slug": "linear-algebra"}}]
    assert payload["ui_elements"] == [
        {"type": "button", "id": "b1", "label": "Go", "action": "navigate", "params": {}}
    ]


def test_scan_partial_hides_trailing_directive(tmp_path: Path) -> None:
    source = _write(tmp_path, "reply.txt", TRANSCRIPT)

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source), "--partial", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [item["kind"] for item in payload["directives"]] == ["action"]
    assert payload["ui_elements"] == []


def test_scan_reads_recorded_stream(tmp_path: Path) -> None:
    records = [
        {"type": "name", "content": "Chad"},
        {"type": "text", "content": "Setting it. ACTION:set_exam_date|slug:algebra|da"},
        {"type": "text", "content": "te:March 3"},
        {"type": "done"},
    ]
    source = _write(tmp_path, "stream.log", "".join(f"data: {json.dumps(record)}\n" for record in records))

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source), "--sse", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["cleaned_text"] == "Setting it."
    assert payload["actions"] == [{"name": "set_exam_date", "params": {"slug": "algebra", "date": "March 3"}}]


def test_scan_renders_tables(tmp_path: Path) -> None:
    source = _write(tmp_path, "reply.txt", TRANSCRIPT)

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source)])

    assert result.exit_code == 0
    assert "Canonical actions" in result.stdout
    assert "navigate_course" in result.stdout
    assert "Display text" in result.stdout


def test_scan_without_directives(tmp_path: Path) -> None:
    source = _write(tmp_path, "reply.txt", "Just a plain answer.")

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source)])

    assert result.exit_code == 0
    assert "No directives found" in result.stdout


def test_scan_missing_transcript_errors(tmp_path: Path) -> None:
    result = RUNNER.invoke(inspect_cli.app, ["scan", str(tmp_path / "missing.txt")])

    assert result.exit_code == 2
    assert "Transcript" in result.output


def test_scan_honors_config_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = _write(tmp_path, "synapse.yaml", "directives:\n  long_form_keys: [note]\n")
    source = _write(tmp_path, "reply.txt", "ACTION:remember|note:buy milk and eggs")
    monkeypatch.setenv(inspect_cli.CONFIG_ENV_VAR, str(config))

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source), "--json"])

    assert result.exit_code == 0
    assert json.loads(result.stdout)["actions"] == [{"name": "remember", "params": {"note": "buy milk and eggs"}}]


def test_scan_missing_config_errors(tmp_path: Path) -> None:
    source = _write(tmp_path, "reply.txt", TRANSCRIPT)

    result = RUNNER.invoke(inspect_cli.app, ["scan", str(source), "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 2


def test_date_json_reports_heuristic() -> None:
    result = RUNNER.invoke(inspect_cli.app, ["date", "2 weeks", "--today", "2024-01-01", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"input": "2 weeks", "date": "2024-01-15", "heuristic": "weeks"}


def test_date_text_output() -> None:
    result = RUNNER.invoke(inspect_cli.app, ["date", "March 3", "--today", "2024-01-01"])

    assert result.exit_code == 0
    assert "2024-03-03" in result.stdout


def test_date_unrecognised_exits_with_one() -> None:
    result = RUNNER.invoke(inspect_cli.app, ["date", "someday", "--today", "2024-01-01"])

    assert result.exit_code == 1
    assert "No date recognised" in result.stdout


def test_date_rejects_bad_reference() -> None:
    result = RUNNER.invoke(inspect_cli.app, ["date", "2 weeks", "--today", "01/01/2024"])

    assert result.exit_code == 2


def test_merge_writes_output(tmp_path: Path) -> None:
    server = _write(
        tmp_path,
        "server.json",
        json.dumps({"subject": "Algebra", "surgeLog": [{"sessionId": "s1", "timestamp": "2024-01-01"}]}),
    )
    local = _write(tmp_path, "local.json", json.dumps({"surgeLog": []}))
    output = tmp_path / "out" / "merged.json"

    result = RUNNER.invoke(inspect_cli.app, ["merge", str(server), str(local), "-o", str(output)])

    assert result.exit_code == 0
    assert json.loads(output.read_text(encoding="utf-8")) == {"subject": "Algebra", "surgeLog": []}


def test_merge_prints_to_stdout(tmp_path: Path) -> None:
    server = _write(tmp_path, "server.json", json.dumps({"subject": "Algebra"}))
    local = _write(tmp_path, "local.json", json.dumps({"course_language_name": "Swedish"}))

    result = RUNNER.invoke(inspect_cli.app, ["merge", str(server), str(local)])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "subject": "Algebra",
        "course_language_name": "Swedish",
        "surgeLog": [],
    }


def test_merge_rejects_non_object(tmp_path: Path) -> None:
    server = _write(tmp_path, "server.json", "[1, 2, 3]")
    local = _write(tmp_path, "local.json", "{}")

    result = RUNNER.invoke(inspect_cli.app, ["merge", str(server), str(local)])

    assert result.exit_code == 2
