from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from conftest import FakeExecutor, ListSink, exited, missing, ok
from aqf.cli import app
from aqf.memory.store import StateStore
from aqf.orchestrator import Orchestrator
from aqf.routes.resolver import ROUTE_STATE_KEY


def _write_config(tmp_path: Path, extra: str = "") -> Path:
    config_path = tmp_path / "aqf.yaml"
    config_path.write_text(
        textwrap.dedent(
            f"""
            fixers:
              codex-cli: false
              claude-cli: true
            paths:
              db_path: "{(tmp_path / 'aqf.sqlite').as_posix()}"
            """
        ).strip()
        + "\n"
        + extra,
        encoding="utf-8",
    )
    return config_path


@pytest.fixture()
def patched(monkeypatch) -> tuple[FakeExecutor, ListSink]:
    executor = FakeExecutor()
    sink = ListSink()
    original = Orchestrator.from_config

    def _from_config(config, config_path, **_kwargs):
        return original(config, config_path, executor=executor, sink=sink)

    monkeypatch.setattr(Orchestrator, "from_config", _from_config)
    return executor, sink


def test_init_writes_template_once(tmp_path: Path) -> None:
    config_path = tmp_path / "aqf.yaml"
    runner = CliRunner()

    result = runner.invoke(app, ["init", "--config", str(config_path)], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["routing"]["enable-wsl-routes"] is True

    again = runner.invoke(app, ["init", "--config", str(config_path)])
    assert again.exit_code == 1
    assert "--force" in again.output


def test_routes_lists_native_only_catalog(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        app,
        ["routes", "--fixer", "Claude CLI", "--config", str(tmp_path / "aqf.yaml"), "--no-wsl"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 8
    assert lines[0] == "native:claude:p\tclaude -p"
    assert not any(line.startswith("wsl") for line in lines)


def test_routes_rejects_unknown_fixer(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["routes", "--fixer", "gemini", "--config", str(tmp_path / "aqf.yaml")])

    assert result.exit_code != 0
    assert "Unknown fixer" in result.output


def test_invalid_config_exits(tmp_path: Path) -> None:
    config_path = tmp_path / "aqf.yaml"
    config_path.write_text("- not a mapping\n", encoding="utf-8")

    result = CliRunner().invoke(app, ["status", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "mapping" in result.output


def test_resolve_prints_route(tmp_path: Path, patched) -> None:
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(
        app, ["resolve", "--fixer", "codex-cli", "--config", str(config_path)], catch_exceptions=False
    )

    assert result.exit_code == 0, result.output
    assert "Codex CLI: codex exec (--sandbox workspace-write --skip-git-repo-check)" in result.output
    assert "[native:codex:exec:workspace-write-skipgit]" in result.output


def test_resolve_without_route_exits(tmp_path: Path, patched) -> None:
    executor, _ = patched
    executor.handler = lambda spec: missing(spec.command)
    config_path = _write_config(tmp_path)

    result = CliRunner().invoke(app, ["resolve", "--fixer", "claude-cli", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Claude CLI: no working CLI route was found." in result.output


def test_fix_success_then_status_and_forget(tmp_path: Path, patched) -> None:
    executor, sink = patched
    executor.handler = lambda spec: ok() if "--help" in spec.argv else ok(stdout="Applied fix.")
    config_path = _write_config(tmp_path)
    source = tmp_path / "app.py"
    source.write_text("import os\n", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "fix",
            str(source),
            "--line",
            "1",
            "--message",
            "unused import",
            "--fixer",
            "claude-cli",
            "--config",
            str(config_path),
        ],
        catch_exceptions=False,
    )
    assert result.exit_code == 0, result.output
    assert "Claude CLI: fix applied via claude -p" in result.output
    assert "Applied fix." in sink.text

    status = runner.invoke(app, ["status", "--config", str(config_path)], catch_exceptions=False)
    assert status.exit_code == 0, status.output
    assert "- Claude CLI [enabled] route: native:claude:p" in status.output
    assert "- Codex CLI [disabled] route: (unresolved)" in status.output
    assert "WSL routes: enabled" in status.output

    forget = runner.invoke(
        app, ["forget", "--fixer", "claude-cli", "--config", str(config_path)], catch_exceptions=False
    )
    assert forget.exit_code == 0, forget.output
    assert f"Cleared {ROUTE_STATE_KEY} entry for claude-cli." in forget.output
    with StateStore(tmp_path / "aqf.sqlite") as store:
        assert store.get(ROUTE_STATE_KEY) == {}


def test_fix_failure_reports_error(tmp_path: Path, patched) -> None:
    executor, sink = patched
    executor.handler = lambda spec: ok() if "--help" in spec.argv else exited(3, stderr="quota exhausted")
    config_path = _write_config(tmp_path)
    source = tmp_path / "app.py"
    source.write_text("x = 1\n", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["fix", str(source), "--fixer", "claude-cli", "--config", str(config_path)],
    )

    assert result.exit_code == 1
    assert "AI Quick Fix failed: Claude CLI failed: claude -p: exited with code 3: quota exhausted" in result.output
    assert sink.lines[-1] == "[error] Claude CLI failed: claude -p: exited with code 3: quota exhausted"
    assert "Claude CLI Quick Fix Failed" in sink.text


def test_fix_refuses_disabled_fixer(tmp_path: Path, patched) -> None:
    executor, sink = patched
    config_path = _write_config(tmp_path)
    source = tmp_path / "app.py"
    source.write_text("x = 1\n", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["fix", str(source), "--fixer", "codex-cli", "--config", str(config_path)],
    )

    assert result.exit_code == 1
    assert "AI Quick Fix failed: Codex CLI is disabled in settings." in result.output
    assert executor.calls == []
    assert sink.lines == ["[error] Codex CLI is disabled in settings."]
