"""Tests for foreman.cli (init, commands, run guards, event rendering)."""

from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from foreman.cli import app, render_event
from foreman.config import ForemanConfig
from foreman.session.wire import EventType, WireEvent

runner = CliRunner()


@pytest.fixture(autouse=True)
def in_tmp(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for var in ("FOREMAN_MODEL", "FOREMAN_FAST_MODEL", "FOREMAN_TOKEN_BUDGET"):
        monkeypatch.delenv(var, raising=False)


def _write_config(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yml"
    path.write_text(text)
    return str(path)


class TestInit:
    def test_writes_default_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "config.yml"])
        assert result.exit_code == 0
        assert (tmp_path / "config.yml").read_text() == ForemanConfig.default_yaml()

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        (tmp_path / "config.yml").write_text("keep me")
        result = runner.invoke(app, ["init", "config.yml"])
        assert result.exit_code == 1
        assert (tmp_path / "config.yml").read_text() == "keep me"

    def test_force_overwrites(self, tmp_path: Path) -> None:
        (tmp_path / "config.yml").write_text("old")
        result = runner.invoke(app, ["init", "config.yml", "--force"])
        assert result.exit_code == 0
        assert (tmp_path / "config.yml").read_text() == ForemanConfig.default_yaml()


class TestCommands:
    def test_lists_catalogue(self, tmp_path: Path) -> None:
        path = _write_config(
            tmp_path,
            f"plugins:\n  files:\n    workspace: {tmp_path / 'ws'}\n"
            "disabled_commands: [list_files]\n",
        )
        result = runner.invoke(app, ["commands", "--config", path])
        assert result.exit_code == 0
        assert "write_file" in result.output
        assert "read_file" in result.output
        assert "(disabled)" in result.output

    def test_unknown_plugin(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, "plugins:\n  web: {}\n")
        result = runner.invoke(app, ["commands", "--config", path])
        assert result.exit_code == 1


class TestRun:
    def test_requires_goals(self, tmp_path: Path) -> None:
        path = _write_config(tmp_path, "agent:\n  goals: []\n")
        result = runner.invoke(app, ["run", "--config", path])
        assert result.exit_code == 1


class TestRenderEvent:
    def _render(self, event: WireEvent) -> str:
        console = Console(record=True, width=120)
        render_event(event, out=console)
        return console.export_text()

    def test_thought(self) -> None:
        text = self._render(
            WireEvent(
                type=EventType.THOUGHT,
                data={
                    "points": ["learned [brackets]"],
                    "endgoal": "goal",
                    "plan": ["step one"],
                    "step": "step one",
                    "commands": [{"name": "write_file", "args": ["a", "b"]}],
                },
            )
        )
        assert "learned [brackets]" in text
        assert "1. step one" in text
        assert "> write_file" in text

    def test_retry(self) -> None:
        text = self._render(
            WireEvent(
                type=EventType.RETRY,
                data={"attempt": 2, "attempts": 5, "error": "ResponseParseError: bad"},
            )
        )
        assert "Attempt 2/5 failed: ResponseParseError: bad" in text

    def test_status(self) -> None:
        text = self._render(WireEvent(type=EventType.STATUS, data={"message": "hello"}))
        assert text.strip() == "hello"
