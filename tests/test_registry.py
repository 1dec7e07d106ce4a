"""Tests for foreman.command (registry, dispatch, shared context)."""

from __future__ import annotations

import pytest

from foreman.command.base import (
    CommandContext,
    FunctionCommand,
    OutputChannel,
    SharedContext,
    text_arg,
)
from foreman.command.registry import CommandRegistry, format_transcript
from foreman.errors import CommandConflictError, CommandInvocationFailed, CommandNotFound
from foreman.script.value import Number, ScriptValue, Text


async def _echo(context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
    return args[0] if args else Text("")


async def _fail(context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
    raise CommandInvocationFailed("fail", "it broke")


def _registry() -> CommandRegistry:
    registry = CommandRegistry()
    registry.register(
        "basics", FunctionCommand("echo", _echo, "Echo the input.", [("text", "Text.")])
    )
    registry.register("basics", FunctionCommand("fail", _fail, "Always fails."))
    return registry


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_names_in_registration_order(self) -> None:
        assert _registry().names() == ["echo", "fail"]

    def test_owner(self) -> None:
        assert _registry().owner("echo") == "basics"
        assert _registry().owner("missing") is None

    def test_conflict_names_both_plugins(self) -> None:
        registry = _registry()
        with pytest.raises(CommandConflictError) as exc_info:
            registry.register("other", FunctionCommand("echo", _echo))
        assert exc_info.value.first_plugin == "basics"
        assert exc_info.value.second_plugin == "other"

    def test_list_excludes_disabled(self) -> None:
        names = [c.name for c in _registry().list(excluding=["fail"])]
        assert names == ["echo"]

    def test_contains_and_len(self) -> None:
        registry = _registry()
        assert "echo" in registry
        assert len(registry) == 2


class TestCatalogue:
    def test_lists_purpose_and_args(self) -> None:
        text = _registry().catalogue()
        assert "    echo:\n        purpose: Echo the input." in text
        assert "            - text: Text." in text

    def test_excluded_commands_are_hidden(self) -> None:
        assert "fail" not in _registry().catalogue(excluding=["fail"])


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    async def test_success_writes_transcript(self, context: CommandContext) -> None:
        output = OutputChannel()
        result = await _registry().dispatch(context, "echo", [Text("hi")], output)
        assert result == Text("hi")
        assert output.lines == ['Command echo("hi") was successful and returned:\nhi']

    async def test_unknown_command(self, context: CommandContext) -> None:
        output = OutputChannel()
        with pytest.raises(CommandNotFound) as exc_info:
            await _registry().dispatch(context, "nope", [], output)
        assert "Available commands: echo, fail" in str(exc_info.value)
        assert len(output) == 0

    async def test_command_error_propagates_unchanged(self, context: CommandContext) -> None:
        output = OutputChannel()
        with pytest.raises(CommandInvocationFailed, match="it broke"):
            await _registry().dispatch(context, "fail", [], output)
        assert len(output) == 0


class TestFormatTranscript:
    def test_format(self) -> None:
        text = format_transcript("count", [Number(2)], Number(4))
        assert text == "Command count(2) was successful and returned:\n4"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestTextArg:
    def test_missing_argument(self) -> None:
        with pytest.raises(CommandInvocationFailed, match="missing argument 'path'"):
            text_arg("read_file", [], 0, "path")

    def test_converts_to_text(self) -> None:
        assert text_arg("x", [Number(5)], 0, "n") == "5"


class TestSharedContext:
    def test_lease_releases_on_error(self, context: CommandContext) -> None:
        shared = SharedContext(context)
        with pytest.raises(RuntimeError):
            with shared.lease():
                assert shared.locked
                raise RuntimeError("inside")
        assert not shared.locked

    def test_lease_yields_the_context(self, context: CommandContext) -> None:
        shared = SharedContext(context)
        with shared.lease() as leased:
            assert leased is context


class TestOutputChannel:
    def test_text_joins_lines(self) -> None:
        output = OutputChannel()
        output.write("a")
        output.write("b")
        assert output.text() == "a\nb"
        output.clear()
        assert output.text() == ""
