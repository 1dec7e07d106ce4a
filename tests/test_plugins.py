"""Tests for foreman.plugin (PluginSet and the built-in plugins)."""

from __future__ import annotations

from pathlib import Path

import pytest

from foreman.agent.response import GoalInformation, Takeaway, Thought
from foreman.command.base import CommandContext, OutputChannel
from foreman.command.registry import CommandRegistry
from foreman.errors import (
    CommandConflictError,
    CommandInvocationFailed,
    PluginDependencyError,
    ScriptError,
)
from foreman.memory import LocalMemoryStore
from foreman.plugin.base import Plugin, PluginSet
from foreman.plugin.builtin import BUILTIN_PLUGINS, DelegatePlugin, FilesPlugin, MemoryPlugin
from foreman.plugin.builtin.files import ReadFileCommand
from foreman.script.value import List, Number, Text


class NeedsMemory(Plugin):
    name = "needy"
    dependencies = ("memory",)


# ---------------------------------------------------------------------------
# PluginSet
# ---------------------------------------------------------------------------


class TestPluginSet:
    def test_missing_dependency(self) -> None:
        with pytest.raises(PluginDependencyError) as exc_info:
            PluginSet([NeedsMemory()]).check_dependencies()
        assert str(exc_info.value) == "Cannot run needy without its needed dependency of memory."

    def test_dependency_satisfied(self, tmp_path: Path) -> None:
        plugins = PluginSet([MemoryPlugin({"path": str(tmp_path / "m.jsonl")}), NeedsMemory()])
        plugins.check_dependencies()

    async def test_setup_registers_and_creates_data(
        self, tmp_path: Path, context: CommandContext
    ) -> None:
        plugins = PluginSet(
            [
                FilesPlugin({"workspace": str(tmp_path / "ws")}),
                MemoryPlugin({"path": str(tmp_path / "m.jsonl")}),
            ]
        )
        registry = CommandRegistry()

        await plugins.setup(registry, context)

        assert registry.names() == [
            "write_file",
            "read_file",
            "list_files",
            "remember",
            "recall",
        ]
        assert registry.owner("recall") == "memory"
        assert isinstance(context.data("memory"), LocalMemoryStore)
        assert context.data("files") is None

    def test_duplicate_commands_conflict(self, tmp_path: Path) -> None:
        plugins = PluginSet(
            [
                FilesPlugin({"workspace": str(tmp_path / "a")}),
                FilesPlugin({"workspace": str(tmp_path / "b")}),
            ]
        )
        with pytest.raises(CommandConflictError):
            plugins.register_commands(CommandRegistry())

    def test_get(self, tmp_path: Path) -> None:
        files = FilesPlugin({"workspace": str(tmp_path)})
        plugins = PluginSet([files])
        assert plugins.get("files") is files
        assert plugins.get("memory") is None
        assert len(plugins) == 1

    def test_builtin_names(self) -> None:
        assert set(BUILTIN_PLUGINS) == {"files", "memory", "delegate"}


# ---------------------------------------------------------------------------
# files
# ---------------------------------------------------------------------------


class TestFilesPlugin:
    @pytest.fixture
    def files(self, tmp_path: Path) -> FilesPlugin:
        return FilesPlugin({"workspace": str(tmp_path / "ws")})

    def _command(self, plugin: FilesPlugin, name: str):
        return next(c for c in plugin.commands if c.name == name)

    async def test_write_then_read(self, files: FilesPlugin, context: CommandContext) -> None:
        write = self._command(files, "write_file")
        read = self._command(files, "read_file")

        result = await write.invoke(context, [Text("sub/note.txt"), Text("a\nb")])
        assert result == Text("Wrote 2 lines to sub/note.txt")
        assert await read.invoke(context, [Text("sub/note.txt")]) == Text("a\nb")

    async def test_list_files(self, files: FilesPlugin, context: CommandContext) -> None:
        write = self._command(files, "write_file")
        await write.invoke(context, [Text("b.txt"), Text("")])
        await write.invoke(context, [Text("a/c.txt"), Text("")])

        listing = await self._command(files, "list_files").invoke(context, [])

        assert listing == List([Text("a/"), Text("b.txt")])

    async def test_escaping_workspace_fails(
        self, files: FilesPlugin, context: CommandContext
    ) -> None:
        read = self._command(files, "read_file")
        with pytest.raises(CommandInvocationFailed, match="outside the workspace"):
            await read.invoke(context, [Text("../secret")])

    async def test_missing_file(self, files: FilesPlugin, context: CommandContext) -> None:
        with pytest.raises(CommandInvocationFailed, match="File not found"):
            await self._command(files, "read_file").invoke(context, [Text("nope.txt")])

    async def test_missing_argument(self, files: FilesPlugin, context: CommandContext) -> None:
        with pytest.raises(CommandInvocationFailed, match="missing argument 'content'"):
            await self._command(files, "write_file").invoke(context, [Text("x.txt")])

    async def test_read_strips_control_characters(
        self, tmp_path: Path, context: CommandContext
    ) -> None:
        workspace = tmp_path / "ws"
        workspace.mkdir()
        (workspace / "raw.txt").write_text("a\x00b\x07c")
        read = ReadFileCommand(str(workspace))
        assert await read.invoke(context, [Text("raw.txt")]) == Text("abc")


# ---------------------------------------------------------------------------
# memory
# ---------------------------------------------------------------------------



class TestMemoryPlugin:
    @pytest.fixture
    async def memory(self, tmp_path: Path, context: CommandContext) -> MemoryPlugin:
        plugin = MemoryPlugin({"path": str(tmp_path / "m.jsonl"), "recall_limit": 2})
        context.plugin_data[plugin.name] = await plugin.create_data()
        return plugin

    async def test_remember_and_recall(
        self, memory: MemoryPlugin, context: CommandContext
    ) -> None:
        remember, recall = memory.commands
        await remember.invoke(context, [Text("The capital of France is Paris")])
        await remember.invoke(context, [Text("Bananas are yellow")])

        found = await recall.invoke(context, [Text("capital France"), Number(1)])

        assert found == List([Text("The capital of France is Paris")])

    async def test_commands_fail_without_store(self, context: CommandContext) -> None:
        remember = MemoryPlugin().commands[0]
        with pytest.raises(CommandInvocationFailed, match="not available"):
            await remember.invoke(context, [Text("x")])

    async def test_context_fragment_from_previous_reply(
        self, memory: MemoryPlugin, context: CommandContext
    ) -> None:
        store = context.data("memory")
        await store.store_memory("agent", "haiku.txt holds the ocean haiku")

        fragment = await memory.create_context(context, "I should check the haiku file")

        assert fragment == (
            "These are memories that may be relevant to what you are doing:\n"
            "- haiku.txt holds the ocean haiku"
        )

    async def test_no_fragment_before_first_reply(
        self, memory: MemoryPlugin, context: CommandContext
    ) -> None:
        assert await memory.create_context(context, None) is None

    async def test_evicted_takeaways_are_stored(
        self, memory: MemoryPlugin, context: CommandContext
    ) -> None:
        thought = Thought(
            summary=[Takeaway(takeaway="Found the key", points=["in config"])],
            goal_information=GoalInformation(),
            command=[],
        )

        await memory.apply_removed_response(context, thought, "results", True)
        await memory.apply_removed_response(context, None, "results", True)

        store = context.data("memory")
        assert [e.text for e in store.entries] == ["Found the key", "in config"]


# ---------------------------------------------------------------------------
# delegate
# ---------------------------------------------------------------------------


class FakeMinion:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.tasks: list[str] = []

    async def run(self, task: str):
        self.tasks.append(task)
        if self.error is not None:
            raise self.error
        return "Dear Boss, done.", None


class TestDelegatePlugin:
    async def test_unbound(self, context: CommandContext) -> None:
        command = DelegatePlugin().commands[0]
        with pytest.raises(CommandInvocationFailed, match="No minion"):
            await command.invoke(context, [Text("task")])

    async def test_returns_report_letter(self, context: CommandContext) -> None:
        plugin = DelegatePlugin()
        minion = FakeMinion()
        plugin.bind(lambda ctx: minion)

        result = await plugin.commands[0].invoke(context, [Text("count the files")])

        assert result == Text("Dear Boss, done.")
        assert minion.tasks == ["count the files"]

    async def test_minion_error_propagates_unchanged(self, context: CommandContext) -> None:
        error = ScriptError("syntax error near 'end'")
        plugin = DelegatePlugin()
        plugin.bind(lambda ctx: FakeMinion(error))

        with pytest.raises(ScriptError) as exc_info:
            await plugin.commands[0].invoke(context, [Text("task")])

        assert exc_info.value is error

    async def test_dispatch_records_transcript(self, context: CommandContext) -> None:
        plugin = DelegatePlugin()
        plugin.bind(lambda ctx: FakeMinion())
        registry = CommandRegistry()
        registry.register_many(plugin.name, plugin.commands)
        output = OutputChannel()

        await registry.dispatch(context, "delegate", [Text("go")], output)

        assert output.text() == (
            'Command delegate("go") was successful and returned:\nDear Boss, done.'
        )
