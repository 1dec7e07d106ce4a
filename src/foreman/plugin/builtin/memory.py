"""Memory plugin — long-term memory that outlives short-term history."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from foreman.command.base import Command, CommandContext, text_arg
from foreman.errors import CommandInvocationFailed
from foreman.memory import LocalMemoryStore, MemoryStore
from foreman.plugin.base import Plugin
from foreman.script.value import List, Number, ScriptValue, Text

if TYPE_CHECKING:
    from foreman.agent.response import Thought

logger = logging.getLogger(__name__)

PLUGIN_NAME = "memory"
OBSERVER = "agent"


def memory_store(context: CommandContext, command: str) -> MemoryStore:
    store = context.data(PLUGIN_NAME)
    if store is None:
        raise CommandInvocationFailed(command, "Long-term memory is not available.")
    return store


class RememberCommand(Command):
    name = "remember"
    purpose = "Save a piece of information to long-term memory."
    args = (("text", "What to remember. Be specific and self-contained."),)

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        text = text_arg(self.name, args, 0, "text")
        await memory_store(context, self.name).store_memory(OBSERVER, text)
        return Text("Saved to memory.")


class RecallCommand(Command):
    name = "recall"
    purpose = "Search long-term memory for information related to a query."
    args = (
        ("query", "What to look for."),
        ("limit", "Maximum number of memories to return (default 5)."),
    )

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        query = text_arg(self.name, args, 0, "query")
        limit = 5
        if len(args) > 1 and isinstance(args[1], Number):
            limit = max(1, int(args[1].value))
        memories = await memory_store(context, self.name).recall(query, limit)
        return List([Text(m) for m in memories])


class MemoryPlugin(Plugin):
    """Stores evicted takeaways and surfaces related memories each cycle."""

    name = PLUGIN_NAME

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.path = self.options.get("path", "~/.foreman/memory.jsonl")
        self.recall_limit = int(self.options.get("recall_limit", 5))
        self.commands = [RememberCommand(), RecallCommand()]

    async def create_data(self) -> MemoryStore:
        store = await LocalMemoryStore.restore(self.path)
        logger.info("Loaded %d memories from %s", len(store), store.path)
        return store

    async def create_context(
        self, context: CommandContext, previous_text: str | None
    ) -> str | None:
        store = context.data(self.name)
        if store is None or not previous_text:
            return None

        memories = await store.recall(previous_text, self.recall_limit)
        if not memories:
            return None

        points = "\n".join(f"- {m}" for m in memories)
        return f"These are memories that may be relevant to what you are doing:\n{points}"

    async def apply_removed_response(
        self,
        context: CommandContext,
        removed_response: Thought | None,
        removed_followup: str,
        is_eviction: bool,
    ) -> None:
        store = context.data(self.name)
        if store is None or removed_response is None:
            return

        for point in removed_response.points():
            await store.store_memory(OBSERVER, point)
