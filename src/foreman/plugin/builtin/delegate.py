"""Delegate plugin — hand a task to a script-writing minion."""

from __future__ import annotations

import logging
from typing import Any, Callable

from foreman.agent.minion import Minion
from foreman.command.base import Command, CommandContext, text_arg
from foreman.errors import CommandInvocationFailed
from foreman.plugin.base import Plugin
from foreman.script.value import ScriptValue, Text

logger = logging.getLogger(__name__)

MinionFactory = Callable[[CommandContext], Minion]


class DelegateCommand(Command):
    name = "delegate"
    purpose = (
        "Give a task to a minion. The minion writes and runs a script using the "
        "other commands, then reports what it found and what it changed."
    )
    args = (("task", "A clear, self-contained description of the task."),)

    def __init__(self, plugin: DelegatePlugin) -> None:
        self._plugin = plugin

    async def invoke(self, context: CommandContext, args: list[ScriptValue]) -> ScriptValue:
        task = text_arg(self.name, args, 0, "task")
        factory = self._plugin.minion_factory
        if factory is None:
            raise CommandInvocationFailed(self.name, "No minion is available.")

        logger.info("Delegating task: %s", task)
        letter, _ = await factory(context).run(task)
        return Text(letter)


class DelegatePlugin(Plugin):
    """Exposes ``delegate``. Minions are built by a factory bound at startup.

    ``delegate`` itself is never visible to minion scripts; a script runs
    under the context lease, so a nested minion could never acquire it.
    """

    name = "delegate"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.minion_factory: MinionFactory | None = None
        self.commands = [DelegateCommand(self)]

    def bind(self, factory: MinionFactory) -> None:
        self.minion_factory = factory
