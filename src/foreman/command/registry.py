"""Command registry — register, list, and dispatch commands."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from foreman.command.base import Command, CommandContext, OutputChannel
from foreman.errors import CommandConflictError, CommandNotFound
from foreman.script.value import ScriptValue, render_call, render_value

logger = logging.getLogger(__name__)


def format_transcript(name: str, args: list[ScriptValue], result: ScriptValue) -> str:
    """One transcript entry for a successful command call."""
    return (
        f"Command {render_call(name, args)} was successful and returned:\n"
        f"{render_value(result)}"
    )


class CommandRegistry:
    """Registry of every command contributed by the loaded plugins.

    Names are unique across all plugins. Registration happens once at
    startup; a clash is a configuration error.
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._owners: dict[str, str] = {}

    def register(self, plugin_name: str, command: Command) -> None:
        """Register a command owned by ``plugin_name``."""
        if command.name in self._commands:
            raise CommandConflictError(
                command.name, self._owners[command.name], plugin_name
            )
        self._commands[command.name] = command
        self._owners[command.name] = plugin_name

    def register_many(self, plugin_name: str, commands: Iterable[Command]) -> None:
        for command in commands:
            self.register(plugin_name, command)

    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    def owner(self, name: str) -> str | None:
        """Name of the plugin that registered ``name``."""
        return self._owners.get(name)

    def names(self) -> list[str]:
        return list(self._commands.keys())

    def list(self, excluding: Iterable[str] = ()) -> list[Command]:
        """Active commands in registration order, minus the disabled ones."""
        disabled = set(excluding)
        return [c for c in self._commands.values() if c.name not in disabled]

    def catalogue(self, excluding: Iterable[str] = ()) -> str:
        """Describe the active commands for a prompt."""
        lines: list[str] = []
        for command in self.list(excluding):
            lines.append(f"    {command.name}:")
            lines.append(f"        purpose: {command.purpose}")
            lines.append("        args: ")
            for arg_name, description in command.args:
                lines.append(f"            - {arg_name}: {description}")
        return "\n".join(lines).rstrip()

    async def dispatch(
        self,
        context: CommandContext,
        name: str,
        args: list[ScriptValue],
        output: OutputChannel,
    ) -> ScriptValue:
        """Invoke a command and record the call in ``output``.

        Errors raised by the command propagate unchanged.
        """
        command = self._commands.get(name)
        if command is None:
            raise CommandNotFound(name, self.names())

        logger.debug("Dispatching %s with %d args", name, len(args))
        result = await command.invoke(context, list(args))

        output.write(format_transcript(name, args, result))
        return result

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return name in self._commands
