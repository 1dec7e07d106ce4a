"""Plugin base class and the loaded plugin set."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from foreman.command.base import Command, CommandContext
from foreman.command.registry import CommandRegistry
from foreman.errors import PluginDependencyError

if TYPE_CHECKING:
    from foreman.agent.response import Thought

logger = logging.getLogger(__name__)


class Plugin:
    """A named bundle of commands plus hooks into the cycle.

    Every hook is optional; the defaults do nothing. Subclasses set ``name``
    and usually ``commands``.
    """

    name: str = ""
    dependencies: tuple[str, ...] = ()

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options: dict[str, Any] = dict(options or {})
        self.commands: list[Command] = []

    async def create_data(self) -> Any | None:
        """Per-run auxiliary state, stored in ``context.plugin_data[name]``."""
        return None

    async def create_context(
        self, context: CommandContext, previous_text: str | None
    ) -> str | None:
        """A prompt fragment for this cycle, or None."""
        return None

    async def apply_removed_response(
        self,
        context: CommandContext,
        removed_response: Thought | None,
        removed_followup: str,
        is_eviction: bool,
    ) -> None:
        """See an exchange before it is dropped from history."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class PluginSet:
    """The plugins loaded for one run, in load order."""

    def __init__(self, plugins: Iterable[Plugin]) -> None:
        self.plugins: list[Plugin] = list(plugins)

    def check_dependencies(self) -> None:
        """Raise if any plugin depends on one that is not loaded."""
        loaded = {p.name for p in self.plugins}
        for plugin in self.plugins:
            for dependency in plugin.dependencies:
                if dependency not in loaded:
                    raise PluginDependencyError(plugin.name, dependency)

    def register_commands(self, registry: CommandRegistry) -> None:
        """Register every plugin's commands. Name clashes are fatal."""
        for plugin in self.plugins:
            registry.register_many(plugin.name, plugin.commands)

    async def create_data(self, context: CommandContext) -> None:
        """Initialise per-plugin data into ``context.plugin_data``."""
        for plugin in self.plugins:
            data = await plugin.create_data()
            if data is not None:
                context.plugin_data[plugin.name] = data

    async def setup(self, registry: CommandRegistry, context: CommandContext) -> None:
        """Everything that must succeed before the first cycle runs."""
        self.check_dependencies()
        self.register_commands(registry)
        await self.create_data(context)
        logger.info(
            "Loaded %d plugins with %d commands", len(self.plugins), len(registry)
        )

    def get(self, name: str) -> Plugin | None:
        return next((p for p in self.plugins if p.name == name), None)

    def __iter__(self):
        return iter(self.plugins)

    def __len__(self) -> int:
        return len(self.plugins)
