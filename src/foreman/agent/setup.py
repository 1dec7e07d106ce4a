"""Assemble a runnable agent from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from foreman.agent.loop import AgentRunner
from foreman.agent.minion import Minion
from foreman.agent.response import parse_response
from foreman.command.base import CommandContext, SharedContext
from foreman.command.registry import CommandRegistry
from foreman.config import ForemanConfig
from foreman.context import ConversationState, EndGoals
from foreman.errors import ForemanError
from foreman.llm.provider import ChatModel, create_model
from foreman.llm.tokenizer import TiktokenTokenizer, Tokenizer
from foreman.plugin.base import Plugin, PluginSet
from foreman.plugin.builtin import BUILTIN_PLUGINS, DelegatePlugin, MemoryPlugin
from foreman.session.wire import Wire

logger = logging.getLogger(__name__)


@dataclass
class AgentSetup:
    """Everything one run needs, wired together."""

    runner: AgentRunner
    registry: CommandRegistry
    plugins: PluginSet
    shared: SharedContext


def load_plugins(config: ForemanConfig) -> PluginSet:
    """Instantiate the configured plugins, in config order."""
    plugins: list[Plugin] = []
    for name in config.plugins:
        plugin_cls = BUILTIN_PLUGINS.get(name)
        if plugin_cls is None:
            raise ForemanError(
                f"Unknown plugin: {name}. Available plugins: {', '.join(BUILTIN_PLUGINS)}"
            )
        plugins.append(plugin_cls(config.plugin_options(name)))
    return PluginSet(plugins)


async def setup_agent(
    config: ForemanConfig,
    model: ChatModel | None = None,
    fast_model: ChatModel | None = None,
    tokenizer: Tokenizer | None = None,
    plugins: PluginSet | None = None,
    wire: Wire | None = None,
) -> AgentSetup:
    """Build the registry, shared context, and runner for ``config``.

    Plugin dependency and command-name problems surface here, before any
    cycle runs.
    """
    wire = wire or Wire()
    model = model or create_model(
        model=config.llm.model,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )
    fast_model = fast_model or create_model(model=config.llm.fast_model)
    tokenizer = tokenizer or TiktokenTokenizer()
    plugins = plugins if plugins is not None else load_plugins(config)

    context = CommandContext(
        conversation=ConversationState(tokenizer, response_parser=parse_response),
        tokenizer=tokenizer,
        end_goals=EndGoals(list(config.agent.goals)),
    )
    registry = CommandRegistry()
    await plugins.setup(registry, context)
    shared = SharedContext(context)

    # Scripts hold the context lease while a command runs, so a minion must
    # never be able to start another minion.
    hidden = {*config.disabled_commands, DelegatePlugin.name}

    def make_minion(command_context: CommandContext) -> Minion:
        return Minion(
            fast_model,
            registry,
            shared,
            memory=command_context.data(MemoryPlugin.name),
            attempts=config.agent.minion_attempts,
            excluding=hidden,
            wire=wire,
        )

    for plugin in plugins:
        if isinstance(plugin, DelegatePlugin):
            plugin.bind(make_minion)

    runner = AgentRunner(config, model, registry, plugins, shared, wire=wire)
    return AgentSetup(runner=runner, registry=registry, plugins=plugins, shared=shared)
