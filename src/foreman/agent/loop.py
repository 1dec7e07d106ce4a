"""The agent run loop — one structured reply per cycle, until the goals run out."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Any

from foreman.agent.prompt import generate_prompt
from foreman.agent.response import CommandCall, Thought, parse_response
from foreman.command.base import CommandContext, OutputChannel, SharedContext
from foreman.command.registry import CommandRegistry
from foreman.config import ForemanConfig
from foreman.errors import (
    CollaboratorNotificationFailed,
    CommandNotFound,
    TranscriptRenderError,
)
from foreman.llm.message import Message
from foreman.llm.provider import ChatModel
from foreman.plugin.base import PluginSet
from foreman.script.value import ScriptValue, from_python
from foreman.session.wire import Wire

logger = logging.getLogger(__name__)

RESET_NOTICE = "Could not generate response. Resetting context. Memory is preserved."

ENDGOAL_REMINDER = (
    "\n\nYour current endgoal is {goal}. "
    "Ensure the response can be parsed by Python json.loads"
)

CONTINUATION_HINT = """
All commands have finished successfully.
Remember that you can use multiple commands in one reply. Try to do as much as possible in one reply.
You may have up to three commands!
Continue."""


class CycleOutcome(enum.Enum):
    """How did a cycle end?"""

    COMPLETE = "complete"  # Commands ran, plan still in progress
    GOAL_ADVANCED = "goal_advanced"  # Plan finished, moved to the next endgoal
    RESET = "reset"  # Every attempt failed, history was cleared


class AgentRunner:
    """Drives the cycle: prompt, reply, commands, commit.

    The runner is the single owner of the shared context while a cycle is
    in progress, so it reads the context without a lease. Scripts run by
    minions lease it for each command they call.
    """

    def __init__(
        self,
        config: ForemanConfig,
        model: ChatModel,
        registry: CommandRegistry,
        plugins: PluginSet,
        context: SharedContext,
        wire: Wire | None = None,
    ) -> None:
        self.config = config
        self.model = model
        self.registry = registry
        self.plugins = plugins
        self.shared = context
        self.wire = wire or Wire()
        self.cycles = 0

    @property
    def context(self) -> CommandContext:
        return self.shared.unsafe_get()

    @property
    def disabled_commands(self) -> list[str]:
        return self.config.disabled_commands

    async def run(self, max_cycles: int | None = None) -> int:
        """Run cycles until every endgoal is done or ``max_cycles`` is hit.

        Returns:
            Number of cycles run.
        """
        ran = 0
        while not self.context.end_goals.done:
            if max_cycles is not None and ran >= max_cycles:
                break
            await self.run_cycle()
            ran += 1
        return ran

    async def run_cycle(self) -> CycleOutcome:
        """One cycle: evict if needed, then attempt until a reply commits.

        Raises:
            CollaboratorNotificationFailed: a plugin hook failed while history
                was being trimmed. Not retried.
            TranscriptRenderError: a command result could not be rendered.
                Internal fault, not retried.
        """
        self.cycles += 1
        agent = self.config.agent
        context = self.context
        conversation = context.conversation

        self.wire.send_cycle_begin(
            self.cycles, conversation.token_count(), len(conversation.text())
        )

        report = await conversation.evict_under_pressure(
            agent.token_budget,
            list(self.plugins),
            context,
            savings_threshold=agent.eviction_savings,
        )
        if report.steps:
            self.wire.send_eviction(
                report.steps, report.tokens_before, report.tokens_after
            )

        for attempt in range(1, agent.cycle_attempts + 1):
            try:
                return await self._attempt()
            except (CollaboratorNotificationFailed, TranscriptRenderError):
                raise
            except Exception as e:
                logger.warning(
                    "Cycle %d attempt %d/%d failed: %s",
                    self.cycles,
                    attempt,
                    agent.cycle_attempts,
                    e,
                )
                self.wire.send_retry(attempt, agent.cycle_attempts, f"{type(e).__name__}: {e}")

        steps = await conversation.reset_after_failure(list(self.plugins), context)
        logger.error("Cycle %d failed every attempt; history reset", self.cycles)
        self.wire.send_status(RESET_NOTICE)
        self.wire.send_reset(steps)
        return CycleOutcome.RESET

    async def _attempt(self) -> CycleOutcome:
        agent = self.config.agent
        context = self.context
        conversation = context.conversation
        endgoal = context.end_goals.current()

        prompt = await generate_prompt(
            context,
            agent.name,
            agent.role,
            endgoal,
            self.registry,
            self.disabled_commands,
            self.plugins,
            conversation.assistant_text(),
        )

        messages = conversation.snapshot()
        if messages:
            messages[0] = Message.system(prompt)
        else:
            messages.append(Message.system(prompt))

        # The reminder only goes out with this request; history keeps the
        # message as it was.
        outbound = list(messages)
        last = outbound[-1]
        outbound[-1] = Message(
            role=last.role,
            content=last.content + ENDGOAL_REMINDER.format(goal=json.dumps(endgoal)),
        )

        reply = await self.model.get_response(outbound)
        thought = parse_response(reply)
        self._announce(thought)

        if agent.pause_seconds > 0:
            await asyncio.sleep(agent.pause_seconds)

        output = OutputChannel()
        await self.dispatch_query(context, thought.command, output)
        output.write(CONTINUATION_HINT)
        self.wire.send_transcript(output.lines)

        messages.append(Message.assistant(reply))
        messages.append(Message.user(output.text()))
        conversation.replace(messages)

        if not thought.plan_complete:
            return CycleOutcome.COMPLETE

        goal = context.end_goals.advance()
        conversation.append(Message.user(f"You have moved onto your next endgoal: {goal}"))
        logger.info("Moved onto endgoal: %s", goal)
        self.wire.send_goal_advanced(goal)
        return CycleOutcome.GOAL_ADVANCED

    async def dispatch_query(
        self,
        context: CommandContext,
        calls: list[CommandCall],
        output: OutputChannel,
    ) -> list[ScriptValue]:
        """Run the requested commands in order. The first failure aborts the rest."""
        disabled = set(self.disabled_commands)
        results: list[ScriptValue] = []
        for call in calls:
            if call.name in disabled:
                raise CommandNotFound(
                    call.name, [n for n in self.registry.names() if n not in disabled]
                )
            args = self._positional(call)
            results.append(await self.registry.dispatch(context, call.name, args, output))
        return results

    def _positional(self, call: CommandCall) -> list[ScriptValue]:
        """Arguments as positional values; named ones follow the declared order."""
        if isinstance(call.args, list):
            return [from_python(a) for a in call.args]

        named: dict[str, Any] = dict(call.args)
        ordered: list[Any] = []
        command = self.registry.get(call.name)
        if command is not None:
            for arg_name, _ in command.args:
                if arg_name in named:
                    ordered.append(named.pop(arg_name))
        ordered.extend(named.values())
        return [from_python(a) for a in ordered]

    def _announce(self, thought: Thought) -> None:
        info = thought.goal_information
        self.wire.send_thought(
            points=thought.points(),
            endgoal=info.current_endgoal,
            plan=info.plan,
            step=info.step,
            commands=[c.model_dump() for c in thought.command],
        )
