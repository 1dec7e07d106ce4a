"""Minion — a sub-agent that solves one task by writing a script.

The minion asks a (usually cheaper) model for a script that uses the
registered commands, runs it through the script bridge, and feeds errors
back for a fixed number of attempts. A successful transcript is then
condensed into findings and changes, stored in long-term memory, and
returned as a short report letter.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, field_validator

from foreman.agent.response import try_parse
from foreman.command.base import OutputChannel, SharedContext
from foreman.command.registry import CommandRegistry
from foreman.errors import ScriptError
from foreman.llm.message import Message
from foreman.llm.provider import ChatModel
from foreman.memory import MemoryStore
from foreman.script.bridge import ScriptBridge, extract_script
from foreman.session.wire import Wire

logger = logging.getLogger(__name__)

OBSERVER = "minion"

SCRIPT_PROMPT = """\
Use these commands and ONLY these commands:
{commands}

Write a script to complete this task:
{task}

Keep it SIMPLE, and do not write more than the task needs.
Each command is a global function taking positional arguments. Commands \
return values you can pass to other commands, index, or loop over.
Respond ONLY with the script. Your script will be in the LUA Scripting Language. LUA."""

RETRY_PROMPT = """\
Unfortunately, that did not work. The error was: {error}

Please try again in the exact same format with a fixed LUA script.
Respond ONLY with a LUA script. You may explain your fixes in code comments."""

FINDINGS_PROMPT = """\
You will be given the output of a script that was run to complete a task.
Summarise what was learned and what was changed.

Respond in this exact JSON format:
{
    "findings": [ "a list of the information you found" ],
    "changes": [ "a list of the changes you made to the workspace or memory" ]
}

Only include the information that matters. Either list may be empty.
Ensure the response can be parsed by Python json.loads."""

EMPTY_TRANSCRIPT = "The script finished without running any commands."


class FindingsReport(BaseModel):
    findings: list[str]
    changes: list[str]

    @field_validator("findings", "changes", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v


def to_points(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def render_report(report: FindingsReport) -> str:
    """The letter a minion hands back to its caller."""
    return (
        "Dear Boss,\n\n"
        "I have completed the tasks you assigned to me. These are my findings:\n"
        f"{to_points(report.findings)}\n\n"
        "These are the changes I had to carry out:\n"
        f"{to_points(report.changes)}\n\n"
        "Sincerely, Your Employee."
    )


class Minion:
    """Runs a single delegated task to completion or gives up.

    Args:
        model: Writes the scripts and the findings.
        registry: Commands the scripts may call.
        shared: Context every script command leases.
        memory: Where findings and changes are stored. Optional.
        attempts: Script attempts before the last error is re-raised.
        excluding: Command names hidden from scripts.
        wire: Event sink for scripts and reports.
    """

    def __init__(
        self,
        model: ChatModel,
        registry: CommandRegistry,
        shared: SharedContext,
        memory: MemoryStore | None = None,
        attempts: int = 3,
        excluding: Iterable[str] = (),
        wire: Wire | None = None,
        script_max_tokens: int = 300,
        script_temperature: float = 0.3,
        findings_attempts: int = 3,
        findings_max_tokens: int = 1000,
    ) -> None:
        if attempts < 1:
            raise ValueError("a minion needs at least one attempt")

        self.model = model
        self.registry = registry
        self.shared = shared
        self.memory = memory
        self.attempts = attempts
        self.excluding = frozenset(excluding)
        self.wire = wire or Wire()
        self.script_max_tokens = script_max_tokens
        self.script_temperature = script_temperature
        self.findings_attempts = findings_attempts
        self.findings_max_tokens = findings_max_tokens
        self.messages: list[Message] = []

    async def run(self, task: str) -> tuple[str, FindingsReport]:
        """Complete ``task`` and return (report letter, findings).

        Raises:
            ScriptError: every attempt failed. The last attempt's error is
                raised as is.
            ResponseParseError: the findings could not be parsed.
        """
        transcript = await self.execute_task(task)
        report = await self.summarise(transcript)

        if self.memory is not None:
            for item in [*report.findings, *report.changes]:
                await self.memory.store_memory(OBSERVER, item)

        letter = render_report(report)
        self.wire.send_minion_report(letter)
        return letter, report

    async def execute_task(self, task: str) -> str:
        """Write and run scripts until one succeeds. Returns its transcript."""
        bridge = ScriptBridge(self.registry, self.shared, self.excluding)
        commands = self.registry.catalogue(self.excluding)
        self.messages = [
            Message.system(SCRIPT_PROMPT.format(commands=commands, task=task))
        ]

        for attempt in range(1, self.attempts + 1):
            reply = await self.model.get_response(
                self.messages,
                max_tokens=self.script_max_tokens,
                temperature=self.script_temperature,
            )
            script = extract_script(reply)
            self.wire.send_minion_script(attempt, script)

            try:
                transcript = await bridge.run(script, OutputChannel())
            except ScriptError as e:
                logger.warning(
                    "Minion script failed (attempt %d/%d): %s",
                    attempt,
                    self.attempts,
                    e,
                )
                self.wire.send_error(f"Minion script failed: {e}")
                self.messages.append(Message.assistant(reply))
                self.messages.append(Message.user(RETRY_PROMPT.format(error=e)))
                if attempt == self.attempts:
                    raise
                continue

            return transcript or EMPTY_TRANSCRIPT

        raise ScriptError("no script attempts were made")

    async def summarise(self, transcript: str) -> FindingsReport:
        messages = [Message.system(FINDINGS_PROMPT), Message.user(transcript)]
        _, report = await try_parse(
            self.model,
            messages,
            FindingsReport,
            attempts=self.findings_attempts,
            max_tokens=self.findings_max_tokens,
        )
        return report
