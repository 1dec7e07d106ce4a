"""Standing prompt construction."""

from __future__ import annotations

from collections.abc import Iterable

from foreman.command.base import CommandContext
from foreman.command.registry import CommandRegistry
from foreman.plugin.base import Plugin

PROMPT = """\
<CONTEXT>NAME: <NAME>
ROLE: <ROLE>

CURRENT ENDGOAL: <ENDGOAL>

Make every decision on your own; never wait for help from a user. Prefer \
simple, direct strategies.

CONSTRAINTS
1. No user assistance.
2. Your short-term memory is small. Older exchanges are forgotten, so save \
anything important with a command as soon as you learn it.
3. If you cannot remember how you did something, think about similar past \
events to recall it.
4. Only use the commands listed below.

COMMANDS
Use the exact command names and arguments described here. Always use at \
least one command, and at most three.
<COMMANDS>

PROCESS
Break the current endgoal into a short plan of simple steps, about one \
command each. Pick the next step, run the commands it needs, and note what \
you learned. When the plan is done, set "will be done with plan" to true.

Respond only in JSON, in this format:
{
    "summary": [
        {
            "takeaway": "What the previous commands taught you. Specific and detailed.",
            "points": ["Point one", "Point two"]
        }
    ],
    "goal information": {
        "current endgoal": "The current endgoal.",
        "plan": ["Step one", "Step two"],
        "step": "The step you are working on."
    },
    "command": [
        {"name": "command name", "args": ["first argument", "second argument"]}
    ],
    "will be done with plan": false
}

Use [] for "summary" when there were no previous commands. Make sure every \
field is included. Ensure the response can be parsed by Python json.loads"""


def generate_goals(goals: Iterable[str]) -> str:
    """Number the goals, one per line."""
    return "\n".join(f"{i}. {goal}" for i, goal in enumerate(goals, 1))


async def generate_context(
    context: CommandContext,
    plugins: Iterable[Plugin],
    previous_text: str | None,
) -> str:
    """Every plugin's prompt fragment for this cycle, blank-line separated."""
    fragments: list[str] = []
    for plugin in plugins:
        fragment = await plugin.create_context(context, previous_text)
        if fragment:
            fragments.append(fragment)

    if not fragments:
        return ""
    return "\n\n".join(fragments) + "\n\n"


async def generate_prompt(
    context: CommandContext,
    name: str,
    role: str,
    endgoal: str,
    registry: CommandRegistry,
    disabled_commands: Iterable[str],
    plugins: Iterable[Plugin],
    previous_text: str | None = None,
) -> str:
    """Build the standing message for one cycle."""
    fragments = await generate_context(context, plugins, previous_text)
    commands = registry.catalogue(disabled_commands)

    return (
        PROMPT.replace("<CONTEXT>", fragments)
        .replace("<NAME>", name)
        .replace("<ROLE>", role)
        .replace("<ENDGOAL>", endgoal)
        .replace("<COMMANDS>", commands)
    )
