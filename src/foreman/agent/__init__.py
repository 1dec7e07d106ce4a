"""Agent layer — the run loop, its structured replies, and minions."""

from foreman.agent.loop import AgentRunner, CycleOutcome
from foreman.agent.minion import FindingsReport, Minion, render_report
from foreman.agent.response import Thought, parse_response, try_parse

__all__ = [
    "AgentRunner",
    "CycleOutcome",
    "FindingsReport",
    "Minion",
    "render_report",
    "Thought",
    "parse_response",
    "try_parse",
]
