"""Command system — base classes, shared context, registry."""

from foreman.command.base import (
    Command,
    CommandContext,
    FunctionCommand,
    OutputChannel,
    SharedContext,
)
from foreman.command.registry import CommandRegistry, format_transcript

__all__ = [
    "Command",
    "CommandContext",
    "FunctionCommand",
    "OutputChannel",
    "SharedContext",
    "CommandRegistry",
    "format_transcript",
]
