"""Command base classes and the shared state commands run against."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from foreman.errors import CommandInvocationFailed
from foreman.script.value import ScriptValue, as_text

if TYPE_CHECKING:
    from foreman.context import ConversationState, EndGoals
    from foreman.llm.tokenizer import Tokenizer

logger = logging.getLogger(__name__)


@dataclass
class CommandContext:
    """Process-wide state shared by every command during a cycle."""

    conversation: ConversationState
    tokenizer: Tokenizer
    end_goals: EndGoals
    plugin_data: dict[str, Any] = field(default_factory=dict)

    def data(self, plugin: str) -> Any:
        """Get a plugin's auxiliary data, or None if it has none."""
        return self.plugin_data.get(plugin)


class SharedContext:
    """A ``CommandContext`` behind one exclusive-access lock.

    Only a lease holder may touch the context. Leases are released on every
    exit path, including errors raised by commands or scripts.
    """

    def __init__(self, context: CommandContext) -> None:
        self._context = context
        self._lock = threading.Lock()

    @contextmanager
    def lease(self) -> Iterator[CommandContext]:
        with self._lock:
            yield self._context

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    def unsafe_get(self) -> CommandContext:
        """Access the context without a lease (single-owner code paths only)."""
        return self._context


class OutputChannel:
    """Append-only transcript for one cycle or one script execution."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._lines.append(text)

    @property
    def lines(self) -> list[str]:
        with self._lock:
            return list(self._lines)

    def text(self, sep: str = "\n") -> str:
        return sep.join(self.lines)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


class Command(ABC):
    """Base class for all commands.

    A command turns a context and a list of positional values into a value,
    or raises. Argument descriptors are documentation for the model only;
    each command checks its own arguments.

    Usage:
        class Echo(Command):
            name = "echo"
            purpose = "Return the given text."
            args = (("text", "Text to echo."),)

            async def invoke(self, context, args):
                return args[0] if args else Nil()
    """

    name: str
    purpose: str = ""
    args: tuple[tuple[str, str], ...] = ()

    @abstractmethod
    async def invoke(
        self, context: CommandContext, args: list[ScriptValue]
    ) -> ScriptValue:
        """Run the command."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def text_arg(command: str, args: list[ScriptValue], index: int, name: str) -> str:
    """Positional argument ``index`` as text, or fail the command."""
    if index >= len(args):
        raise CommandInvocationFailed(command, f"{command} is missing argument '{name}'")
    return as_text(args[index])


CommandFn = Callable[[CommandContext, list[ScriptValue]], Awaitable[ScriptValue]]


class FunctionCommand(Command):
    """A command backed by a plain async function."""

    def __init__(
        self,
        name: str,
        fn: CommandFn,
        purpose: str = "",
        args: tuple[tuple[str, str], ...] | list[tuple[str, str]] = (),
    ) -> None:
        self.name = name
        self.purpose = purpose
        self.args = tuple(args)
        self._fn = fn

    async def invoke(
        self, context: CommandContext, args: list[ScriptValue]
    ) -> ScriptValue:
        return await self._fn(context, args)
