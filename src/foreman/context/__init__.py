"""Conversation state — message history under a token budget.

History layout:

    [0]  standing system/task message (rebuilt every cycle, never evicted)
    [1]  assistant reply          ┐ one exchange
    [2]  user command results     ┘
    [3]  user note (optional, e.g. end goal transition)
    ...

Every assistant message is immediately followed by exactly one user
message carrying that turn's command results. Eviction removes whole
exchanges from the front and lets stateful plugins see what is about to be
discarded before it goes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol

from foreman.errors import CollaboratorNotificationFailed
from foreman.llm.message import Message
from foreman.llm.tokenizer import Tokenizer

if TYPE_CHECKING:
    from foreman.command.base import CommandContext

logger = logging.getLogger(__name__)

ALL_GOALS_COMPLETE = "All end goals are complete."


class RemovalCollaborator(Protocol):
    """Something that must see history before it is discarded."""

    name: str

    async def apply_removed_response(
        self,
        context: CommandContext,
        removed_response: Any,
        removed_followup: str,
        is_eviction: bool,
    ) -> None: ...


@dataclass
class EvictionReport:
    """What one eviction pass did."""

    tokens_before: int = 0
    tokens_after: int = 0
    steps: int = 0
    pairs_removed: int = 0

    @property
    def saved(self) -> int:
        return self.tokens_before - self.tokens_after


@dataclass
class EndGoals:
    """The ordered end goals and a pointer to the current one."""

    goals: list[str] = field(default_factory=list)
    index: int = 0

    @property
    def done(self) -> bool:
        return self.index >= len(self.goals)

    def current(self) -> str:
        if self.done:
            return ALL_GOALS_COMPLETE
        return self.goals[self.index]

    def advance(self) -> str:
        """Move to the next goal and return it."""
        if not self.done:
            self.index += 1
        return self.current()


def pairs_intact(messages: list[Message]) -> bool:
    """True if every assistant message is followed by a user message."""
    for i, message in enumerate(messages):
        if not message.is_assistant:
            continue
        if i + 1 >= len(messages) or messages[i + 1].role != "user":
            return False
    return True


class ConversationState:
    """Owns the message history and keeps it within a token budget.

    Args:
        tokenizer: Used to count tokens over the concatenated history.
        response_parser: Turns an evicted assistant message back into its
            structured form for collaborators. Unparseable content is
            handed over as ``None``.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        response_parser: Callable[[str], Any] | None = None,
        messages: list[Message] | None = None,
    ) -> None:
        self.tokenizer = tokenizer
        self.response_parser = response_parser
        self.messages: list[Message] = list(messages or [])

    # --- History mutation ---

    def append(self, message: Message) -> None:
        """Append a message. An assistant message may not follow another."""
        if message.is_assistant and self.messages and self.messages[-1].is_assistant:
            raise ValueError("assistant message must follow a user or system message")
        self.messages.append(message)

    def set_standing(self, message: Message) -> None:
        """Replace (or insert) the standing message at index 0."""
        if self.messages:
            self.messages[0] = message
        else:
            self.messages.append(message)

    def replace(self, messages: list[Message]) -> None:
        """Swap in a whole new history, e.g. at the end of a cycle."""
        if not pairs_intact(messages):
            raise ValueError("history would contain an unanswered assistant message")
        self.messages = list(messages)

    def snapshot(self) -> list[Message]:
        """Copy of the history whose messages can be edited freely."""
        return [m.copy() for m in self.messages]

    def assistant_text(self) -> str | None:
        """All assistant replies joined, or None before the first exchange."""
        if len(self.messages) <= 1:
            return None
        return "\n".join(m.content for m in self.messages if m.is_assistant)

    # --- Token accounting ---

    def text(self) -> str:
        return "".join(m.content for m in self.messages)

    def token_count(self) -> int:
        return len(self.tokenizer.tokenize(self.text()))

    # --- Eviction / reset ---

    async def evict_under_pressure(
        self,
        budget: int,
        collaborators: list[RemovalCollaborator],
        context: CommandContext,
        savings_threshold: int = 2000,
        min_steps: int = 2,
    ) -> EvictionReport:
        """Drop the oldest exchanges until the history fits ``budget``.

        Stops early once more than ``savings_threshold`` tokens have been
        freed over at least ``min_steps`` removals. The token count is
        recomputed after every removal.
        """
        tokens = self.token_count()
        report = EvictionReport(tokens_before=tokens, tokens_after=tokens)

        while tokens > budget and len(self.messages) > 1:
            if await self._remove_oldest(collaborators, context, is_eviction=True):
                report.pairs_removed += 1
            report.steps += 1

            previous, tokens = tokens, self.token_count()
            report.tokens_after = tokens

            if report.saved > savings_threshold and report.steps >= min_steps:
                break

            logger.info("Cleaned %d tokens", previous - tokens)

        if report.steps:
            logger.info(
                "Evicted %d messages (%d pairs): %d -> %d tokens",
                report.steps,
                report.pairs_removed,
                report.tokens_before,
                report.tokens_after,
            )
        return report

    async def reset_after_failure(
        self,
        collaborators: list[RemovalCollaborator],
        context: CommandContext,
    ) -> int:
        """Discard all short-term history, notifying collaborators first.

        Returns the number of removal steps taken.
        """
        steps = 0
        while len(self.messages) > 1:
            await self._remove_oldest(collaborators, context, is_eviction=False)
            steps += 1

        self.messages.clear()
        logger.info("Conversation reset after %d removal steps", steps)
        return steps

    async def _remove_oldest(
        self,
        collaborators: list[RemovalCollaborator],
        context: CommandContext,
        is_eviction: bool,
    ) -> bool:
        """Remove the oldest exchange after the standing message.

        Returns True if an assistant exchange was removed (and notified).
        """
        first = self.messages[1]
        if not first.is_assistant:
            del self.messages[1]
            return False

        followup = self.messages[2].content if len(self.messages) > 2 else ""
        response = self._parse_removed(first.content)

        # Collaborators see the exchange while it is still in history.
        await self._notify(collaborators, context, response, followup, is_eviction)

        del self.messages[1 : 3 if len(self.messages) > 2 else 2]
        return True

    def _parse_removed(self, content: str) -> Any:
        if self.response_parser is None:
            return None
        try:
            return self.response_parser(content)
        except Exception as e:
            logger.warning("Evicted assistant message no longer parses: %s", e)
            return None

    async def _notify(
        self,
        collaborators: list[RemovalCollaborator],
        context: CommandContext,
        response: Any,
        followup: str,
        is_eviction: bool,
    ) -> None:
        for collaborator in collaborators:
            try:
                await collaborator.apply_removed_response(
                    context, response, followup, is_eviction
                )
            except Exception as e:
                raise CollaboratorNotificationFailed(collaborator.name, e) from e
