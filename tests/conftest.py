"""Shared fakes: a one-token-per-character tokenizer and a scripted model."""

from __future__ import annotations

from typing import Any

import pytest

from foreman.agent.response import parse_response
from foreman.command.base import CommandContext
from foreman.context import ConversationState, EndGoals
from foreman.llm.message import Message


class CharTokenizer:
    """Every character is one token, so budgets are easy to reason about."""

    def tokenize(self, text: str) -> list[int]:
        return [ord(c) for c in text]


class ScriptedModel:
    """Replies from a fixed list. Exceptions in the list are raised."""

    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def get_response(
        self,
        messages: list[Message],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        self.calls.append(
            {
                "messages": [m.copy() for m in messages],
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.replies:
            raise AssertionError("model called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def tokenizer() -> CharTokenizer:
    return CharTokenizer()


@pytest.fixture
def context(tokenizer: CharTokenizer) -> CommandContext:
    return CommandContext(
        conversation=ConversationState(tokenizer, response_parser=parse_response),
        tokenizer=tokenizer,
        end_goals=EndGoals(["first goal", "second goal"]),
    )


@pytest.fixture
def scripted():
    return ScriptedModel
