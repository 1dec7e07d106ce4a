"""Model backend — a single completion call, unified via litellm.

litellm handles provider detection from the model string prefix
(e.g. "openai/gpt-4o", "anthropic/claude-sonnet-4-5-20250929") and reads
API keys from environment variables automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from foreman.llm.message import Message

if TYPE_CHECKING:
    from litellm import ModelResponse

logger = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """Configuration for a chat model."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class ChatModel(Protocol):
    """Anything that can turn a message list into one reply."""

    async def get_response(
        self,
        messages: list[Message],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str: ...


@dataclass
class LiteLLMModel:
    """Chat model backed by ``litellm.acompletion``.

    Timeouts and transient network failures are handled here, not by the
    agent core.
    """

    config: ModelConfig

    async def get_response(
        self,
        messages: list[Message],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [m.to_openai_dict() for m in messages],
        }

        temperature = temperature if temperature is not None else self.config.temperature
        if temperature is not None:
            kwargs["temperature"] = temperature

        max_tokens = max_tokens if max_tokens is not None else self.config.max_tokens
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        response = await _acompletion_with_retry(**kwargs)
        return _response_text(response)


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> ModelResponse:
    """Call litellm.acompletion with retry on transient errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


def _response_text(response: Any) -> str:
    """Pull the assistant text out of an OpenAI-shaped completion response."""
    choices = getattr(response, "choices", None)
    if not choices:
        logger.warning("Model returned no choices")
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    return content or ""


def create_model(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> ChatModel:
    """Create a litellm-backed chat model.

    Args:
        model: Model name with provider prefix (e.g. "openai/gpt-4o").
        temperature: Default sampling temperature.
        max_tokens: Default max output tokens.
    """
    return LiteLLMModel(
        config=ModelConfig(model=model, temperature=temperature, max_tokens=max_tokens)
    )
