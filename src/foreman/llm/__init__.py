"""LLM abstraction layer — messages, model backend, tokenizer."""

from foreman.llm.message import Message
from foreman.llm.provider import ChatModel, LiteLLMModel, ModelConfig, create_model
from foreman.llm.tokenizer import TiktokenTokenizer, Tokenizer

__all__ = [
    "Message",
    "ChatModel",
    "LiteLLMModel",
    "ModelConfig",
    "create_model",
    "TiktokenTokenizer",
    "Tokenizer",
]
