"""Tokenizers. Only the token count is ever used."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Tokenizer(Protocol):
    def tokenize(self, text: str) -> list[int]: ...


class TiktokenTokenizer:
    """BPE tokenizer from tiktoken (``cl100k_base`` by default)."""

    def __init__(self, encoding: str = "cl100k_base") -> None:
        import tiktoken

        self._encoder = tiktoken.get_encoding(encoding)

    def tokenize(self, text: str) -> list[int]:
        return self._encoder.encode(text, disallowed_special=())
