"""Long-term memory — JSONL-backed store with word-overlap recall."""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiofiles

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+")

# Words too common to say anything about relevance.
_STOPWORDS = frozenset(
    "a an and are as at be by for from has have i in is it of on or that the "
    "this to was were will with you your".split()
)


@dataclass
class MemoryEntry:
    observer: str
    text: str
    created: float = field(default_factory=time.time)


@runtime_checkable
class MemoryStore(Protocol):
    async def store_memory(self, observer: str, text: str) -> None: ...

    async def recall(self, query: str, limit: int = 5) -> list[str]: ...


def _words(text: str) -> set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS}


class LocalMemoryStore:
    """Memories appended to a JSONL file and kept in memory for recall."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.entries: list[MemoryEntry] = []

    async def store_memory(self, observer: str, text: str) -> None:
        text = text.strip()
        if not text:
            return
        entry = MemoryEntry(observer=observer, text=text)
        self.entries.append(entry)
        async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
            await f.write(
                json.dumps(
                    {"observer": entry.observer, "text": entry.text, "created": entry.created},
                    ensure_ascii=False,
                )
                + "\n"
            )

    async def recall(self, query: str, limit: int = 5) -> list[str]:
        """Memories sharing the most words with ``query``, best first."""
        wanted = _words(query)
        if not wanted:
            return []

        scored: list[tuple[int, float, str]] = []
        for entry in self.entries:
            overlap = len(wanted & _words(entry.text))
            if overlap:
                scored.append((overlap, entry.created, entry.text))

        scored.sort(key=lambda s: (s[0], s[1]), reverse=True)
        return [text for _, _, text in scored[:limit]]

    @classmethod
    async def restore(cls, path: Path | str) -> LocalMemoryStore:
        """Load a store from its JSONL file (missing file means empty)."""
        store = cls(path)
        if not store.path.exists():
            return store

        async with aiofiles.open(store.path, "r", encoding="utf-8") as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed JSONL line in %s", store.path)
                    continue
                store.entries.append(
                    MemoryEntry(
                        observer=data.get("observer", ""),
                        text=data.get("text", ""),
                        created=data.get("created", 0.0),
                    )
                )

        return store

    def __len__(self) -> int:
        return len(self.entries)
