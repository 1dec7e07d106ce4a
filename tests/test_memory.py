"""Tests for foreman.memory (LocalMemoryStore)."""

from __future__ import annotations

import json
from pathlib import Path

from foreman.memory import LocalMemoryStore, MemoryStore


class TestLocalMemoryStore:
    async def test_store_appends_jsonl(self, tmp_path: Path) -> None:
        path = tmp_path / "mem" / "memory.jsonl"
        store = LocalMemoryStore(path)

        await store.store_memory("agent", "The API key lives in config.yml")
        await store.store_memory("minion", "Wrote haiku.txt")

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["observer"] == "agent"
        assert json.loads(lines[1])["text"] == "Wrote haiku.txt"

    async def test_blank_text_is_ignored(self, tmp_path: Path) -> None:
        store = LocalMemoryStore(tmp_path / "memory.jsonl")
        await store.store_memory("agent", "   ")
        assert len(store) == 0

    async def test_recall_ranks_by_overlap(self, tmp_path: Path) -> None:
        store = LocalMemoryStore(tmp_path / "memory.jsonl")
        await store.store_memory("agent", "The haiku is about the ocean")
        await store.store_memory("agent", "Cats sleep a lot")
        await store.store_memory("agent", "The ocean haiku was saved to haiku.txt")

        found = await store.recall("where is the ocean haiku saved", limit=2)

        assert found == [
            "The ocean haiku was saved to haiku.txt",
            "The haiku is about the ocean",
        ]

    async def test_recall_ignores_stopwords(self, tmp_path: Path) -> None:
        store = LocalMemoryStore(tmp_path / "memory.jsonl")
        await store.store_memory("agent", "the and of")
        assert await store.recall("the and of") == []

    async def test_restore(self, tmp_path: Path) -> None:
        path = tmp_path / "memory.jsonl"
        store = LocalMemoryStore(path)
        await store.store_memory("agent", "remember the milk")
        with open(path, "a") as f:
            f.write("{broken\n\n")

        restored = await LocalMemoryStore.restore(path)

        assert len(restored) == 1
        assert await restored.recall("milk") == ["remember the milk"]

    async def test_restore_missing_file(self, tmp_path: Path) -> None:
        restored = await LocalMemoryStore.restore(tmp_path / "nothing.jsonl")
        assert len(restored) == 0

    def test_satisfies_protocol(self, tmp_path: Path) -> None:
        assert isinstance(LocalMemoryStore(tmp_path / "m.jsonl"), MemoryStore)
