"""Fixtures shared by the memory tests."""

import re
from pathlib import Path

import pytest

from recollect.memory.database import Database

VOCABULARY = ["dog", "cat", "pet", "python", "code", "coffee", "tea", "music", "berlin", "city"]


class KeywordEmbeddingProvider:
    """Deterministic provider: one dimension per vocabulary word."""

    def __init__(self, vocabulary: list[str] | None = None, fail: bool = False) -> None:
        self.vocabulary = vocabulary or VOCABULARY
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("provider unavailable")
        words = re.findall(r"\w+", text.lower())
        return [float(sum(w.startswith(v) for w in words)) for v in self.vocabulary]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]


@pytest.fixture
def db(tmp_path: Path):
    """An open database in a temp dir."""
    database = Database(tmp_path / "memory.db")
    database.open()
    yield database
    database.close()


@pytest.fixture
def provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def failing_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider(fail=True)
