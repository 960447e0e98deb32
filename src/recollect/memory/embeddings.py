"""Embedding cache for semantic search over facts.

Vectors are stored as contiguous little-endian float32 bytes, one chunk
per fact. Embedding happens in the background: saving a fact never waits
for (or fails because of) the embedding provider.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable, Sequence
from typing import Any, Protocol

import httpx
import numpy as np

from ..logging import JSONLLogger, get_logger
from .database import Database
from .models import Chunk, Fact

logger = logging.getLogger(__name__)

EMBEDDING_DTYPE = np.dtype("<f4")
EMBEDDING_DIMENSIONS = 1536
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def serialize_embedding(embedding: Sequence[float]) -> bytes:
    """Pack a vector as little-endian float32 bytes (4 bytes per value)."""
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).tobytes()


def deserialize_embedding(buffer: bytes | None) -> list[float]:
    """Unpack little-endian float32 bytes into a vector."""
    if not buffer:
        return []
    return np.frombuffer(buffer, dtype=EMBEDDING_DTYPE).astype(np.float64).tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors, in [-1, 1].

    Returns 0.0 when either vector is all zeros.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    if len(a) != len(b):
        raise ValueError("Vectors must have same length")

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


class EmbeddingProvider(Protocol):
    """Maps text to fixed-length float vectors."""

    async def embed(self, text: str) -> list[float]: ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


class OpenAIEmbeddingProvider:
    """Embedding provider for OpenAI-compatible ``/embeddings`` endpoints."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimensions: int = EMBEDDING_DIMENSIONS,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Credential for the embeddings API.
            model: Embedding model name.
            dimensions: Requested vector length.
            base_url: Base URL of the API.
            timeout: Request timeout in seconds.
            client: Optional preconfigured HTTP client.
        """
        if not api_key:
            raise ValueError("An API key is required for embeddings")
        self.model = model
        self.dimensions = dimensions
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def _request(self, payload: str | list[str]) -> list[list[float]]:
        response = await self._client.post(
            "/embeddings",
            json={"model": self.model, "input": payload, "dimensions": self.dimensions},
        )
        response.raise_for_status()
        data = response.json()["data"]
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in ordered]

    async def embed(self, text: str) -> list[float]:
        """Embed one text. HTTP errors propagate."""
        return (await self._request(text))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request."""
        if not texts:
            return []
        return await self._request(texts)

    async def aclose(self) -> None:
        await self._client.aclose()


class EmbeddingQueue:
    """Background runner for fire-and-forget embedding work.

    Jobs submitted while an event loop is running start immediately as
    tasks. Jobs submitted from synchronous code wait until ``drain``; a
    waiting job is replaced by a later one with the same key, so the
    backlog holds at most one job per key.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._deferred: dict[Hashable, Callable[[], Awaitable[Any]]] = {}

    @property
    def pending(self) -> int:
        """Number of jobs not finished yet."""
        return len(self._tasks) + len(self._deferred)

    @property
    def deferred(self) -> int:
        """Number of jobs waiting for an event loop."""
        return len(self._deferred)

    def submit(self, job: Callable[[], Awaitable[Any]], key: Hashable | None = None) -> None:
        """Schedule a job without waiting for it.

        Args:
            job: Coroutine function to run.
            key: Identity of the work. Outside an event loop, a waiting job
                with the same key is replaced. None never replaces.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.pop(key, None)
            self._deferred[key if key is not None else object()] = job
            return
        self._start(loop, job)

    def discard_deferred(self) -> int:
        """Drop the jobs still waiting for an event loop.

        Returns:
            Number of jobs dropped.
        """
        count = len(self._deferred)
        self._deferred.clear()
        return count

    def _start(self, loop: asyncio.AbstractEventLoop, job: Callable[[], Awaitable[Any]]) -> None:
        task = loop.create_task(self._run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job: Callable[[], Awaitable[Any]]) -> None:
        try:
            await job()
        except Exception as e:
            logger.error("Background embedding job failed: %s", e)

    async def drain(self) -> None:
        """Wait until every submitted job has finished."""
        loop = asyncio.get_running_loop()
        while self._deferred or self._tasks:
            deferred, self._deferred = list(self._deferred.values()), {}
            for job in deferred:
                self._start(loop, job)
            if self._tasks:
                await asyncio.gather(*list(self._tasks))


class EmbeddingCache:
    """Per-fact vector chunks produced through an embedding provider.

    Populated only when a provider is configured. Facts without a chunk
    remain searchable through the lexical index.
    """

    def __init__(
        self,
        database: Database,
        provider: EmbeddingProvider | None = None,
        events: JSONLLogger | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            database: The shared storage resource.
            provider: Embedding provider. None keeps the cache disabled.
            events: JSONL event log. Uses the global logger if None.
        """
        self.db = database
        self.provider = provider
        self.queue = EmbeddingQueue()
        self.events = events or get_logger()

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def set_provider(self, provider: EmbeddingProvider | None) -> None:
        self.provider = provider

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Errors propagate."""
        if self.provider is None:
            raise RuntimeError("Embeddings are not configured")
        return await self.provider.embed(text)

    async def embed_fact(self, fact: Fact) -> bool:
        """Embed a fact and replace its chunk.

        Failures are logged, never raised.

        Returns:
            True if a chunk was stored.
        """
        if self.provider is None or fact.id is None:
            return False

        text = fact.embedding_text()
        started = time.monotonic()
        try:
            embedding = await self.provider.embed(text)
            buffer = serialize_embedding(embedding)
            conn = self.db.connection
            with conn:
                conn.execute("DELETE FROM chunks WHERE fact_id = ?", (fact.id,))
                conn.execute(
                    "INSERT INTO chunks (fact_id, content, embedding) VALUES (?, ?, ?)",
                    (fact.id, text, buffer),
                )
        except Exception as e:
            logger.warning("Failed to embed fact %s: %s", fact.id, e)
            self.events.log_embedding(fact.id, False, error=str(e))
            return False

        self.events.log_embedding(
            fact.id,
            True,
            duration_ms=(time.monotonic() - started) * 1000,
            dimensions=len(embedding),
        )
        return True

    def schedule(self, fact: Fact) -> None:
        """Embed a fact in the background, if embeddings are enabled."""
        if self.enabled:
            self.queue.submit(lambda: self.embed_fact(fact), key=("fact", fact.id))

    def facts_without_chunks(self) -> list[Fact]:
        cursor = self.db.connection.execute(
            """
            SELECT f.id, f.category, f.subject, f.content, f.created_at, f.updated_at
            FROM facts f
            LEFT JOIN chunks c ON f.id = c.fact_id
            WHERE c.id IS NULL
            ORDER BY f.id
            """
        )
        return [Fact.from_row(row) for row in cursor.fetchall()]

    async def embed_missing_facts(self) -> int:
        """Embed, one by one, every fact that has no chunk.

        A failure on one fact does not stop the others.

        Returns:
            Number of facts embedded.
        """
        if self.provider is None:
            return 0

        missing = self.facts_without_chunks()
        if not missing:
            return 0

        logger.info("Embedding %d facts...", len(missing))
        embedded = 0
        for fact in missing:
            if await self.embed_fact(fact):
                embedded += 1
        logger.info("Finished embedding facts (%d/%d)", embedded, len(missing))
        self.events.log("embedding_backfill", count=embedded, missing=len(missing))
        return embedded

    def get_chunk(self, fact_id: int) -> Chunk | None:
        row = self.db.connection.execute(
            "SELECT id, fact_id, content, embedding, created_at FROM chunks WHERE fact_id = ?",
            (fact_id,),
        ).fetchone()
        return Chunk.from_row(row) if row else None

    def get_recent_chunks(self, limit: int) -> list[Chunk]:
        """Most recently written chunks that carry an embedding."""
        cursor = self.db.connection.execute(
            """
            SELECT id, fact_id, content, embedding, created_at
            FROM chunks
            WHERE embedding IS NOT NULL
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [Chunk.from_row(row) for row in cursor.fetchall()]

    def count_embedded_facts(self) -> int:
        row = self.db.connection.execute(
            "SELECT COUNT(DISTINCT fact_id) AS c FROM chunks WHERE embedding IS NOT NULL"
        ).fetchone()
        return row["c"]
