"""Hybrid semantic + keyword search over facts."""

import logging
import time

from ..logging import JSONLLogger, get_logger
from .database import Database
from .embeddings import EmbeddingCache, cosine_similarity, deserialize_embedding
from .facts import LEXICAL_RESULT_LIMIT, FactStore, LexicalIndex
from .models import Fact, SearchResult

logger = logging.getLogger(__name__)

VECTOR_WEIGHT = 0.7
KEYWORD_WEIGHT = 0.3
MIN_SCORE_THRESHOLD = 0.35
KEYWORD_ONLY_THRESHOLD = 0.15
MAX_SEARCH_RESULTS = 6
VECTOR_SCAN_LIMIT = 500


class HybridRetriever:
    """Merges vector similarity and lexical relevance into one ranking.

    With embeddings: 70% vector, 30% keyword, results below 0.35 dropped.
    Without: 100% keyword, results below 0.15 dropped (BM25-based scores
    are lower on average). Either signal may fail on its own; the other
    still produces results.
    """

    def __init__(
        self,
        database: Database,
        index: LexicalIndex,
        embeddings: EmbeddingCache,
        facts: FactStore | None = None,
        max_results: int = MAX_SEARCH_RESULTS,
        vector_scan_limit: int = VECTOR_SCAN_LIMIT,
        events: JSONLLogger | None = None,
    ) -> None:
        self.db = database
        self.index = index
        self.embeddings = embeddings
        self.facts = facts or FactStore(database, index)
        self.max_results = max_results
        self.vector_scan_limit = vector_scan_limit
        self.events = events or get_logger()

    def weights(self) -> tuple[float, float, float]:
        """(vector weight, keyword weight, score threshold) for the current mode."""
        if self.embeddings.enabled:
            return VECTOR_WEIGHT, KEYWORD_WEIGHT, MIN_SCORE_THRESHOLD
        return 0.0, 1.0, KEYWORD_ONLY_THRESHOLD

    async def _vector_search(
        self, query: str, weight: float, results: dict[int, SearchResult]
    ) -> None:
        query_embedding = await self.embeddings.embed_query(query)

        # Bounded, most-recent-first window instead of the whole table.
        cursor = self.db.connection.execute(
            """
            SELECT c.embedding, f.id, f.category, f.subject, f.content,
                   f.created_at, f.updated_at
            FROM chunks c
            JOIN facts f ON c.fact_id = f.id
            WHERE c.embedding IS NOT NULL
            ORDER BY c.created_at DESC, c.id DESC
            LIMIT ?
            """,
            (self.vector_scan_limit,),
        )
        for row in cursor.fetchall():
            chunk_embedding = deserialize_embedding(row["embedding"])
            if not chunk_embedding or len(chunk_embedding) != len(query_embedding):
                continue
            similarity = cosine_similarity(query_embedding, chunk_embedding)
            fact = Fact.from_row(row)
            assert fact.id is not None
            results[fact.id] = SearchResult(
                fact=fact,
                score=similarity * weight,
                vector_score=similarity,
            )

    def _keyword_scores(self, query: str) -> dict[int, tuple[Fact, float]]:
        """Lexical relevance in [0, 1] per fact id."""
        scores: dict[int, tuple[Fact, float]] = {}

        hits = self.index.search(query, limit=LEXICAL_RESULT_LIMIT)
        if hits:
            # bm25() is negative, more negative is better: scale magnitudes to [0, 1].
            max_rank = max(abs(rank) for _, rank in hits)
            for fact, rank in hits:
                assert fact.id is not None
                scores[fact.id] = (fact, abs(rank) / max_rank if max_rank > 0 else 1.0)

        # Containing the query verbatim is a full match, whatever the length
        # of the fact or its bm25 rank. Also covers matches inside a word.
        for fact in self.facts.search_facts(query.strip()):
            assert fact.id is not None
            scores[fact.id] = (fact, 1.0)

        return scores

    def _keyword_search(
        self, query: str, weight: float, results: dict[int, SearchResult]
    ) -> None:
        for fact_id, (fact, normalized) in self._keyword_scores(query).items():
            existing = results.get(fact_id)
            if existing is not None:
                existing.keyword_score = normalized
                existing.score += normalized * weight
            else:
                results[fact_id] = SearchResult(
                    fact=fact,
                    score=normalized * weight,
                    keyword_score=normalized,
                )

    async def search(self, query: str) -> list[SearchResult]:
        """Search facts by meaning and keywords.

        Args:
            query: Free text.

        Returns:
            Up to ``max_results`` results at or above the threshold,
            best first.
        """
        if not query.strip():
            return []

        started = time.monotonic()
        vector_weight, keyword_weight, threshold = self.weights()
        results: dict[int, SearchResult] = {}
        vector_ok = lexical_ok = True

        if self.embeddings.enabled:
            try:
                await self._vector_search(query, vector_weight, results)
            except Exception as e:
                vector_ok = False
                results.clear()
                logger.error("Vector search failed: %s", e)

        try:
            self._keyword_search(query, keyword_weight, results)
        except Exception as e:
            lexical_ok = False
            logger.error("Keyword search failed: %s", e)

        ranked = sorted(
            (r for r in results.values() if r.score >= threshold),
            key=lambda r: r.score,
            reverse=True,
        )[: self.max_results]

        self.events.log_search(
            len(ranked),
            (time.monotonic() - started) * 1000,
            vector_ok=vector_ok,
            lexical_ok=lexical_ok,
        )
        return ranked
