"""Relationship graph of facts, for visualization.

Every pass is bounded so the graph can be built interactively even with
many facts: category links only reach the next few neighbours, and the
semantic and keyword passes cap both their inputs and their comparisons.
"""

import logging
import re

from ..logging import JSONLLogger, get_logger
from .embeddings import EmbeddingCache, cosine_similarity, deserialize_embedding
from .facts import FactStore
from .models import Fact, GraphData, GraphLink, GraphNode, LinkType

logger = logging.getLogger(__name__)

CATEGORY_GROUPS = {
    "user_info": 0,
    "preferences": 1,
    "projects": 2,
    "people": 3,
    "work": 4,
    "notes": 5,
    "decisions": 6,
}
OTHER_GROUP = 7

CATEGORY_NEIGHBOURS = 3
CATEGORY_STRENGTH = 0.3

MAX_SEMANTIC_CHUNKS = 200
MAX_SEMANTIC_COMPARISONS = 10000
SEMANTIC_THRESHOLD = 0.5

MAX_KEYWORD_FACTS = 300
MAX_KEYWORD_COMPARISONS = 15000
MIN_SHARED_KEYWORDS = 2
FULL_STRENGTH_KEYWORDS = 5

COMMON_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "her", "was", "one",
        "our", "out", "has", "have", "been", "this", "that", "they", "from", "with", "will",
        "what", "when", "where", "which", "their", "about", "would", "there", "could", "other",
        "into", "than", "then", "them", "these", "some", "like", "just", "only", "over", "such",
        "make", "made", "also", "most", "very", "does", "being", "those", "after", "before",
    }
)

_KEYWORD_RE = re.compile(r"\b[a-z]{4,}\b")


def extract_keywords(text: str) -> set[str]:
    """Lowercase words of 4+ letters, minus common words."""
    return {w for w in _KEYWORD_RE.findall(text.lower()) if w not in COMMON_WORDS}


class _LinkSet:
    """Undirected links, unique per (min id, max id, type)."""

    def __init__(self) -> None:
        self.links: list[GraphLink] = []
        self._keys: set[tuple[int, int, str]] = set()

    def add(self, source: int, target: int, link_type: LinkType, strength: float) -> None:
        if source == target:
            return
        key = (min(source, target), max(source, target), link_type)
        if key in self._keys:
            return
        self._keys.add(key)
        self.links.append(GraphLink(source, target, link_type, strength))


class GraphBuilder:
    """Derives nodes and typed, weighted links from the fact store."""

    def __init__(
        self,
        facts: FactStore,
        embeddings: EmbeddingCache,
        events: JSONLLogger | None = None,
    ) -> None:
        self.facts = facts
        self.embeddings = embeddings
        self.events = events or get_logger()

    def build(self) -> GraphData:
        """Build the graph of all facts."""
        facts = self.facts.get_all_facts()
        if not facts:
            return GraphData()

        nodes = [
            GraphNode(
                id=fact.id,
                subject=fact.subject or fact.content[:30],
                category=fact.category,
                content=fact.content,
                group=CATEGORY_GROUPS.get(fact.category, OTHER_GROUP),
            )
            for fact in facts
            if fact.id is not None
        ]

        links = _LinkSet()
        self._add_category_links(facts, links)
        if self.embeddings.enabled:
            try:
                self._add_semantic_links(links)
            except Exception as e:
                logger.error("Failed to compute semantic links: %s", e)
        self._add_keyword_links(facts, links)

        self.events.log("graph_built", count=len(nodes), links=len(links.links))
        return GraphData(nodes=nodes, links=links.links)

    def _add_category_links(self, facts: list[Fact], links: _LinkSet) -> None:
        by_category: dict[str, list[Fact]] = {}
        for fact in facts:
            by_category.setdefault(fact.category, []).append(fact)

        for category_facts in by_category.values():
            for i, fact in enumerate(category_facts):
                for other in category_facts[i + 1 : i + 1 + CATEGORY_NEIGHBOURS]:
                    assert fact.id is not None and other.id is not None
                    links.add(fact.id, other.id, "category", CATEGORY_STRENGTH)

    def _add_semantic_links(self, links: _LinkSet) -> None:
        fact_embeddings: dict[int, list[float]] = {}
        for chunk in self.embeddings.get_recent_chunks(MAX_SEMANTIC_CHUNKS):
            embedding = deserialize_embedding(chunk.embedding)
            if embedding:
                fact_embeddings.setdefault(chunk.fact_id, embedding)

        fact_ids = list(fact_embeddings)
        comparisons = 0
        for i, a in enumerate(fact_ids):
            emb_a = fact_embeddings[a]
            for b in fact_ids[i + 1 :]:
                comparisons += 1
                if comparisons > MAX_SEMANTIC_COMPARISONS:
                    return
                emb_b = fact_embeddings[b]
                if len(emb_a) != len(emb_b):
                    continue
                similarity = cosine_similarity(emb_a, emb_b)
                if similarity >= SEMANTIC_THRESHOLD:
                    links.add(a, b, "semantic", similarity)

    def _add_keyword_links(self, facts: list[Fact], links: _LinkSet) -> None:
        fact_keywords: dict[int, set[str]] = {}
        for fact in facts[:MAX_KEYWORD_FACTS]:
            assert fact.id is not None
            fact_keywords[fact.id] = extract_keywords(f"{fact.subject} {fact.content}")

        fact_ids = list(fact_keywords)
        comparisons = 0
        for i, a in enumerate(fact_ids):
            kw_a = fact_keywords[a]
            if not kw_a:
                continue
            for b in fact_ids[i + 1 :]:
                comparisons += 1
                if comparisons > MAX_KEYWORD_COMPARISONS:
                    return
                kw_b = fact_keywords[b]
                if not kw_b:
                    continue
                shared = len(kw_a & kw_b)
                if shared >= MIN_SHARED_KEYWORDS:
                    links.add(a, b, "keyword", min(1.0, shared / FULL_STRENGTH_KEYWORDS))
