"""Memory manager wiring the memory components to one database."""

from __future__ import annotations

import logging

from groq import AsyncGroq

from ..config import MemoryConfig
from ..logging import JSONLLogger, get_logger
from .conversation import DEFAULT_TOKEN_BUDGET, ConversationStore
from .database import Database
from .embeddings import EmbeddingCache, EmbeddingProvider, OpenAIEmbeddingProvider
from .facts import FactStore, LexicalIndex
from .graph import GraphBuilder
from .jobs import JobStore
from .models import (
    ConversationContext,
    Fact,
    GraphData,
    Job,
    MemoryStats,
    Message,
    Role,
    SearchResult,
)
from .retrieval import HybridRetriever
from .summarizer import GroqSummarizer, SummarizationPipeline, Summarizer

logger = logging.getLogger(__name__)


class MemoryManager:
    """Main interface of the memory engine.

    Owns no state of its own: every component shares the injected
    ``Database`` and the JSONL event log.
    """

    def __init__(
        self,
        database: Database,
        config: MemoryConfig | None = None,
        summarizer: Summarizer | None = None,
        provider: EmbeddingProvider | None = None,
        events: JSONLLogger | None = None,
    ) -> None:
        """Initialize the manager and its components.

        Args:
            database: The storage resource. Opened here if needed.
            config: Engine settings. Defaults if None.
            summarizer: Optional LLM summarizer for older messages.
            provider: Optional embedding provider. None means keyword-only search.
            events: JSONL event log. Uses the global logger if None.
        """
        self.config = config or MemoryConfig()
        self.db = database
        self.db.open()
        self.events = events or get_logger()

        self.index = LexicalIndex(database)
        self.index.backfill()
        self.embeddings = EmbeddingCache(database, events=self.events)
        self.facts = FactStore(database, self.index, self.embeddings, events=self.events)
        self.summaries = SummarizationPipeline(
            database,
            summarizer,
            chars_per_token=self.config.chars_per_token,
            fallback_to_basic=self.config.summary_fallback,
            events=self.events,
        )
        self.conversation = ConversationStore(
            database,
            self.summaries,
            chars_per_token=self.config.chars_per_token,
            reserved_tokens=self.config.reserved_tokens,
            events=self.events,
        )
        self.retriever = HybridRetriever(
            database,
            self.index,
            self.embeddings,
            facts=self.facts,
            max_results=self.config.max_search_results,
            vector_scan_limit=self.config.vector_scan_limit,
            events=self.events,
        )
        self.graph = GraphBuilder(self.facts, self.embeddings, events=self.events)
        self.jobs = JobStore(database)

        if provider is not None:
            self.initialize_embeddings(provider)

    @classmethod
    def open(cls, config: MemoryConfig) -> MemoryManager:
        """Build a manager, its database and its collaborators from config."""
        assert config.db_path is not None
        events = JSONLLogger(log_dir=config.log_dir)

        summarizer: Summarizer | None = None
        if config.groq_api_key:
            summarizer = GroqSummarizer(
                AsyncGroq(api_key=config.groq_api_key), model=config.summary_model
            )

        provider: EmbeddingProvider | None = None
        if config.embedding_api_key:
            provider = OpenAIEmbeddingProvider(
                config.embedding_api_key,
                model=config.embedding_model,
                dimensions=config.embedding_dimensions,
                base_url=config.embedding_base_url,
            )

        return cls(
            Database(config.db_path),
            config=config,
            summarizer=summarizer,
            provider=provider,
            events=events,
        )

    # ============ SETUP ============

    def set_summarizer(self, summarizer: Summarizer | None) -> None:
        self.summaries.set_summarizer(summarizer)

    def initialize_embeddings(self, provider: EmbeddingProvider) -> None:
        """Enable embeddings and backfill facts that have no chunk yet."""
        self.embeddings.set_provider(provider)
        logger.info("Embeddings initialized")
        self.embeddings.queue.submit(self.embeddings.embed_missing_facts, key="backfill")

    @property
    def embeddings_enabled(self) -> bool:
        return self.embeddings.enabled

    async def wait_for_embeddings(self) -> None:
        """Wait until all background embedding work has finished."""
        await self.embeddings.queue.drain()

    # ============ MESSAGES ============

    def save_message(self, role: Role | str, content: str) -> int:
        return self.conversation.save_message(role, content)

    def get_recent_messages(self, limit: int = 50) -> list[Message]:
        return self.conversation.get_recent_messages(limit)

    def get_message_count(self) -> int:
        return self.conversation.get_message_count()

    async def get_conversation_context(
        self, token_budget: int | None = None
    ) -> ConversationContext:
        budget = token_budget if token_budget is not None else self.config.token_budget
        return await self.conversation.get_conversation_context(budget or DEFAULT_TOKEN_BUDGET)

    def clear_conversation(self) -> None:
        self.conversation.clear_conversation()

    # ============ FACTS ============

    def save_fact(self, category: str, subject: str, content: str) -> int:
        return self.facts.save_fact(category, subject, content)

    def get_fact(self, fact_id: int) -> Fact | None:
        return self.facts.get_fact(fact_id)

    def get_all_facts(self) -> list[Fact]:
        return self.facts.get_all_facts()

    def get_facts_by_category(self, category: str) -> list[Fact]:
        return self.facts.get_facts_by_category(category)

    def get_fact_categories(self) -> list[str]:
        return self.facts.get_fact_categories()

    def get_facts_for_context(self) -> str:
        return self.facts.get_facts_for_context()

    def delete_fact(self, fact_id: int) -> bool:
        return self.facts.delete_fact(fact_id)

    def delete_fact_by_subject(self, category: str, subject: str) -> bool:
        return self.facts.delete_fact_by_subject(category, subject)

    def search_facts(self, query: str, category: str | None = None) -> list[Fact]:
        return self.facts.search_facts(query, category)

    async def search_facts_hybrid(self, query: str) -> list[SearchResult]:
        return await self.retriever.search(query)

    def get_facts_graph_data(self) -> GraphData:
        return self.graph.build()

    # ============ JOBS ============

    def save_job(self, name: str, schedule: str, prompt: str, channel: str = "default") -> int:
        return self.jobs.save_job(name, schedule, prompt, channel)

    def get_jobs(self, enabled_only: bool = True) -> list[Job]:
        return self.jobs.get_jobs(enabled_only)

    def set_job_enabled(self, name: str, enabled: bool) -> bool:
        return self.jobs.set_job_enabled(name, enabled)

    def delete_job(self, name: str) -> bool:
        return self.jobs.delete_job(name)

    # ============ UTILITY ============

    def get_stats(self) -> MemoryStats:
        conn = self.db.connection
        messages = conn.execute(
            "SELECT COUNT(*) AS c, SUM(token_count) AS t FROM messages"
        ).fetchone()
        summaries = conn.execute("SELECT COUNT(*) AS c FROM summaries").fetchone()
        return MemoryStats(
            message_count=messages["c"],
            fact_count=self.facts.get_fact_count(),
            job_count=self.jobs.get_job_count(),
            summary_count=summaries["c"],
            estimated_tokens=messages["t"] or 0,
            embedded_fact_count=self.embeddings.count_embedded_facts(),
        )

    def close(self) -> None:
        """Close the database. Unfinished background embeddings are dropped.

        Facts left without a chunk are embedded by the backfill the next
        time embeddings are initialized.
        """
        dropped = self.embeddings.queue.discard_deferred()
        running = self.embeddings.queue.pending
        if dropped or running:
            logger.warning("Closing with %d pending embedding job(s)", dropped + running)
        self.db.close()
