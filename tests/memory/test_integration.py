"""Integration tests for the memory system."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from recollect.config import MemoryConfig
from recollect.memory import Database, MemoryManager, create_memory_tools
from recollect.memory.prompt import build_context_messages
from recollect.tools import ToolRegistry


@pytest.fixture
def memory_system(tmp_path: Path, provider):
    """Create a complete memory system with embeddings and a summarizer."""
    config = MemoryConfig(
        db_path=tmp_path / "memory.db",
        log_dir=tmp_path / "logs",
        token_budget=10040,
    )
    summarizer = AsyncMock(return_value="The user introduced their pets.")
    manager = MemoryManager(
        Database(config.db_path), config=config, summarizer=summarizer, provider=provider
    )
    registry = ToolRegistry(create_memory_tools(manager))

    yield {"manager": manager, "registry": registry, "summarizer": summarizer}

    manager.close()


class TestMemorySystemIntegration:
    """Integration tests for the complete memory system."""

    @pytest.mark.asyncio
    async def test_remember_search_forget_flow(self, memory_system):
        """Facts saved by tool are searchable by meaning, then forgettable."""
        manager = memory_system["manager"]
        registry = memory_system["registry"]

        saved = await registry.dispatch(
            "remember", {"category": "pets", "subject": "dog", "content": "Rex the dog"}
        )
        await registry.dispatch(
            "remember", {"category": "preferences", "subject": "drink", "content": "Coffee"}
        )
        await manager.wait_for_embeddings()

        found = await registry.dispatch("memory_search", {"query": "dogs"})
        assert [r["subject"] for r in found.data["results"]] == ["dog"]

        forgot = await registry.dispatch("forget", {"id": saved.data["id"]})
        assert forgot.success
        assert manager.get_stats().embedded_fact_count == 1

        found = await registry.dispatch("memory_search", {"query": "dogs"})
        assert found.data["results"] == []

    @pytest.mark.asyncio
    async def test_long_conversation_flow(self, memory_system):
        """Older messages are summarized once and the summary is reused."""
        manager = memory_system["manager"]
        summarizer = memory_system["summarizer"]
        manager.save_fact("pets", "cat", "Luna")
        for i in range(6):
            manager.save_message("user" if i % 2 == 0 else "assistant", "y" * 40)

        first = await build_context_messages(manager)
        second = await build_context_messages(manager)

        assert first == second
        assert summarizer.await_count == 1
        assert "- **cat**: Luna" in first[0]["content"]
        assert first[1]["content"].endswith("The user introduced their pets.")
        assert len(first) == 1 + 1 + 4

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path: Path, memory_system):
        """Facts, chunks and messages persist across managers."""
        manager = memory_system["manager"]
        manager.save_fact("pets", "dog", "Rex")
        manager.save_message("user", "hello")
        await manager.wait_for_embeddings()
        manager.close()

        reopened = MemoryManager(Database(tmp_path / "memory.db"), config=manager.config)
        try:
            stats = reopened.get_stats()
            assert stats.fact_count == 1
            assert stats.message_count == 1
            assert stats.embedded_fact_count == 1
        finally:
            reopened.close()
