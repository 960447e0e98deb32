"""Tests for system prompt and context assembly."""

from pathlib import Path

import pytest

from recollect.config import MemoryConfig
from recollect.memory import Database, MemoryManager, create_memory_tools
from recollect.memory.prompt import build_context_messages, build_system_prompt
from recollect.tools import ToolRegistry


@pytest.fixture
def manager(tmp_path: Path):
    config = MemoryConfig(db_path=tmp_path / "memory.db", log_dir=tmp_path / "logs")
    manager = MemoryManager(Database(config.db_path), config=config)
    yield manager
    manager.close()


class TestBuildSystemPrompt:
    """Tests for build_system_prompt."""

    def test_without_tools(self):
        prompt = build_system_prompt([])

        assert "No tools available." in prompt

    def test_lists_tools(self, manager: MemoryManager):
        """Each tool is listed with its description."""
        schema = ToolRegistry(create_memory_tools(manager)).get_tools_schema()

        prompt = build_system_prompt(schema)

        assert "- remember: Save important information" in prompt
        assert "- memory_search:" in prompt

    def test_appends_facts(self):
        """The facts block goes at the end."""
        prompt = build_system_prompt([], "## Known Facts\n- **name**: Lucas")

        assert prompt.endswith("\n\n## Known Facts\n- **name**: Lucas")

    def test_blank_facts_ignored(self):
        assert build_system_prompt([], "  ") == build_system_prompt([])

    def test_custom_base_prompt(self):
        prompt = build_system_prompt([], base_prompt="Tools:\n{tools_description}")

        assert prompt == "Tools:\nNo tools available."


class TestBuildContextMessages:
    """Tests for build_context_messages."""

    @pytest.mark.asyncio
    async def test_system_then_conversation(self, manager: MemoryManager):
        """The system prompt, with facts, precedes the conversation."""
        manager.save_fact("user_info", "name", "Lucas")
        manager.save_message("user", "Hi!")
        manager.save_message("assistant", "Hello Lucas")

        messages = await build_context_messages(manager)

        assert messages[0]["role"] == "system"
        assert "- remember: Save important information" in messages[0]["content"]
        assert "- **name**: Lucas" in messages[0]["content"]
        assert messages[1:] == [
            {"role": "user", "content": "Hi!"},
            {"role": "assistant", "content": "Hello Lucas"},
        ]

    @pytest.mark.asyncio
    async def test_lists_memory_tools_by_default(self, manager: MemoryManager):
        """Every memory tool is described unless a schema is given."""
        messages = await build_context_messages(manager)

        for name in ["remember", "forget", "list_facts", "memory_search"]:
            assert f"- {name}:" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_explicit_empty_schema(self, manager: MemoryManager):
        """An empty schema means no tools."""
        messages = await build_context_messages(manager, tools_schema=[])

        assert "No tools available." in messages[0]["content"]
