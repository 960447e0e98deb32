"""Tests for memory data models."""

import sqlite3

import pytest

from recollect.memory import Fact, GraphData, GraphLink, GraphNode, Message, Role
from recollect.memory.models import Job


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.row_factory = sqlite3.Row
    yield connection
    connection.close()


class TestFact:
    """Tests for the Fact dataclass."""

    def test_default_values(self):
        """Fact has correct default values."""
        fact = Fact(category="user_info", subject="name", content="Lucas")
        assert fact.id is None
        assert fact.created_at is None
        assert fact.updated_at is None

    def test_immutable(self):
        """Fact is immutable (frozen)."""
        fact = Fact(category="user_info", subject="name", content="Lucas")
        with pytest.raises(AttributeError):
            fact.content = "other"  # type: ignore[misc]

    def test_equality(self):
        """Facts with same values are equal."""
        fact1 = Fact(category="pets", subject="dog", content="Rex")
        fact2 = Fact(category="pets", subject="dog", content="Rex")
        assert fact1 == fact2

    def test_embedding_text(self):
        """Embedding text combines category, subject and content."""
        fact = Fact(category="preferences", subject="editor", content="Uses Neovim")
        assert fact.embedding_text() == "preferences: editor - Uses Neovim"

    def test_from_row(self, conn):
        """Fact can be built from a database row."""
        row = conn.execute(
            "SELECT 3 AS id, 'pets' AS category, 'cat' AS subject, 'Luna' AS content, "
            "'2026-01-01' AS created_at, '2026-01-02' AS updated_at"
        ).fetchone()

        fact = Fact.from_row(row)

        assert fact == Fact(
            category="pets",
            subject="cat",
            content="Luna",
            id=3,
            created_at="2026-01-01",
            updated_at="2026-01-02",
        )


class TestMessage:
    """Tests for the Message dataclass."""

    def test_to_llm(self):
        """to_llm keeps only role and content."""
        message = Message(role="user", content="hi", id=1, token_count=1)
        assert message.to_llm() == {"role": "user", "content": "hi"}

    def test_from_row_without_optional_columns(self, conn):
        """Missing optional columns become None."""
        row = conn.execute("SELECT 5 AS id, 'assistant' AS role, 'ok' AS content").fetchone()

        message = Message.from_row(row)

        assert message.id == 5
        assert message.role == "assistant"
        assert message.timestamp is None
        assert message.token_count is None


class TestRole:
    """Tests for the Role enum."""

    def test_values(self):
        """Roles compare equal to their strings."""
        assert Role("user") is Role.USER
        assert Role.ASSISTANT == "assistant"

    def test_rejects_unknown(self):
        """Unknown roles raise ValueError."""
        with pytest.raises(ValueError):
            Role("robot")


class TestJob:
    """Tests for the Job dataclass."""

    def test_from_row_converts_enabled(self, conn):
        """The integer enabled column becomes a bool."""
        row = conn.execute(
            "SELECT 1 AS id, 'daily' AS name, '0 9 * * *' AS schedule, 'Hi' AS prompt, "
            "'default' AS channel, 0 AS enabled, NULL AS created_at, NULL AS updated_at"
        ).fetchone()

        job = Job.from_row(row)

        assert job.enabled is False
        assert job.schedule == "0 9 * * *"


class TestGraphData:
    """Tests for graph serialization."""

    def test_to_dict(self):
        """Graph data converts to plain dicts."""
        graph = GraphData(
            nodes=[GraphNode(id=1, subject="dog", category="pets", content="Rex", group=7)],
            links=[GraphLink(source=1, target=2, type="category", strength=0.3)],
        )

        assert graph.to_dict() == {
            "nodes": [
                {"id": 1, "subject": "dog", "category": "pets", "content": "Rex", "group": 7}
            ],
            "links": [{"source": 1, "target": 2, "type": "category", "strength": 0.3}],
        }

    def test_empty(self):
        """Empty graph has no nodes or links."""
        assert GraphData().to_dict() == {"nodes": [], "links": []}
