"""Data models for the memory system."""

import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


LinkType = Literal["category", "semantic", "keyword"]


@dataclass(frozen=True)
class Message:
    """A single turn of the persistent conversation.

    Attributes:
        role: 'user', 'assistant' or 'system'.
        content: The message text.
        id: Database ID, assigned on write. Monotonic.
        timestamp: When the message was stored.
        token_count: Estimated token count of the content.
    """

    role: str
    content: str
    id: int | None = None
    timestamp: str | None = None
    token_count: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Message":
        """Build a Message from a messages row."""
        keys = row.keys()
        return cls(
            id=row["id"],
            role=row["role"],
            content=row["content"],
            timestamp=row["timestamp"] if "timestamp" in keys else None,
            token_count=row["token_count"] if "token_count" in keys else None,
        )

    def to_llm(self) -> dict[str, str]:
        """Return only role and content (chat completion format)."""
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Fact:
    """A durable piece of knowledge about the user.

    Attributes:
        category: Group of the fact (e.g., 'user_info', 'preferences').
        subject: Identifier inside the category. Unique per category.
        content: The fact itself.
        id: Database ID, None for facts not yet stored.
        created_at: Timestamp when created.
        updated_at: Timestamp when last updated.
    """

    category: str
    subject: str
    content: str
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Fact":
        """Build a Fact from a facts row."""
        return cls(
            id=row["id"],
            category=row["category"],
            subject=row["subject"],
            content=row["content"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def embedding_text(self) -> str:
        """Text sent to the embedding provider for this fact."""
        return f"{self.category}: {self.subject} - {self.content}"


@dataclass(frozen=True)
class Chunk:
    """The embedded text and vector of one fact."""

    fact_id: int
    content: str
    embedding: bytes
    id: int | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Chunk":
        return cls(
            id=row["id"],
            fact_id=row["fact_id"],
            content=row["content"],
            embedding=bytes(row["embedding"] or b""),
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class Summary:
    """Compact replacement for a closed range of older messages."""

    start_message_id: int
    end_message_id: int
    content: str
    id: int | None = None
    token_count: int | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Summary":
        return cls(
            id=row["id"],
            start_message_id=row["start_message_id"],
            end_message_id=row["end_message_id"],
            content=row["content"],
            token_count=row["token_count"],
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class Job:
    """A scheduled prompt, stored for the scheduler."""

    name: str
    schedule: str
    prompt: str
    channel: str = "default"
    enabled: bool = True
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Job":
        return cls(
            id=row["id"],
            name=row["name"],
            schedule=row["schedule"],
            prompt=row["prompt"],
            channel=row["channel"],
            enabled=bool(row["enabled"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class ConversationContext:
    """Messages ready to be sent to the model, within a token budget."""

    messages: list[dict[str, str]]
    total_tokens: int
    summarized_count: int
    summary: str | None = None


@dataclass
class SearchResult:
    """A fact scored by the hybrid retriever."""

    fact: Fact
    score: float
    vector_score: float = 0.0
    keyword_score: float = 0.0


@dataclass(frozen=True)
class GraphNode:
    id: int
    subject: str
    category: str
    content: str
    group: int


@dataclass(frozen=True)
class GraphLink:
    source: int
    target: int
    type: LinkType
    strength: float


@dataclass
class GraphData:
    """Nodes and links for the facts visualization."""

    nodes: list[GraphNode] = field(default_factory=list)
    links: list[GraphLink] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "nodes": [vars(node) for node in self.nodes],
            "links": [vars(link) for link in self.links],
        }


@dataclass(frozen=True)
class MemoryStats:
    message_count: int
    fact_count: int
    job_count: int
    summary_count: int
    estimated_tokens: int
    embedded_fact_count: int
