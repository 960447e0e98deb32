"""Append-only conversation log with token accounting."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from ..logging import JSONLLogger, get_logger
from .database import Database
from .models import ConversationContext, Message, Role

if TYPE_CHECKING:
    from .summarizer import SummarizationPipeline

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
DEFAULT_TOKEN_BUDGET = 150000
RESERVED_TOKENS = 10000
SUMMARY_HEADER = "[Previous conversation summary]"


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate the token count of a text (~4 characters per token)."""
    return math.ceil(len(text) / chars_per_token)


class ConversationStore:
    """The single persistent conversation.

    Messages are never updated. The only deletion is ``clear_conversation``,
    which also discards every summary.
    """

    def __init__(
        self,
        database: Database,
        pipeline: SummarizationPipeline | None = None,
        chars_per_token: int = CHARS_PER_TOKEN,
        reserved_tokens: int = RESERVED_TOKENS,
        events: JSONLLogger | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            database: The shared storage resource.
            pipeline: Summarization pipeline used when the conversation
                no longer fits in the token budget.
            chars_per_token: Characters per estimated token.
            reserved_tokens: Budget held back for system prompt and tools.
            events: JSONL event log. Uses the global logger if None.
        """
        self.db = database
        self.pipeline = pipeline
        self.chars_per_token = chars_per_token
        self.reserved_tokens = reserved_tokens
        self.events = events or get_logger()

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text, self.chars_per_token)

    def save_message(self, role: Role | str, content: str) -> int:
        """Append a message to the conversation.

        Args:
            role: 'user', 'assistant' or 'system'.
            content: The message text.

        Returns:
            The id assigned to the message.

        Raises:
            ValueError: If the role is not a valid tag.
        """
        role_value = Role(role).value
        token_count = self.estimate_tokens(content)
        conn = self.db.connection
        cursor = conn.execute(
            "INSERT INTO messages (role, content, token_count) VALUES (?, ?, ?)",
            (role_value, content, token_count),
        )
        conn.commit()
        message_id = cursor.lastrowid
        assert message_id is not None
        self.events.log("message_saved", message_id=message_id, role=role_value, tokens=token_count)
        return message_id

    def get_recent_messages(self, limit: int = 50) -> list[Message]:
        """Get the most recent messages, oldest first.

        Args:
            limit: Maximum number of messages to return.

        Returns:
            Messages in chronological order.
        """
        if limit <= 0:
            return []
        cursor = self.db.connection.execute(
            """
            SELECT id, role, content, timestamp, token_count
            FROM messages
            ORDER BY id DESC
            LIMIT ?
            """,
            (limit,),
        )
        messages = [Message.from_row(row) for row in cursor.fetchall()]
        messages.reverse()
        return messages

    def get_message_count(self) -> int:
        row = self.db.connection.execute("SELECT COUNT(*) AS c FROM messages").fetchone()
        return row["c"]

    def get_messages_before(self, message_id: int) -> list[Message]:
        """Messages with an id below ``message_id``, oldest first."""
        cursor = self.db.connection.execute(
            """
            SELECT id, role, content, timestamp, token_count
            FROM messages
            WHERE id < ?
            ORDER BY id ASC
            """,
            (message_id,),
        )
        return [Message.from_row(row) for row in cursor.fetchall()]

    def get_messages_between(self, after_id: int, before_id: int) -> list[Message]:
        """Messages with ``after_id < id < before_id``, oldest first."""
        cursor = self.db.connection.execute(
            """
            SELECT id, role, content, timestamp, token_count
            FROM messages
            WHERE id > ? AND id < ?
            ORDER BY id ASC
            """,
            (after_id, before_id),
        )
        return [Message.from_row(row) for row in cursor.fetchall()]

    def _all_messages_newest_first(self) -> list[Message]:
        cursor = self.db.connection.execute(
            "SELECT id, role, content, timestamp, token_count FROM messages ORDER BY id DESC"
        )
        return [Message.from_row(row) for row in cursor.fetchall()]

    async def get_conversation_context(
        self, token_budget: int = DEFAULT_TOKEN_BUDGET
    ) -> ConversationContext:
        """Assemble the conversation for the model within a token budget.

        Recent messages are kept while they fit in ``token_budget`` minus the
        reserved margin. Everything older is replaced by a summary, prepended
        as a system message.

        Args:
            token_budget: Maximum estimated tokens of the model input.

        Returns:
            The context messages and token accounting.

        Raises:
            Exception: Whatever the configured summarizer raises.
        """
        available = token_budget - self.reserved_tokens
        all_messages = self._all_messages_newest_first()

        if not all_messages:
            return ConversationContext(messages=[], total_tokens=0, summarized_count=0)

        recent: list[Message] = []
        token_count = 0
        for message in all_messages:
            message_tokens = message.token_count or self.estimate_tokens(message.content)
            if token_count + message_tokens > available:
                break
            recent.append(message)
            token_count += message_tokens
        recent.reverse()

        if len(recent) == len(all_messages):
            return ConversationContext(
                messages=[m.to_llm() for m in recent],
                total_tokens=token_count,
                summarized_count=0,
            )

        # Not even the newest message fits: summarize everything.
        cutoff_id = recent[0].id if recent else all_messages[0].id + 1
        assert cutoff_id is not None

        summary: str | None = None
        if self.pipeline is not None:
            summary = await self.pipeline.get_or_create_summary(cutoff_id)

        summarized_count = len(all_messages) - len(recent)
        context_messages: list[dict[str, str]] = []
        if summary:
            logger.info("Including summary for %d older messages", summarized_count)
            context_messages.append(
                {"role": Role.SYSTEM.value, "content": f"{SUMMARY_HEADER}\n{summary}"}
            )
            token_count += self.estimate_tokens(summary)

        context_messages.extend(m.to_llm() for m in recent)

        return ConversationContext(
            messages=context_messages,
            total_tokens=token_count,
            summarized_count=summarized_count,
            summary=summary,
        )

    def clear_conversation(self) -> None:
        """Delete all messages and all summaries. Facts are untouched."""
        conn = self.db.connection
        with conn:
            conn.execute("DELETE FROM messages")
            conn.execute("DELETE FROM summaries")
        self.events.log("conversation_cleared")
