"""Summaries of older conversation ranges.

The pipeline decides, for a cutoff message id, whether an existing summary
can be reused as is, whether a previous summary only needs to be extended
with the messages written since, or whether the whole range must be
summarized. Without an LLM summarizer a deterministic basic summary is used.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from groq import AsyncGroq

from ..logging import JSONLLogger, get_logger
from .conversation import CHARS_PER_TOKEN, ConversationStore, estimate_tokens
from .database import Database
from .models import Message, Role, Summary

logger = logging.getLogger(__name__)

Summarizer = Callable[[list[Message]], Awaitable[str]]

MAX_SUMMARIES = 3
BASIC_SUMMARY_USER_MESSAGES = 20
BASIC_SUMMARY_TOPICS = 10
BASIC_SUMMARY_SNIPPET = 100

SUMMARY_PROMPT = """Summarize the following conversation between a user and an assistant.
Keep names, decisions, open tasks and preferences. Drop greetings and small talk.
If a previous summary is included, merge it with the new messages into one summary.
Write plain prose, at most a few short paragraphs.

Conversation:
"""


def create_basic_summary(messages: list[Message]) -> str:
    """Build a deterministic summary without an LLM.

    Lists up to 10 distinct snippets taken from the last 20 user messages.

    Args:
        messages: The messages of the summarized range.

    Returns:
        The summary text.
    """
    user_messages = [m for m in messages if m.role == Role.USER.value]
    topics: list[str] = []
    for message in user_messages[-BASIC_SUMMARY_USER_MESSAGES:]:
        topic = message.content[:BASIC_SUMMARY_SNIPPET].replace("\n", " ")
        if topic not in topics:
            topics.append(topic)

    topic_lines = "\n".join(f"- {t}..." for t in topics[:BASIC_SUMMARY_TOPICS])
    return f"Previous conversation ({len(messages)} messages) covered:\n{topic_lines}"


class SummarizationPipeline:
    """Produces, reuses and extends summaries of older messages.

    Reads messages but never mutates them. Keeps at most the three most
    recent summaries by end message id.
    """

    def __init__(
        self,
        database: Database,
        summarizer: Summarizer | None = None,
        chars_per_token: int = CHARS_PER_TOKEN,
        fallback_to_basic: bool = False,
        events: JSONLLogger | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            database: The shared storage resource.
            summarizer: Async function turning messages into a summary.
            chars_per_token: Characters per estimated token.
            fallback_to_basic: Use the basic summary when the summarizer
                fails instead of propagating the error.
            events: JSONL event log. Uses the global logger if None.
        """
        self.db = database
        self.summarizer = summarizer
        self.chars_per_token = chars_per_token
        self.fallback_to_basic = fallback_to_basic
        self.events = events or get_logger()
        self.messages = ConversationStore(
            database, chars_per_token=chars_per_token, events=self.events
        )

    def set_summarizer(self, summarizer: Summarizer | None) -> None:
        self.summarizer = summarizer

    def list_summaries(self) -> list[Summary]:
        """All stored summaries, most recent range first."""
        cursor = self.db.connection.execute(
            """
            SELECT id, start_message_id, end_message_id, content, token_count, created_at
            FROM summaries
            ORDER BY end_message_id DESC, id DESC
            """
        )
        return [Summary.from_row(row) for row in cursor.fetchall()]

    def _find_exact(self, end_message_id: int) -> Summary | None:
        row = self.db.connection.execute(
            """
            SELECT id, start_message_id, end_message_id, content, token_count, created_at
            FROM summaries
            WHERE end_message_id = ?
            ORDER BY id DESC
            LIMIT 1
            """,
            (end_message_id,),
        ).fetchone()
        return Summary.from_row(row) if row else None

    def _find_partial(self, before_message_id: int) -> Summary | None:
        row = self.db.connection.execute(
            """
            SELECT id, start_message_id, end_message_id, content, token_count, created_at
            FROM summaries
            WHERE end_message_id < ?
            ORDER BY end_message_id DESC, id DESC
            LIMIT 1
            """,
            (before_message_id,),
        ).fetchone()
        return Summary.from_row(row) if row else None

    async def get_or_create_summary(self, cutoff_id: int) -> str | None:
        """Return a summary of every message with an id below ``cutoff_id``.

        Args:
            cutoff_id: Id of the oldest message kept verbatim.

        Returns:
            The summary text, or None when there is nothing to summarize.

        Raises:
            Exception: Whatever the summarizer raises, unless
                ``fallback_to_basic`` is set.
        """
        if cutoff_id <= 1:
            return None

        existing = self._find_exact(cutoff_id - 1)
        if existing is not None:
            logger.debug("Reusing summary for messages up to %d", existing.end_message_id)
            self.events.log_summary(
                existing.start_message_id, existing.end_message_id, reused=True
            )
            return existing.content

        messages = self.messages.get_messages_before(cutoff_id)
        if not messages:
            return None

        partial = self._find_partial(cutoff_id)
        start_id = messages[0].id
        end_id = messages[-1].id
        assert start_id is not None and end_id is not None

        if partial is not None and self.summarizer is not None:
            new_messages = self.messages.get_messages_between(partial.end_message_id, cutoff_id)
            if not new_messages:
                return partial.content
            seed = Message(role=Role.SYSTEM.value, content=f"Previous summary: {partial.content}")
            summary, mode = await self._summarize([seed, *new_messages], messages), "extend"
        elif self.summarizer is not None:
            summary, mode = await self._summarize(messages, messages), "full"
        else:
            summary, mode = create_basic_summary(messages), "basic"

        token_count = estimate_tokens(summary, self.chars_per_token)
        logger.info(
            "Created %s summary for messages %d-%d (%d messages, %d tokens)",
            mode,
            start_id,
            end_id,
            len(messages),
            token_count,
        )
        conn = self.db.connection
        with conn:
            conn.execute(
                """
                INSERT INTO summaries (start_message_id, end_message_id, content, token_count)
                VALUES (?, ?, ?, ?)
                """,
                (start_id, end_id, summary, token_count),
            )
        self.prune()
        self.events.log_summary(
            start_id, end_id, reused=False, messages=len(messages), tokens=token_count, mode=mode
        )
        return summary

    async def _summarize(self, prompt_messages: list[Message], full_range: list[Message]) -> str:
        """Call the summarizer, degrading to the basic summary if configured."""
        assert self.summarizer is not None
        try:
            return await self.summarizer(prompt_messages)
        except Exception as e:
            if not self.fallback_to_basic:
                raise
            logger.warning("Summarizer failed, using basic summary: %s", e)
            return create_basic_summary(full_range)

    def prune(self, keep: int = MAX_SUMMARIES) -> int:
        """Delete all but the ``keep`` most recent summaries by end message id.

        Returns:
            Number of summaries deleted.
        """
        conn = self.db.connection
        with conn:
            cursor = conn.execute(
                """
                DELETE FROM summaries WHERE id NOT IN (
                    SELECT id FROM summaries ORDER BY end_message_id DESC, id DESC LIMIT ?
                )
                """,
                (keep,),
            )
        return cursor.rowcount


class GroqSummarizer:
    """Summarizer backed by Groq chat completions.

    Example:
        from groq import AsyncGroq

        summarizer = GroqSummarizer(AsyncGroq(api_key="..."))
        pipeline = SummarizationPipeline(database, summarizer=summarizer)
    """

    def __init__(
        self,
        client: AsyncGroq,
        model: str = "llama-3.1-70b-versatile",
    ) -> None:
        """Initialize the summarizer.

        Args:
            client: The AsyncGroq client instance.
            model: The model to use for summaries.
        """
        self._client = client
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    def _format_conversation(self, messages: list[Message]) -> str:
        lines = []
        for message in messages:
            if message.role == Role.USER.value:
                lines.append(f"User: {message.content}")
            elif message.role == Role.ASSISTANT.value:
                lines.append(f"Assistant: {message.content}")
            else:
                lines.append(f"[{message.content}]")
        return "\n".join(lines)

    async def __call__(self, messages: list[Message]) -> str:
        """Summarize messages. Errors from the API propagate."""
        request: list[dict[str, Any]] = [
            {"role": "user", "content": SUMMARY_PROMPT + self._format_conversation(messages)}
        ]
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=request,
            temperature=0.2,
        )
        return (response.choices[0].message.content or "").strip()
