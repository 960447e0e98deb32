"""Long-term fact storage with a mirrored full-text index."""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import TYPE_CHECKING

from ..logging import JSONLLogger, get_logger
from .database import Database
from .models import Fact

if TYPE_CHECKING:
    from .embeddings import EmbeddingCache

logger = logging.getLogger(__name__)

FACT_COLUMNS = "id, category, subject, content, created_at, updated_at"
LEXICAL_RESULT_LIMIT = 20
_WORD_RE = re.compile(r"\w+", re.UNICODE)


def build_match_query(query: str) -> str | None:
    """Turn free text into an FTS5 query: the phrase OR any of its words.

    Every term is quoted, so FTS5 operators and punctuation in user input
    are treated as plain text.

    Returns:
        The MATCH expression, or None if the text has no words.
    """
    terms = _WORD_RE.findall(query)
    if not terms:
        return None
    parts = [f'"{" ".join(terms)}"']
    for term in dict.fromkeys(terms):
        quoted = f'"{term}"'
        if quoted not in parts:
            parts.append(quoted)
    return " OR ".join(parts)


class LexicalIndex:
    """FTS5 index over category, subject and content of facts.

    The rowid of every index row is the id of its fact. Writers call
    ``upsert`` and ``remove`` inside the same transaction as the fact
    mutation, so the index always matches the live fact set.
    """

    def __init__(self, database: Database) -> None:
        self.db = database

    @property
    def available(self) -> bool:
        """Whether FTS5 could be created on this database."""
        if not self.db.is_open:
            self.db.open()
        return self.db.fts_available

    def upsert(self, conn: sqlite3.Connection, fact: Fact) -> None:
        """Write the index row of a fact, replacing any previous one."""
        if not self.available:
            return
        conn.execute("DELETE FROM facts_fts WHERE rowid = ?", (fact.id,))
        conn.execute(
            "INSERT INTO facts_fts (rowid, category, subject, content) VALUES (?, ?, ?, ?)",
            (fact.id, fact.category, fact.subject, fact.content),
        )

    def remove(self, conn: sqlite3.Connection, fact_ids: list[int]) -> None:
        if not self.available:
            return
        conn.executemany("DELETE FROM facts_fts WHERE rowid = ?", [(i,) for i in fact_ids])

    def count(self) -> int:
        if not self.available:
            return 0
        return self.db.connection.execute("SELECT COUNT(*) AS c FROM facts_fts").fetchone()["c"]

    def clear(self) -> None:
        if not self.available:
            return
        conn = self.db.connection
        with conn:
            conn.execute("DELETE FROM facts_fts")

    def backfill(self) -> int:
        """Rebuild the index from the facts table when it is empty.

        Recovery path for a new or corrupted index.

        Returns:
            Number of facts indexed.
        """
        if not self.available or self.count() > 0:
            return 0

        conn = self.db.connection
        rows = conn.execute(f"SELECT {FACT_COLUMNS} FROM facts").fetchall()
        if not rows:
            return 0

        logger.info("Rebuilding full-text index...")
        with conn:
            for row in rows:
                self.upsert(conn, Fact.from_row(row))
        logger.info("Rebuilt full-text index with %d facts", len(rows))
        return len(rows)

    def search(self, query: str, limit: int = LEXICAL_RESULT_LIMIT) -> list[tuple[Fact, float]]:
        """Ranked keyword search.

        Args:
            query: Free text.
            limit: Maximum number of hits.

        Returns:
            (fact, bm25 rank) pairs, best first. Lower (more negative)
            ranks are more relevant.
        """
        if not self.available:
            return []
        match = build_match_query(query)
        if match is None:
            return []
        cursor = self.db.connection.execute(
            """
            SELECT f.id, f.category, f.subject, f.content, f.created_at, f.updated_at,
                   bm25(facts_fts) AS rank
            FROM facts_fts
            JOIN facts f ON facts_fts.rowid = f.id
            WHERE facts_fts MATCH ?
            ORDER BY rank
            LIMIT ?
            """,
            (match, limit),
        )
        return [(Fact.from_row(row), float(row["rank"])) for row in cursor.fetchall()]


class FactStore:
    """Canonical store of facts, unique per (category, subject)."""

    def __init__(
        self,
        database: Database,
        index: LexicalIndex | None = None,
        embeddings: EmbeddingCache | None = None,
        events: JSONLLogger | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            database: The shared storage resource.
            index: Lexical index kept in sync with the facts.
            embeddings: Cache re-embedding facts after each save.
            events: JSONL event log. Uses the global logger if None.
        """
        self.db = database
        self.index = index or LexicalIndex(database)
        self.embeddings = embeddings
        self.events = events or get_logger()

    def save_fact(self, category: str, subject: str, content: str) -> int:
        """Insert a fact, or update the content of the existing one.

        The fact keeps its id when (category, subject) already exists.
        Re-embedding runs in the background; its failures are only logged.

        Returns:
            The id of the fact.
        """
        conn = self.db.connection
        with conn:
            row = conn.execute(
                f"""
                INSERT INTO facts (category, subject, content)
                VALUES (?, ?, ?)
                ON CONFLICT(category, subject) DO UPDATE SET
                    content = excluded.content,
                    updated_at = datetime('now')
                RETURNING {FACT_COLUMNS}
                """,
                (category, subject, content),
            ).fetchone()
            fact = Fact.from_row(row)
            self.index.upsert(conn, fact)

        assert fact.id is not None
        self.events.log("fact_saved", fact_id=fact.id, category=category)
        if self.embeddings is not None:
            self.embeddings.schedule(fact)
        return fact.id

    def get_fact(self, fact_id: int) -> Fact | None:
        row = self.db.connection.execute(
            f"SELECT {FACT_COLUMNS} FROM facts WHERE id = ?", (fact_id,)
        ).fetchone()
        return Fact.from_row(row) if row else None

    def get_all_facts(self) -> list[Fact]:
        """All facts ordered by category, then subject."""
        cursor = self.db.connection.execute(
            f"SELECT {FACT_COLUMNS} FROM facts ORDER BY category, subject"
        )
        return [Fact.from_row(row) for row in cursor.fetchall()]

    def get_fact_count(self) -> int:
        return self.db.connection.execute("SELECT COUNT(*) AS c FROM facts").fetchone()["c"]

    def get_facts_by_category(self, category: str) -> list[Fact]:
        cursor = self.db.connection.execute(
            f"""
            SELECT {FACT_COLUMNS} FROM facts
            WHERE category = ?
            ORDER BY subject, updated_at DESC
            """,
            (category,),
        )
        return [Fact.from_row(row) for row in cursor.fetchall()]

    def get_fact_categories(self) -> list[str]:
        cursor = self.db.connection.execute(
            "SELECT DISTINCT category FROM facts ORDER BY category"
        )
        return [row["category"] for row in cursor.fetchall()]

    def _delete_where(self, where: str, params: tuple[object, ...]) -> bool:
        conn = self.db.connection
        with conn:
            ids = [row["id"] for row in conn.execute(f"SELECT id FROM facts WHERE {where}", params)]
            if not ids:
                return False
            # Chunks go with the fact (ON DELETE CASCADE).
            conn.execute(f"DELETE FROM facts WHERE {where}", params)
            self.index.remove(conn, ids)
        for fact_id in ids:
            self.events.log("fact_deleted", fact_id=fact_id)
        return True

    def delete_fact(self, fact_id: int) -> bool:
        """Delete a fact by id.

        Returns:
            True if a fact was deleted, False otherwise.
        """
        return self._delete_where("id = ?", (fact_id,))

    def delete_fact_by_subject(self, category: str, subject: str) -> bool:
        """Delete the fact stored under (category, subject)."""
        return self._delete_where("category = ? AND subject = ?", (category, subject))

    def search_facts(self, query: str, category: str | None = None) -> list[Fact]:
        """Case-insensitive substring search, independent of the hybrid engine.

        Case is folded with ``str.casefold``, so non-ASCII letters match
        across case ("É" finds "é").

        Args:
            query: Text to look for.
            category: Restrict to one category (matching content or subject).

        Returns:
            Matching facts, most recently updated first.
        """
        needle = query.casefold()
        conn = self.db.connection

        if category:
            cursor = conn.execute(
                f"""
                SELECT {FACT_COLUMNS} FROM facts
                WHERE category = ?
                  AND (instr(casefold(content), ?) > 0 OR instr(casefold(subject), ?) > 0)
                ORDER BY updated_at DESC, id DESC
                """,
                (category, needle, needle),
            )
        else:
            cursor = conn.execute(
                f"""
                SELECT {FACT_COLUMNS} FROM facts
                WHERE instr(casefold(content), ?) > 0
                   OR instr(casefold(subject), ?) > 0
                   OR instr(casefold(category), ?) > 0
                ORDER BY updated_at DESC, id DESC
                """,
                (needle, needle, needle),
            )
        return [Fact.from_row(row) for row in cursor.fetchall()]

    def get_facts_for_context(self) -> str:
        """Render all facts as a markdown block for the system prompt.

        Ordering is by category then subject, so the prompt is stable.

        Returns:
            The block, or an empty string if no facts.
        """
        facts = self.get_all_facts()
        if not facts:
            return ""

        by_category: dict[str, list[Fact]] = {}
        for fact in facts:
            by_category.setdefault(fact.category, []).append(fact)

        lines = ["## Known Facts"]
        for category, category_facts in by_category.items():
            lines.append(f"\n### {category}")
            for fact in category_facts:
                if fact.subject:
                    lines.append(f"- **{fact.subject}**: {fact.content}")
                else:
                    lines.append(f"- {fact.content}")
        return "\n".join(lines)
