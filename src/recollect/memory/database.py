"""SQLite storage resource shared by the memory components."""

import logging
import sqlite3
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


def _casefold(value: object) -> object:
    return value.casefold() if isinstance(value, str) else value


SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    role         TEXT NOT NULL CHECK(role IN ('user', 'assistant', 'system')),
    content      TEXT NOT NULL,
    timestamp    TEXT NOT NULL DEFAULT (datetime('now')),
    token_count  INTEGER
);

CREATE TABLE IF NOT EXISTS facts (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    category    TEXT NOT NULL,
    subject     TEXT NOT NULL DEFAULT '',
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS chunks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    fact_id     INTEGER NOT NULL,
    content     TEXT NOT NULL,
    embedding   BLOB,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (fact_id) REFERENCES facts(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS summaries (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    start_message_id  INTEGER NOT NULL,
    end_message_id    INTEGER NOT NULL,
    content           TEXT NOT NULL,
    token_count       INTEGER,
    created_at        TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS jobs (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    schedule    TEXT NOT NULL,
    prompt      TEXT NOT NULL,
    channel     TEXT NOT NULL DEFAULT 'default',
    enabled     INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp);
CREATE INDEX IF NOT EXISTS idx_facts_category ON facts(category);
CREATE INDEX IF NOT EXISTS idx_chunks_fact_id ON chunks(fact_id);
CREATE INDEX IF NOT EXISTS idx_summaries_range ON summaries(start_message_id, end_message_id);
"""

FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS facts_fts USING fts5(
    category,
    subject,
    content
)
"""


class Database:
    """Owner of the SQLite connection for the whole memory engine.

    Created once and passed to every component. The connection is opened
    lazily (or explicitly with ``open``) and released with ``close``.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the resource with a database path.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self.fts_available = False

    def __enter__(self) -> "Database":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        """The live connection, opening the database if needed."""
        if self._conn is None:
            self.open()
        assert self._conn is not None
        return self._conn

    def open(self) -> None:
        """Connect and make sure the schema exists. Idempotent."""
        if self._conn is not None:
            return
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        # SQLite lower() and LIKE only fold ASCII.
        self._conn.create_function("casefold", 1, _casefold, deterministic=True)
        self.init_schema()

    def init_schema(self) -> None:
        """Create tables, indexes and the full-text index if missing."""
        conn = self.connection
        conn.executescript(SCHEMA)
        self._migrate_facts(conn)
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_facts_category_subject "
            "ON facts(category, subject)"
        )
        try:
            conn.execute(FTS_SCHEMA)
            self.fts_available = True
        except sqlite3.OperationalError as e:
            logger.warning("FTS5 unavailable, keyword search disabled: %s", e)
            self.fts_available = False
        conn.commit()

    def _migrate_facts(self, conn: sqlite3.Connection) -> None:
        """Add the subject column to facts tables created before it existed."""
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(facts)")}
        if "subject" not in columns:
            conn.execute("ALTER TABLE facts ADD COLUMN subject TEXT NOT NULL DEFAULT ''")
            logger.info("Migrated facts table: added subject column")

    def table_names(self) -> set[str]:
        """Names of all tables, virtual ones included."""
        cursor = self.connection.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        )
        return {row["name"] for row in cursor.fetchall()}

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
