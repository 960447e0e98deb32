"""Tests for the SQLite storage resource."""

import sqlite3
from pathlib import Path

import pytest

from recollect.memory.database import Database


@pytest.fixture
def db(tmp_path: Path):
    """Create an open database in a temp dir."""
    database = Database(tmp_path / "memory.db")
    database.open()
    yield database
    database.close()


class TestDatabase:
    """Tests for Database lifecycle and schema."""

    def test_creates_tables(self, db: Database) -> None:
        """Should create all tables on open."""
        tables = db.table_names()

        for table in ("messages", "facts", "chunks", "summaries", "jobs"):
            assert table in tables

    def test_creates_fts_table(self, db: Database) -> None:
        """Should create the full-text index when FTS5 is available."""
        if not db.fts_available:
            pytest.skip("SQLite built without FTS5")

        assert "facts_fts" in db.table_names()

    def test_creates_parent_dirs(self, tmp_path: Path) -> None:
        """Should create missing parent directories."""
        path = tmp_path / "a" / "b" / "memory.db"

        with Database(path) as database:
            assert database.is_open

        assert path.exists()

    def test_in_memory(self) -> None:
        """Should accept ':memory:'."""
        with Database(":memory:") as database:
            assert "facts" in database.table_names()

    def test_open_is_idempotent(self, db: Database) -> None:
        """Opening twice keeps the same connection."""
        conn = db.connection
        db.open()

        assert db.connection is conn

    def test_close_is_idempotent(self, db: Database) -> None:
        """Closing twice doesn't raise."""
        db.close()
        db.close()

        assert not db.is_open

    def test_connection_reopens_lazily(self, db: Database) -> None:
        """Accessing the connection after close reopens the database."""
        db.close()

        assert db.connection.execute("SELECT 1").fetchone()[0] == 1
        assert db.is_open

    def test_persists_across_reopen(self, tmp_path: Path) -> None:
        """Data survives closing and reopening."""
        path = tmp_path / "memory.db"
        with Database(path) as database:
            with database.connection as conn:
                conn.execute(
                    "INSERT INTO facts (category, subject, content) VALUES ('a', 'b', 'c')"
                )

        with Database(path) as database:
            count = database.connection.execute("SELECT COUNT(*) FROM facts").fetchone()[0]

        assert count == 1

    def test_rejects_invalid_role(self, db: Database) -> None:
        """The messages table only accepts known roles."""
        with pytest.raises(sqlite3.IntegrityError):
            db.connection.execute(
                "INSERT INTO messages (role, content) VALUES ('robot', 'hi')"
            )

    def test_category_subject_unique(self, db: Database) -> None:
        """Only one fact per category and subject."""
        conn = db.connection
        conn.execute("INSERT INTO facts (category, subject, content) VALUES ('a', 'b', 'c')")

        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO facts (category, subject, content) VALUES ('a', 'b', 'd')")

    def test_chunks_cascade_on_fact_delete(self, db: Database) -> None:
        """Deleting a fact deletes its chunks."""
        with db.connection as conn:
            fact_id = conn.execute(
                "INSERT INTO facts (category, subject, content) VALUES ('a', 'b', 'c')"
            ).lastrowid
            conn.execute(
                "INSERT INTO chunks (fact_id, content, embedding) VALUES (?, 'c', x'00')",
                (fact_id,),
            )
            conn.execute("DELETE FROM facts WHERE id = ?", (fact_id,))

        count = db.connection.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
        assert count == 0

    def test_migrates_facts_without_subject(self, tmp_path: Path) -> None:
        """An older facts table gains the subject column."""
        path = tmp_path / "old.db"
        conn = sqlite3.connect(path)
        conn.execute(
            "CREATE TABLE facts (id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "category TEXT NOT NULL, content TEXT NOT NULL, "
            "created_at TEXT NOT NULL DEFAULT (datetime('now')), "
            "updated_at TEXT NOT NULL DEFAULT (datetime('now')))"
        )
        conn.execute("INSERT INTO facts (category, content) VALUES ('notes', 'old fact')")
        conn.commit()
        conn.close()

        with Database(path) as database:
            row = database.connection.execute("SELECT subject, content FROM facts").fetchone()

        assert row["subject"] == ""
        assert row["content"] == "old fact"
