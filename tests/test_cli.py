"""Tests for the memory CLI commands."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from recollect.cli import create_parser, run_cli
from recollect.config import MemoryConfig
from recollect.memory import Database, MemoryManager


@pytest.fixture
def config(tmp_path: Path, monkeypatch) -> MemoryConfig:
    """Config pointing at a temp database, with no credentials in the env."""
    for var in (
        "OPENAI_API_KEY",
        "GROQ_API_KEY",
        "RECOLLECT_DB_PATH",
        "RECOLLECT_LOG_DIR",
        "RECOLLECT_TOKEN_BUDGET",
    ):
        monkeypatch.delenv(var, raising=False)
    return MemoryConfig(db_path=tmp_path / "memory.db", log_dir=tmp_path / "logs")


@pytest.fixture
def cli(config: MemoryConfig):
    """Run the CLI against the temp config."""

    def run(*argv: str) -> int:
        with patch("recollect.cli.load_config", return_value=config):
            return run_cli(list(argv))

    return run


@pytest.fixture
def seed(config: MemoryConfig):
    """Write data directly through a manager."""

    def seed_with(fn) -> None:
        manager = MemoryManager(Database(config.db_path), config=config)
        try:
            fn(manager)
        finally:
            manager.close()

    return seed_with


class TestParser:
    """Tests for argument parsing."""

    def test_no_command_prints_help(self, cli, capsys):
        assert cli() == 0
        assert "usage:" in capsys.readouterr().out

    def test_forget_requires_int(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["forget", "abc"])


class TestFactCommands:
    """Tests for facts, remember and forget."""

    def test_remember_then_list(self, cli, capsys):
        """Remembered facts show up in the list."""
        assert cli("remember", "pets", "dog", "Rex the golden retriever") == 0
        assert cli("facts") == 0

        out = capsys.readouterr().out
        assert "Remembered fact 1: pets/dog" in out
        assert "Rex the golden retriever" in out
        assert "1 fact(s)" in out

    def test_remember_rejects_blank(self, cli, capsys):
        assert cli("remember", "pets", " ", "Rex") == 1
        assert "must not be empty" in capsys.readouterr().out

    def test_facts_by_category(self, cli, seed, capsys):
        seed(lambda m: (m.save_fact("pets", "dog", "Rex"), m.save_fact("work", "role", "Dev")))

        assert cli("facts", "--category", "work") == 0

        out = capsys.readouterr().out
        assert "Dev" in out
        assert "Rex" not in out

    def test_no_facts(self, cli, capsys):
        assert cli("facts") == 0
        assert "No facts stored." in capsys.readouterr().out

    def test_forget(self, cli, capsys):
        """Forgetting works once, then reports the fact missing."""
        cli("remember", "pets", "dog", "Rex")

        assert cli("forget", "1") == 0
        assert cli("forget", "1") == 1
        assert "Fact 1 not found" in capsys.readouterr().out


class TestQueryCommands:
    """Tests for stats, search, graph and context."""

    def test_stats(self, cli, seed, capsys):
        seed(lambda m: (m.save_message("user", "a" * 8), m.save_fact("pets", "dog", "Rex")))

        assert cli("stats") == 0

        out = capsys.readouterr().out
        assert "Messages:        1" in out
        assert "Facts:           1" in out
        assert "Embeddings:      disabled" in out

    def test_search(self, cli, seed, capsys):
        seed(lambda m: m.save_fact("preferences", "drink", "Black coffee"))

        assert cli("search", "coffee") == 0

        out = capsys.readouterr().out
        assert "drink: Black coffee" in out

    def test_graph_json(self, cli, seed, capsys):
        seed(lambda m: (m.save_fact("pets", "dog", "Rex"), m.save_fact("pets", "cat", "Luna")))

        assert cli("graph") == 0

        graph = json.loads(capsys.readouterr().out)
        assert len(graph["nodes"]) == 2
        assert graph["links"][0]["type"] == "category"

    def test_context(self, cli, seed, capsys):
        """The context preview summarizes what doesn't fit."""
        seed(lambda m: [m.save_message("user", f"message {i} ".ljust(40, "x")) for i in range(5)])

        assert cli("context", "--budget", "10030") == 0

        out = capsys.readouterr().out
        assert "[system] [Previous conversation summary]" in out
        assert "Summarized: 2" in out


class TestJobAndClearCommands:
    """Tests for jobs and clear."""

    def test_jobs(self, cli, seed, capsys):
        def add_jobs(manager):
            manager.save_job("morning", "0 8 * * *", "Plan the day")
            manager.save_job("weekly", "0 9 * * 1", "Weekly review")
            manager.set_job_enabled("weekly", False)

        seed(add_jobs)

        assert cli("jobs") == 0
        enabled_only = capsys.readouterr().out
        assert cli("jobs", "--all") == 0
        everything = capsys.readouterr().out

        assert "morning" in enabled_only
        assert "weekly" not in enabled_only
        assert "weekly" in everything
        assert "2 job(s)" in everything

    def test_clear(self, cli, seed, capsys, config):
        seed(lambda m: (m.save_message("user", "hi"), m.save_fact("pets", "dog", "Rex")))

        assert cli("clear") == 0
        assert "Cleared 1 message(s)" in capsys.readouterr().out

        manager = MemoryManager(Database(config.db_path), config=config)
        try:
            assert manager.get_message_count() == 0
            assert len(manager.get_all_facts()) == 1
        finally:
            manager.close()
