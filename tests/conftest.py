"""Shared test fixtures."""

from pathlib import Path

import pytest

from recollect.logging import configure_logger


@pytest.fixture(autouse=True)
def event_log(tmp_path: Path):
    """Route the global JSONL event log into the test's temp dir."""
    return configure_logger(tmp_path / "logs")
