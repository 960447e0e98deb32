"""JSONL event log for memory observability."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    message_id: int | None = None
    fact_id: int | None = None
    count: int | None = None
    duration_ms: float | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes memory events in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".recollect" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log(
        self,
        event: str,
        *,
        message_id: int | None = None,
        fact_id: int | None = None,
        count: int | None = None,
        duration_ms: float | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            message_id=message_id,
            fact_id=fact_id,
            count=count,
            duration_ms=duration_ms,
            error=error,
            extra={k: v for k, v in extra.items() if v is not None},
        )
        self._write(entry)

    def log_embedding(
        self,
        fact_id: int,
        success: bool,
        *,
        duration_ms: float | None = None,
        dimensions: int | None = None,
        error: str | None = None,
    ) -> None:
        """Log the outcome of embedding one fact."""
        if success:
            self.log(
                "embedding_stored",
                fact_id=fact_id,
                duration_ms=duration_ms,
                dimensions=dimensions,
            )
        else:
            self.log("embedding_failed", fact_id=fact_id, error=error)

    def log_summary(
        self,
        start_message_id: int,
        end_message_id: int,
        *,
        reused: bool,
        messages: int | None = None,
        tokens: int | None = None,
        mode: str | None = None,
    ) -> None:
        """Log a summary being reused or created."""
        self.log(
            "summary_reused" if reused else "summary_created",
            message_id=end_message_id,
            count=messages,
            start_message_id=start_message_id,
            tokens=tokens,
            mode=mode,
        )

    def log_search(
        self,
        results: int,
        duration_ms: float,
        *,
        vector_ok: bool,
        lexical_ok: bool,
    ) -> None:
        """Log a hybrid search."""
        self.log(
            "search",
            count=results,
            duration_ms=duration_ms,
            vector_ok=vector_ok,
            lexical_ok=lexical_ok,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
