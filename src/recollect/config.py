"""Memory engine configuration.

Loads settings from ~/.recollect/config.json and lets environment
variables override them at startup.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".recollect"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"

# Environment variable -> (config attribute, converter)
ENV_OVERRIDES: dict[str, tuple[str, Any]] = {
    "RECOLLECT_DB_PATH": ("db_path", Path),
    "RECOLLECT_LOG_DIR": ("log_dir", Path),
    "RECOLLECT_TOKEN_BUDGET": ("token_budget", int),
    "OPENAI_API_KEY": ("embedding_api_key", str),
    "EMBEDDING_MODEL": ("embedding_model", str),
    "EMBEDDING_BASE_URL": ("embedding_base_url", str),
    "GROQ_API_KEY": ("groq_api_key", str),
    "GROQ_MODEL": ("summary_model", str),
}


@dataclass
class MemoryConfig:
    """Configuration for the memory engine.

    Attributes:
        db_path: SQLite database file.
        log_dir: Directory of the JSONL event log.
        token_budget: Default budget for conversation context assembly.
        reserved_tokens: Tokens held back for system prompt and tool overhead.
        chars_per_token: Characters per estimated token.
        embedding_api_key: Credential of the embedding provider. None disables embeddings.
        embedding_model: Embedding model name.
        embedding_dimensions: Length of the embedding vectors.
        embedding_base_url: Base URL of the OpenAI-compatible embeddings API.
        groq_api_key: Credential for the LLM summarizer. None uses basic summaries.
        summary_model: Model used to summarize older messages.
        summary_fallback: Degrade to the basic summary when the summarizer fails.
        vector_scan_limit: Most recent chunks scanned by vector search.
        max_search_results: Results returned by hybrid search.
    """

    db_path: Path | None = None
    log_dir: Path | None = None
    token_budget: int = 150000
    reserved_tokens: int = 10000
    chars_per_token: int = 4
    embedding_api_key: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_base_url: str = "https://api.openai.com/v1"
    groq_api_key: str | None = None
    summary_model: str = "llama-3.1-70b-versatile"
    summary_fallback: bool = False
    vector_scan_limit: int = 500
    max_search_results: int = 6

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = DEFAULT_HOME / "memory.db"
        if self.log_dir is None:
            self.log_dir = DEFAULT_HOME / "logs"

        if self.chars_per_token < 1:
            raise ValueError("chars_per_token must be at least 1")
        if self.reserved_tokens < 0:
            raise ValueError("reserved_tokens must not be negative")
        if self.token_budget <= self.reserved_tokens:
            raise ValueError("token_budget must be larger than reserved_tokens")
        if self.max_search_results < 1:
            raise ValueError("max_search_results must be at least 1")

    @property
    def embeddings_enabled(self) -> bool:
        return bool(self.embedding_api_key)


def load_config(config_path: Path | None = None) -> MemoryConfig:
    """Load MemoryConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "memory": {
        "db_path": "~/.recollect/memory.db",
        "token_budget": 150000,
        "embedding_model": "text-embedding-3-small",
        "summary_fallback": false
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        MemoryConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return MemoryConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return MemoryConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return MemoryConfig()

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> MemoryConfig:
    """Parse config dictionary into MemoryConfig."""
    memory_data = data.get("memory", {})
    if not isinstance(memory_data, dict):
        return MemoryConfig()

    kwargs: dict[str, Any] = {}
    for name in ("db_path", "log_dir"):
        value = memory_data.get(name)
        if isinstance(value, str) and value:
            kwargs[name] = Path(value).expanduser()

    for name in (
        "token_budget",
        "reserved_tokens",
        "chars_per_token",
        "embedding_dimensions",
        "vector_scan_limit",
        "max_search_results",
    ):
        value = memory_data.get(name)
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            kwargs[name] = value

    for name in ("embedding_model", "embedding_base_url", "summary_model"):
        value = memory_data.get(name)
        if isinstance(value, str) and value:
            kwargs[name] = value

    if isinstance(memory_data.get("summary_fallback"), bool):
        kwargs["summary_fallback"] = memory_data["summary_fallback"]

    try:
        return MemoryConfig(**kwargs)
    except ValueError as e:
        logger.warning("Invalid memory config: %s. Using defaults.", e)
        return MemoryConfig()


def apply_env(config: MemoryConfig, environ: dict[str, str] | None = None) -> MemoryConfig:
    """Override config values from environment variables.

    Args:
        config: The config to update in place.
        environ: Mapping to read from. Uses os.environ if None.

    Returns:
        The same config, for chaining.
    """
    env = os.environ if environ is None else environ
    for var, (attr, convert) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", var, raw)
            continue
        if isinstance(value, Path):
            value = value.expanduser()
        setattr(config, attr, value)
    return config


def save_config(config: MemoryConfig, config_path: Path | None = None) -> None:
    """Save MemoryConfig to a JSON file.

    Credentials are never written; they come from the environment.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses DEFAULT_CONFIG_PATH if None.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    defaults = MemoryConfig()
    memory_data: dict[str, Any] = {}
    for name in (
        "token_budget",
        "reserved_tokens",
        "chars_per_token",
        "embedding_model",
        "embedding_dimensions",
        "embedding_base_url",
        "summary_model",
        "summary_fallback",
        "vector_scan_limit",
        "max_search_results",
    ):
        value = getattr(config, name)
        if value != getattr(defaults, name):
            memory_data[name] = value
    if config.db_path != defaults.db_path:
        memory_data["db_path"] = str(config.db_path)
    if config.log_dir != defaults.log_dir:
        memory_data["log_dir"] = str(config.log_dir)

    data: dict[str, Any] = {"memory": memory_data} if memory_data else {}

    try:
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
