"""
Configuration loader for the scroll exporter.
Loads settings from a JSON config file with fallback defaults.
"""

import json
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from scroll_exporter.utils.exceptions import ConfigError


@dataclass
class ApiConfig:
    """Search service connection configuration."""
    base_url: str = "http://localhost:9200"
    timeout: float = 300.0
    connect_timeout: float = 10.0
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    verify_tls: bool = True


@dataclass
class QueryConfig:
    """Scroll query configuration."""
    index: str = "sample_data"
    page_size: int = 10
    fields: List[str] = field(default_factory=lambda: ["title"])
    sort: List[str] = field(default_factory=lambda: ["_doc"])
    scroll_ttl: str = "5m"
    query: Optional[Dict[str, Any]] = None


@dataclass
class RetryConfig:
    """Retry configuration for scroll continuation requests."""
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: Optional[float] = None


@dataclass
class OutputConfig:
    """Output sink configuration."""
    path: str = "titles_output.ndjson"
    format: Optional[str] = None
    missing: str = "skip"
    echo: bool = False


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class Config:
    """Root configuration object."""
    api: ApiConfig = field(default_factory=ApiConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> "Config":
        """
        Check value ranges that the dataclasses cannot express.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If any value has the wrong type or is out of range
        """
        if not isinstance(self.api.base_url, str):
            raise ConfigError(f"api.base_url must be a string, got {self.api.base_url!r}")
        for name in ("timeout", "connect_timeout"):
            value = getattr(self.api, name)
            if not _is_number(value) or value <= 0:
                raise ConfigError(f"api.{name} must be a positive number, got {value!r}")
        if not self.api.base_url:
            raise ConfigError("api.base_url must not be empty")
        if not self.query.index:
            raise ConfigError("query.index must not be empty")
        if not isinstance(self.query.index, str):
            raise ConfigError(f"query.index must be a string, got {self.query.index!r}")
        if not _is_int(self.query.page_size):
            raise ConfigError(f"query.page_size must be an integer, got {self.query.page_size!r}")
        if self.query.page_size < 1:
            raise ConfigError(f"query.page_size must be positive, got {self.query.page_size}")
        if not self.query.fields:
            raise ConfigError("query.fields must name at least one field")
        if not isinstance(self.query.fields, list) or not all(isinstance(f, str) and f for f in self.query.fields):
            raise ConfigError(f"query.fields must be a list of field names, got {self.query.fields!r}")
        if not self.query.sort:
            raise ConfigError("query.sort must not be empty")
        if not _is_int(self.retry.max_attempts):
            raise ConfigError(f"retry.max_attempts must be an integer, got {self.retry.max_attempts!r}")
        if self.retry.max_attempts < 1:
            raise ConfigError(f"retry.max_attempts must be >= 1, got {self.retry.max_attempts}")
        if not _is_number(self.retry.base_delay):
            raise ConfigError(f"retry.base_delay must be a number, got {self.retry.base_delay!r}")
        if self.retry.base_delay < 0:
            raise ConfigError(f"retry.base_delay must be >= 0, got {self.retry.base_delay}")
        if self.retry.max_delay is not None and (not _is_number(self.retry.max_delay) or self.retry.max_delay < 0):
            raise ConfigError(f"retry.max_delay must be a non-negative number, got {self.retry.max_delay!r}")
        if self.output.missing not in ("skip", "null"):
            raise ConfigError(f"output.missing must be 'skip' or 'null', got {self.output.missing!r}")
        return self


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to config JSON. If None, uses ./scroll_exporter.json.

    Returns:
        Config dataclass populated from JSON.

    Raises:
        ConfigError: If the file exists but is not valid JSON
    """
    if config_path is None:
        config_path = Path.cwd() / "scroll_exporter.json"
    config_path = Path(config_path)

    config = Config()

    if config_path.exists():
        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e

        # API
        if "api" in data:
            api = data["api"]
            config.api = ApiConfig(
                base_url=api.get("base_url", "http://localhost:9200"),
                timeout=api.get("timeout", 300.0),
                connect_timeout=api.get("connect_timeout", 10.0),
                api_key=api.get("api_key"),
                username=api.get("username"),
                password=api.get("password"),
                verify_tls=api.get("verify_tls", True),
            )

        # Query
        if "query" in data:
            q = data["query"]
            config.query = QueryConfig(
                index=q.get("index", "sample_data"),
                page_size=q.get("page_size", 10),
                fields=q.get("fields", ["title"]),
                sort=q.get("sort", ["_doc"]),
                scroll_ttl=q.get("scroll_ttl", "5m"),
                query=q.get("query"),
            )

        # Retry
        if "retry" in data:
            r = data["retry"]
            config.retry = RetryConfig(
                max_attempts=r.get("max_attempts", 3),
                base_delay=r.get("base_delay", 2.0),
                max_delay=r.get("max_delay"),
            )

        # Output
        if "output" in data:
            o = data["output"]
            config.output = OutputConfig(
                path=o.get("path", "titles_output.ndjson"),
                format=o.get("format"),
                missing=o.get("missing", "skip"),
                echo=o.get("echo", False),
            )

    if config.api.api_key is None:
        config.api.api_key = os.getenv("API_KEY") or None

    return config


# Global config singleton
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global config singleton, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[Config]) -> None:
    """Set global config singleton (for testing)."""
    global _config
    _config = config
