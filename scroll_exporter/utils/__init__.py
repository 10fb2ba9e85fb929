"""
Utility modules for the scroll exporter.
"""

from scroll_exporter.utils.logging_config import get_logger, set_log_level, setup_file_logging
from scroll_exporter.utils.exceptions import (
    ScrollExporterError,
    ConfigError,
    TransportError,
    NetworkTimeoutError,
    HttpStatusError,
    MalformedResponseError,
    FetchError,
    OpenError,
    InvalidCursorError,
    CleanupError,
    SinkWriteError,
)
from scroll_exporter.utils.retry import RetryContext, call_with_retry, RETRYABLE_EXCEPTIONS

__all__ = [
    "get_logger",
    "set_log_level",
    "setup_file_logging",
    "ScrollExporterError",
    "ConfigError",
    "TransportError",
    "NetworkTimeoutError",
    "HttpStatusError",
    "MalformedResponseError",
    "FetchError",
    "OpenError",
    "InvalidCursorError",
    "CleanupError",
    "SinkWriteError",
    "RetryContext",
    "call_with_retry",
    "RETRYABLE_EXCEPTIONS",
]
