"""
Custom exceptions for the scroll exporter.

Retryable (contained in BatchFetcher):
    TransportError, HttpStatusError, MalformedResponseError

Fatal (surfaced by ExportOrchestrator after cursor release):
    OpenError, FetchError, InvalidCursorError, SinkWriteError

Never raised, only logged:
    CleanupError
"""

from typing import Optional


class ScrollExporterError(Exception):
    """Base exception for scroll exporter errors."""
    pass


class ConfigError(ScrollExporterError):
    """Invalid or inconsistent configuration."""
    pass


class TransportError(ScrollExporterError):
    """Connection failure or other transport-level error."""

    def __init__(self, message: str, endpoint: str = None):
        self.endpoint = endpoint
        super().__init__(message)


class NetworkTimeoutError(TransportError):
    """Network request timed out."""

    def __init__(self, endpoint: str = None, timeout: float = None):
        self.timeout = timeout
        message = f"Request timed out after {timeout}s" if timeout else "Request timed out"
        super().__init__(message, endpoint=endpoint)


class HttpStatusError(ScrollExporterError):
    """Search service answered with a status other than 200."""

    def __init__(self, status_code: int, endpoint: str = None, response_body: str = None):
        self.status_code = status_code
        self.endpoint = endpoint
        self.response_body = response_body
        super().__init__(f"HTTP {status_code} from {endpoint or 'search service'}")


class MalformedResponseError(ScrollExporterError):
    """200 response whose body lacks the expected structure."""

    def __init__(self, message: str, response_body: str = None):
        self.response_body = response_body
        super().__init__(message)


class FetchError(ScrollExporterError):
    """Scroll batch could not be fetched within the retry budget."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"Failed to fetch batch after {attempts} attempts"
        if last_error is not None:
            message += f" (last error: {last_error})"
        super().__init__(message)


class OpenError(ScrollExporterError):
    """Initial scroll query failed or returned no usable scroll ID."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(message)


class InvalidCursorError(ScrollExporterError):
    """Accepted batch carried no usable continuation scroll ID."""

    def __init__(self, message: str = "Invalid scroll ID received", scroll_id: Optional[str] = None):
        self.scroll_id = scroll_id
        super().__init__(message)


class CleanupError(ScrollExporterError):
    """Releasing the scroll context failed."""

    def __init__(self, scroll_id: str, cause: Optional[Exception] = None):
        self.scroll_id = scroll_id
        self.cause = cause
        message = "Failed to clear scroll context"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class SinkWriteError(ScrollExporterError):
    """Error writing extracted values to the output sink."""

    def __init__(self, path: str, reason: str = None):
        self.path = path
        message = f"Failed to write output: {path}"
        if reason:
            message += f" - {reason}"
        super().__init__(message)
