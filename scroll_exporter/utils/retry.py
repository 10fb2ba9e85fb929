"""
Retry helpers for scroll requests.
Implements deterministic exponential backoff (d, 2d, 4d, ...) with no jitter.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from scroll_exporter.utils.exceptions import (
    FetchError,
    HttpStatusError,
    MalformedResponseError,
    TransportError,
)
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("retry")

T = TypeVar("T")

RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    TransportError,
    HttpStatusError,
    MalformedResponseError,
)


@dataclass
class RetryContext:
    """Attempt/delay state for a single batch fetch."""
    max_attempts: int = 3
    delay: float = 2.0
    max_delay: Optional[float] = None
    attempt: int = 1

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")
        self.delay = self._capped(self.delay)

    @property
    def exhausted(self) -> bool:
        """True once the current attempt is the last one allowed."""
        return self.attempt >= self.max_attempts

    def next_attempt(self) -> None:
        """Advance to the next attempt, doubling the delay."""
        self.attempt += 1
        self.delay = self._capped(self.delay * 2)

    def _capped(self, delay: float) -> float:
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay


def call_with_retry(
    func: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    max_delay: Optional[float] = None,
    retryable_exceptions: Tuple[Type[Exception], ...] = RETRYABLE_EXCEPTIONS,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "request",
) -> T:
    """
    Call func until it returns, retrying retryable failures with backoff.

    Args:
        func: Zero-argument callable performing one attempt
        max_attempts: Maximum number of attempts (including the first)
        base_delay: Delay after the first failure, in seconds
        max_delay: Optional ceiling for the delay
        retryable_exceptions: Exception types that trigger a retry
        sleep: Sleep function (injectable for tests)
        description: Label used in log messages

    Returns:
        The value returned by the first successful attempt

    Raises:
        FetchError: After max_attempts failed attempts
    """
    ctx = RetryContext(max_attempts=max_attempts, delay=base_delay, max_delay=max_delay)

    while True:
        logger.info(
            f"Fetching {description} (attempt {ctx.attempt}/{ctx.max_attempts}, "
            f"delay {ctx.delay:g} seconds)"
        )
        try:
            return func()
        except retryable_exceptions as e:
            if ctx.exhausted:
                logger.error(f"Failed to fetch {description} after {ctx.max_attempts} attempts: {e}")
                raise FetchError(attempts=ctx.attempt, last_error=e) from e

            logger.warning(f"Attempt {ctx.attempt} failed ({e}). Retrying in {ctx.delay:g} seconds...")
            sleep(ctx.delay)
            ctx.next_attempt()
