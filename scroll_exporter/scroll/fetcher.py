"""
Batch Fetcher for scroll continuation requests.

Wraps the transport with the retry/backoff policy. A batch is accepted only
when the status is exactly 200 and the body carries a hits.hits list; every
other outcome is retried the same way.
"""

import time
from typing import Callable, Optional

from scroll_exporter.config import RetryConfig
from scroll_exporter.scroll.models import Batch, decode_batch
from scroll_exporter.transport.client import HttpTransport
from scroll_exporter.utils.exceptions import HttpStatusError
from scroll_exporter.utils.logging_config import get_logger
from scroll_exporter.utils.retry import call_with_retry

logger = get_logger("batch_fetcher")

SCROLL_ENDPOINT = "/_search/scroll"


class BatchFetcher:
    """
    Fetches one scroll batch, retrying with exponential backoff.
    """

    def __init__(
        self,
        transport: HttpTransport,
        base_url: str,
        scroll_ttl: str = "5m",
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the batch fetcher.

        Args:
            transport: Transport used for each attempt
            base_url: Search service base URL
            scroll_ttl: Keep-alive sent with each continuation request
            retry_config: Attempt limit and base delay
            sleep: Sleep function used between attempts
        """
        self._transport = transport
        self._url = base_url.rstrip("/") + SCROLL_ENDPOINT
        self._scroll_ttl = scroll_ttl
        self._retry = retry_config or RetryConfig()
        self._sleep = sleep

    def fetch_batch(self, scroll_id: str) -> Batch:
        """
        Fetch the next batch for scroll_id.

        Args:
            scroll_id: Current scroll ID

        Returns:
            Accepted Batch (may contain zero hits)

        Raises:
            FetchError: After the retry budget is exhausted
        """
        return call_with_retry(
            lambda: self._attempt(scroll_id),
            max_attempts=self._retry.max_attempts,
            base_delay=self._retry.base_delay,
            max_delay=self._retry.max_delay,
            sleep=self._sleep,
            description="batch with scroll ID",
        )

    def _attempt(self, scroll_id: str) -> Batch:
        response = self._transport.send(
            "GET",
            self._url,
            body={"scroll": self._scroll_ttl, "scroll_id": scroll_id},
        )

        if response.status_code != 200:
            raise HttpStatusError(
                response.status_code,
                endpoint=SCROLL_ENDPOINT,
                response_body=response.body,
            )

        batch = decode_batch(response.body)
        logger.debug(f"Accepted batch with {batch.count} hits")
        return batch
