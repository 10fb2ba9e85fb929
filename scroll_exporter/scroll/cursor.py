"""
Cursor Lifecycle Manager for scroll exports.

Owns the scroll ID from the initial search until it is cleared:
    open    - initial search, yields the first scroll ID and batch
    advance - next batch via BatchFetcher, yields the replacement scroll ID
    close   - clears the scroll context; never raises

ScrollContext wraps one opened cursor as a scope whose exit always
releases the last known scroll ID exactly once.
"""

from typing import Optional, Tuple

from scroll_exporter.scroll.fetcher import SCROLL_ENDPOINT, BatchFetcher
from scroll_exporter.scroll.models import Batch, QuerySpec, decode_batch, is_valid_scroll_id
from scroll_exporter.transport.client import HttpTransport
from scroll_exporter.utils.exceptions import (
    CleanupError,
    HttpStatusError,
    InvalidCursorError,
    MalformedResponseError,
    OpenError,
    TransportError,
)
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("cursor")


class CursorLifecycleManager:
    """
    Opens, advances and clears server-side scroll contexts.
    """

    def __init__(self, transport: HttpTransport, fetcher: BatchFetcher, base_url: str):
        """
        Initialize the cursor manager.

        Args:
            transport: Transport for open and close requests
            fetcher: BatchFetcher for continuation requests
            base_url: Search service base URL
        """
        self._transport = transport
        self._fetcher = fetcher
        self._base_url = base_url.rstrip("/")

    def open(self, query: QuerySpec) -> Tuple[str, Batch]:
        """
        Run the initial scroll search.

        Args:
            query: Query to export

        Returns:
            (scroll_id, first_batch)

        Raises:
            OpenError: On transport failure, non-200 status, malformed body
                or a missing scroll ID
        """
        url = f"{self._base_url}/{query.index}/_search"
        logger.info(f"Initiating scroll search on index '{query.index}' (size={query.page_size})")

        try:
            response = self._transport.send(
                "GET",
                f"{url}?scroll={query.scroll_ttl}",
                body=query.search_body(),
            )
        except TransportError as e:
            raise OpenError(f"Failed to initiate scroll search: {e}", cause=e) from e

        if response.status_code != 200:
            error = HttpStatusError(response.status_code, endpoint=url, response_body=response.body)
            raise OpenError(f"Failed to initiate scroll search: {error}", cause=error)

        try:
            batch = decode_batch(response.body)
        except MalformedResponseError as e:
            raise OpenError(f"Failed to initiate scroll search: {e}", cause=e) from e

        if not is_valid_scroll_id(batch.scroll_id):
            raise OpenError("Failed to retrieve a valid scroll ID")

        if batch.total is not None:
            logger.info(f"Scroll opened, {batch.total} matching documents")
        return batch.scroll_id, batch

    def advance(self, scroll_id: str) -> Tuple[str, Batch]:
        """
        Fetch the next batch and its replacement scroll ID.

        Args:
            scroll_id: Current scroll ID

        Returns:
            (new_scroll_id, batch)

        Raises:
            FetchError: If the batch could not be fetched within the retry budget
            InvalidCursorError: If the accepted batch has no usable scroll ID
        """
        batch = self._fetcher.fetch_batch(scroll_id)

        if not is_valid_scroll_id(batch.scroll_id):
            raise InvalidCursorError(scroll_id=batch.scroll_id)

        return batch.scroll_id, batch

    def close(self, scroll_id: str) -> bool:
        """
        Clear a scroll context. Errors are logged and suppressed.

        Args:
            scroll_id: Scroll ID to release

        Returns:
            True if the server confirmed the release (or the context was
            already gone), False otherwise
        """
        logger.info("Cleaning up scroll context...")

        try:
            response = self._transport.send(
                "DELETE",
                self._base_url + SCROLL_ENDPOINT,
                body={"scroll_id": [scroll_id]},
            )
        except Exception as e:
            # Release must never raise into the caller's exit path
            logger.warning(str(CleanupError(scroll_id, cause=e)))
            return False

        if response.status_code == 404:
            logger.info("Scroll context already expired")
            return True

        if response.status_code != 200:
            error = HttpStatusError(response.status_code, endpoint=SCROLL_ENDPOINT, response_body=response.body)
            logger.warning(str(CleanupError(scroll_id, cause=error)))
            return False

        return True

    def scroll(self, query: QuerySpec) -> "ScrollContext":
        """
        Open a scroll and wrap it in a release-on-exit scope.

        Raises:
            OpenError: If the scroll could not be opened (nothing to release)
        """
        scroll_id, first_batch = self.open(query)
        return ScrollContext(self, scroll_id, first_batch)


class ScrollContext:
    """
    Scope for one opened scroll cursor.

    Holds the single current scroll ID. advance() replaces it, and leaving
    the scope releases it exactly once, whatever the exit path.

    Example:
        with manager.scroll(query) as scroll:
            handle(scroll.first_batch)
            batch = scroll.advance()
    """

    def __init__(self, manager: CursorLifecycleManager, scroll_id: str, first_batch: Batch):
        self._manager = manager
        self._scroll_id = scroll_id
        self.first_batch = first_batch
        self.advance_calls = 0
        self.released = False
        self.release_confirmed: Optional[bool] = None

    @property
    def scroll_id(self) -> str:
        """The current (last known) scroll ID."""
        return self._scroll_id

    def advance(self) -> Batch:
        """
        Fetch the next batch, superseding the current scroll ID.

        Raises:
            FetchError, InvalidCursorError: Propagated from the manager; the
                current scroll ID is left unchanged
        """
        if self.released:
            raise RuntimeError("Scroll context already released")

        self.advance_calls += 1
        scroll_id, batch = self._manager.advance(self._scroll_id)
        self._scroll_id = scroll_id
        return batch

    def release(self) -> None:
        """Clear the scroll context once; later calls are no-ops."""
        if self.released:
            return
        self.released = True
        self.release_confirmed = self._manager.close(self._scroll_id)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.release()
