"""
ExportOrchestrator - drives one scroll export end to end.

State machine:
    NOT_STARTED --open ok--------------------> CURSOR_OPEN
    NOT_STARTED --open fails-----------------> FAILED
    CURSOR_OPEN --batch with hits------------> CURSOR_OPEN
    CURSOR_OPEN --empty batch----------------> DRAINING
    CURSOR_OPEN --fetch/cursor/sink error----> FAILED
    DRAINING    -----------------------------> CLOSED
    FAILED      -----------------------------> CLOSED

The scroll is released by the ScrollContext scope before CLOSED is
recorded, on every path that obtained a scroll ID.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from scroll_exporter.config import Config, get_config
from scroll_exporter.persistence.extractor import FieldExtractor
from scroll_exporter.persistence.sinks import Sink
from scroll_exporter.scroll.cursor import CursorLifecycleManager, ScrollContext
from scroll_exporter.scroll.fetcher import BatchFetcher
from scroll_exporter.scroll.models import QuerySpec
from scroll_exporter.transport.client import HttpTransport
from scroll_exporter.utils.exceptions import (
    FetchError,
    InvalidCursorError,
    OpenError,
    SinkWriteError,
)
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("orchestrator")


class ExportState(Enum):
    """Lifecycle states of an export."""
    NOT_STARTED = "not_started"
    CURSOR_OPEN = "cursor_open"
    DRAINING = "draining"
    CLOSED = "closed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    ExportState.NOT_STARTED: {ExportState.CURSOR_OPEN, ExportState.FAILED},
    ExportState.CURSOR_OPEN: {ExportState.CURSOR_OPEN, ExportState.DRAINING, ExportState.FAILED},
    ExportState.DRAINING: {ExportState.CLOSED},
    ExportState.FAILED: {ExportState.CLOSED},
    ExportState.CLOSED: set(),
}

FATAL_ERRORS = (FetchError, InvalidCursorError, SinkWriteError)


@dataclass
class ExportResult:
    """State and counters of one export run."""
    state: ExportState = ExportState.NOT_STARTED
    state_history: List[ExportState] = field(default_factory=lambda: [ExportState.NOT_STARTED])
    records_seen: int = 0
    values_written: int = 0
    skipped: int = 0
    batches: int = 0
    advance_calls: int = 0
    last_scroll_id: Optional[str] = None
    closed: bool = False
    error: Optional[Exception] = None

    def transition(self, new_state: ExportState) -> None:
        """
        Move to new_state.

        Raises:
            ValueError: If the transition is not allowed
        """
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Illegal export state transition: {self.state.name} -> {new_state.name}")
        if new_state is not self.state:
            self.state_history.append(new_state)
        self.state = new_state

    @property
    def succeeded(self) -> bool:
        return self.error is None and ExportState.DRAINING in self.state_history

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None

    def summary(self) -> str:
        if self.succeeded:
            return f"Export completed, {self.values_written} records written"
        reason = self.error_kind or "interrupt"
        return f"Export aborted after {self.values_written} records due to {reason}"


class ExportOrchestrator:
    """
    Composes cursor lifecycle, batch fetching and extraction into the
    export loop: open, then extract and advance until an empty batch,
    then release.
    """

    def __init__(
        self,
        cursor_manager: CursorLifecycleManager,
        extractor: FieldExtractor,
        query: QuerySpec,
    ):
        """
        Initialize the orchestrator.

        Args:
            cursor_manager: Opens, advances and releases the scroll
            extractor: Writes each batch to the sink
            query: Query to export
        """
        self._cursor_manager = cursor_manager
        self._extractor = extractor
        self._query = query

    @classmethod
    def from_config(
        cls,
        transport: HttpTransport,
        sink: Sink,
        config: Optional[Config] = None,
        echo: Optional[Callable[[Any], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "ExportOrchestrator":
        """
        Wire up an orchestrator from configuration.

        Args:
            transport: Transport shared by all requests
            sink: Output sink
            config: Configuration object. If None, uses global config.
            echo: Optional callback receiving each written value
            sleep: Sleep function for retry backoff
        """
        config = config or get_config()
        query = QuerySpec.from_config(config.query)

        fetcher = BatchFetcher(
            transport,
            base_url=config.api.base_url,
            scroll_ttl=query.scroll_ttl,
            retry_config=config.retry,
            sleep=sleep,
        )
        cursor_manager = CursorLifecycleManager(transport, fetcher, base_url=config.api.base_url)
        extractor = FieldExtractor(
            sink,
            fields=query.fields,
            missing=config.output.missing,
            echo=echo,
        )
        return cls(cursor_manager, extractor, query)

    def run(self) -> ExportResult:
        """
        Run the export.

        Returns:
            ExportResult; fatal errors are reported in result.error

        Raises:
            KeyboardInterrupt: Re-raised after the scroll has been released
        """
        result = ExportResult()

        try:
            scroll = self._cursor_manager.scroll(self._query)
        except OpenError as e:
            logger.error(str(e))
            result.error = e
            result.transition(ExportState.FAILED)
            result.transition(ExportState.CLOSED)
            logger.error(result.summary())
            return result

        try:
            with scroll:
                try:
                    result.transition(ExportState.CURSOR_OPEN)
                    result.last_scroll_id = scroll.scroll_id
                    self._drain(scroll, result)
                except FATAL_ERRORS as e:
                    logger.error(f"Error fetching next batch: {e}")
                    result.error = e
                    result.transition(ExportState.FAILED)
                except BaseException as e:
                    # Interrupts and unexpected errors still release the scroll
                    if isinstance(e, KeyboardInterrupt):
                        logger.warning("Export interrupted")
                    else:
                        result.error = e
                    result.transition(ExportState.FAILED)
                    raise
        finally:
            self._collect(scroll, result)
            result.transition(ExportState.CLOSED)
            if result.succeeded:
                logger.info(result.summary())
            else:
                logger.error(result.summary())

        return result

    def _drain(self, scroll: ScrollContext, result: ExportResult) -> None:
        batch = scroll.first_batch

        while True:
            result.batches += 1
            count = self._extractor.write_batch(batch)
            logger.info(
                f"Batch {result.batches}: {count} records "
                f"({self._extractor.values_written} written so far)"
            )

            if count == 0:
                logger.info("All documents retrieved.")
                result.transition(ExportState.DRAINING)
                return

            result.transition(ExportState.CURSOR_OPEN)
            batch = scroll.advance()
            result.last_scroll_id = scroll.scroll_id

    def _collect(self, scroll: ScrollContext, result: ExportResult) -> None:
        result.last_scroll_id = scroll.scroll_id
        result.advance_calls = scroll.advance_calls
        result.closed = scroll.released
        result.records_seen = self._extractor.records_seen
        result.values_written = self._extractor.values_written
        result.skipped = self._extractor.skipped
