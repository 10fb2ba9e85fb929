"""
Scroll module - cursor lifecycle, batch fetching and response decoding.
"""

from scroll_exporter.scroll.models import (
    QuerySpec,
    Batch,
    decode_batch,
    is_valid_scroll_id,
)
from scroll_exporter.scroll.fetcher import BatchFetcher
from scroll_exporter.scroll.cursor import CursorLifecycleManager, ScrollContext

__all__ = [
    "QuerySpec",
    "Batch",
    "decode_batch",
    "is_valid_scroll_id",
    "BatchFetcher",
    "CursorLifecycleManager",
    "ScrollContext",
]
