"""
Scroll Exporter - Bulk export of a search index via scroll cursors

Retrieves every document matching a query in fixed-size batches through a
server-side scroll context, writes one projected field per document to an
output file, and always clears the scroll context on exit.

Usage:
    # Export titles (defaults: http://localhost:9200, index sample_data)
    python -m scroll_exporter.main

    # Custom index, field and output
    python -m scroll_exporter.main --index=articles --fields=title --output=titles.json

Architecture:
    ExportOrchestrator → CursorLifecycleManager (open / advance / close)
                              ↓
                         BatchFetcher (retry with exponential backoff)
                              ↓
                         HttpTransport (httpx)
                              ↓
                         FieldExtractor → Sink (ndjson / json / parquet)
"""

from scroll_exporter.config import get_config, set_config, load_config, Config
from scroll_exporter.coordination import ExportOrchestrator, ExportResult, ExportState
from scroll_exporter.scroll import (
    QuerySpec,
    Batch,
    BatchFetcher,
    CursorLifecycleManager,
    ScrollContext,
)
from scroll_exporter.transport import HttpTransport, TransportResponse
from scroll_exporter.persistence import (
    FieldExtractor,
    Sink,
    NdjsonSink,
    JsonArraySink,
    ParquetSink,
    create_sink,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "get_config",
    "set_config",
    "load_config",
    "Config",

    # Coordination
    "ExportOrchestrator",
    "ExportResult",
    "ExportState",

    # Scroll
    "QuerySpec",
    "Batch",
    "BatchFetcher",
    "CursorLifecycleManager",
    "ScrollContext",

    # Transport
    "HttpTransport",
    "TransportResponse",

    # Persistence
    "FieldExtractor",
    "Sink",
    "NdjsonSink",
    "JsonArraySink",
    "ParquetSink",
    "create_sink",
]
