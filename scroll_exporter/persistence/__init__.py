"""
Persistence module - value extraction and output sinks.
"""

from scroll_exporter.persistence.sinks import (
    Sink,
    SinkFormat,
    NdjsonSink,
    JsonArraySink,
    ParquetSink,
    create_sink,
    resolve_format,
)
from scroll_exporter.persistence.extractor import FieldExtractor, lookup_field

__all__ = [
    "Sink",
    "SinkFormat",
    "NdjsonSink",
    "JsonArraySink",
    "ParquetSink",
    "create_sink",
    "resolve_format",
    "FieldExtractor",
    "lookup_field",
]
