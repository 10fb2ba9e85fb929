"""
Append-only output sinks for extracted values.

Every sink accepts values in arrival order via write() and finalizes on
close(). Sinks are context managers, so the file is finalized on every
exit path of the export.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pyarrow as pa
import pyarrow.parquet as pq

from scroll_exporter.utils.exceptions import ConfigError, SinkWriteError
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("sinks")


class SinkFormat(Enum):
    """Supported output formats."""
    NDJSON = "ndjson"
    JSON = "json"
    PARQUET = "parquet"


SUFFIX_MAP = {
    ".ndjson": SinkFormat.NDJSON,
    ".jsonl": SinkFormat.NDJSON,
    ".json": SinkFormat.JSON,
    ".parquet": SinkFormat.PARQUET,
}


# =============================================================================
# BASE SINK
# =============================================================================

class Sink:
    """Base class: counts writes and provides context-manager plumbing."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.values_written = 0
        self.closed = False

    def write(self, value: Any) -> None:
        raise NotImplementedError

    def flush(self) -> None:
        """Push buffered output to storage (no-op by default)."""

    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class _TextFileSink(Sink):
    """Shared file handling for the text-based sinks."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", encoding="utf-8")
        except OSError as e:
            raise SinkWriteError(str(self.path), str(e)) from e

    def _emit(self, text: str) -> None:
        try:
            self._file.write(text)
        except OSError as e:
            raise SinkWriteError(str(self.path), str(e)) from e

    def flush(self) -> None:
        try:
            self._file.flush()
        except OSError as e:
            raise SinkWriteError(str(self.path), str(e)) from e

    def _close_file(self, trailer: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        try:
            if trailer:
                self._file.write(trailer)
        except OSError as e:
            raise SinkWriteError(str(self.path), str(e)) from e
        finally:
            self._file.close()


# =============================================================================
# SINK IMPLEMENTATIONS
# =============================================================================

class NdjsonSink(_TextFileSink):
    """One JSON-encoded value per line."""

    def write(self, value: Any) -> None:
        self._emit(json.dumps(value, ensure_ascii=False) + "\n")
        self.values_written += 1

    def close(self) -> None:
        self._close_file()


class JsonArraySink(_TextFileSink):
    """A single JSON array, streamed element by element."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(path)
        self._emit("[")

    def write(self, value: Any) -> None:
        separator = "\n" if self.values_written == 0 else ",\n"
        self._emit(separator + json.dumps(value, ensure_ascii=False))
        self.values_written += 1

    def close(self) -> None:
        # Closing bracket keeps the file valid JSON even after an aborted export
        self._close_file("\n]\n" if self.values_written else "]\n")


class ParquetSink(Sink):
    """
    Buffers rows and writes one parquet file on close.

    Single-field exports get one column named after the field; multi-field
    exports get one column per field. Nested values are stored as JSON text,
    and a column whose values mix scalar kinds (e.g. "a" and 7) is stored as
    text with non-string values JSON-encoded, so every row is kept.
    """

    def __init__(self, path: Union[str, Path], fields: Sequence[str]):
        super().__init__(path)
        if not fields:
            raise ConfigError("ParquetSink needs at least one field name")
        self._fields = list(fields)
        self._rows: List[Dict[str, Any]] = []

    def write(self, value: Any) -> None:
        if len(self._fields) == 1:
            row = {self._fields[0]: value}
        else:
            row = value if isinstance(value, dict) else {}
        self._rows.append({name: self._scalar(row.get(name)) for name in self._fields})
        self.values_written += 1

    @staticmethod
    def _scalar(value: Any) -> Any:
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return value

    @staticmethod
    def _kind(value: Any) -> str:
        if isinstance(value, bool):
            return "bool"
        if isinstance(value, (int, float)):
            return "number"
        return type(value).__name__

    @classmethod
    def _column(cls, values: List[Any]) -> List[Any]:
        """Return values as-is, or as text when the column mixes scalar kinds."""
        kinds = {cls._kind(v) for v in values if v is not None}
        if len(kinds) <= 1:
            return values
        return [
            v if v is None or isinstance(v, str) else json.dumps(v, ensure_ascii=False, default=str)
            for v in values
        ]

    def _rows_to_table(self) -> pa.Table:
        columns = {name: self._column([row[name] for row in self._rows]) for name in self._fields}
        return pa.table(columns)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            table = self._rows_to_table()
            pq.write_table(table, self.path, compression="snappy")
        except (OSError, pa.ArrowException) as e:
            logger.error(f"Failed to write parquet: {e}")
            raise SinkWriteError(str(self.path), str(e)) from e

        logger.info(f"Wrote {len(self._rows)} rows to {self.path}")


# =============================================================================
# FACTORY
# =============================================================================

def resolve_format(path: Union[str, Path], fmt: Optional[str] = None) -> SinkFormat:
    """
    Pick the sink format from an explicit name or the file suffix.

    Raises:
        ConfigError: If neither identifies a supported format
    """
    if fmt:
        try:
            return SinkFormat(fmt.lower())
        except ValueError:
            raise ConfigError(f"Unknown output format: {fmt!r}")

    suffix = Path(path).suffix.lower()
    if suffix not in SUFFIX_MAP:
        raise ConfigError(
            f"Cannot infer output format from {str(path)!r}; "
            f"use one of {sorted(SUFFIX_MAP)} or set the format explicitly"
        )
    return SUFFIX_MAP[suffix]


def create_sink(
    path: Union[str, Path],
    fmt: Optional[str] = None,
    fields: Sequence[str] = ("title",),
) -> Sink:
    """Create the sink for path, choosing the format by name or suffix."""
    sink_format = resolve_format(path, fmt)

    if sink_format is SinkFormat.NDJSON:
        return NdjsonSink(path)
    if sink_format is SinkFormat.JSON:
        return JsonArraySink(path)
    return ParquetSink(path, fields)
