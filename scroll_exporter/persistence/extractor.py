"""
Extraction & Sink Writer.

Pulls the projected field(s) out of each hit's _source and forwards them to
the sink in arrival order.

Missing-value policy:
    skip - a hit whose projected value is absent or null writes nothing
           (for several fields: only when all of them are absent or null)
    null - such a hit writes None

Either way write_batch() returns the number of hits in the batch, which is
what the orchestrator uses to detect end-of-data.
"""

from typing import Any, Callable, Dict, Optional, Sequence

from scroll_exporter.persistence.sinks import Sink
from scroll_exporter.scroll.models import Batch
from scroll_exporter.utils.exceptions import ConfigError
from scroll_exporter.utils.logging_config import get_logger

logger = get_logger("extractor")

MISSING_POLICIES = ("skip", "null")

_ABSENT = object()


def lookup_field(source: Any, path: str) -> Any:
    """
    Resolve a dotted field path inside a _source document.

    A literal key containing dots wins over nested traversal.

    Returns:
        The value, or None if any step is missing
    """
    if not isinstance(source, dict):
        return None
    if path in source:
        return source[path]

    current = source
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part, _ABSENT)
        if current is _ABSENT:
            return None
    return current


class FieldExtractor:
    """
    Writes the projected field of every hit to a sink.
    """

    def __init__(
        self,
        sink: Sink,
        fields: Sequence[str],
        missing: str = "skip",
        echo: Optional[Callable[[Any], None]] = None,
    ):
        """
        Initialize the extractor.

        Args:
            sink: Output sink
            fields: Projected field names (dotted paths allowed)
            missing: Missing-value policy, "skip" or "null"
            echo: Optional callback receiving each written value
        """
        if not fields:
            raise ConfigError("At least one field is required for extraction")
        if missing not in MISSING_POLICIES:
            raise ConfigError(f"Unknown missing-value policy: {missing!r}")

        self._sink = sink
        self._fields = list(fields)
        self._missing = missing
        self._echo = echo

        self.records_seen = 0
        self.values_written = 0
        self.skipped = 0

    def extract(self, hit: Dict[str, Any]) -> Any:
        """
        Extract the projected value from one hit.

        Returns:
            Bare value for a single field, {field: value} for several
            fields, or None when nothing is present
        """
        source = hit.get("_source") if isinstance(hit, dict) else None

        if len(self._fields) == 1:
            return lookup_field(source, self._fields[0])

        values = {name: lookup_field(source, name) for name in self._fields}
        if all(value is None for value in values.values()):
            return None
        return values

    def write_batch(self, batch: Batch) -> int:
        """
        Extract and write every hit of batch.

        Args:
            batch: Accepted batch

        Returns:
            Number of hits in the batch (0 means end-of-data)

        Raises:
            SinkWriteError: If the sink fails
        """
        skipped_before = self.skipped

        for hit in batch.hits:
            self.records_seen += 1
            value = self.extract(hit)

            if value is None and self._missing == "skip":
                self.skipped += 1
                continue

            self._sink.write(value)
            self.values_written += 1
            if self._echo is not None:
                self._echo(value)

        self._sink.flush()

        skipped = self.skipped - skipped_before
        if skipped:
            logger.debug(f"Skipped {skipped} hits without a value for {', '.join(self._fields)}")

        return batch.count
