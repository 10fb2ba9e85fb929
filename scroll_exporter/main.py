"""
Main entry point for the scroll exporter.

Exports one projected field of every document matching a query, using a
scroll cursor that is always cleared on exit (success, failure, Ctrl-C or
SIGTERM).

Usage:
    # Export titles from the default index
    python -m scroll_exporter.main

    # Different index and field, JSON array output
    python -m scroll_exporter.main --index=articles --fields=title --output=titles.json

    # Several fields to parquet, with a query
    python -m scroll_exporter.main --fields=title,author.name --output=out.parquet \\
        --query='{"term": {"lang": "en"}}'

Exit codes:
    0   export completed
    1   configuration or unexpected error
    2   scroll could not be opened (OpenError)
    3   batch fetch retries exhausted (FetchError)
    4   server returned no usable scroll ID (InvalidCursorError)
    5   output could not be written (SinkWriteError)
    130 interrupted
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

from scroll_exporter.config import Config, load_config
from scroll_exporter.coordination import ExportOrchestrator, ExportResult
from scroll_exporter.persistence import create_sink
from scroll_exporter.transport import HttpTransport
from scroll_exporter.utils.exceptions import (
    ConfigError,
    FetchError,
    InvalidCursorError,
    OpenError,
    SinkWriteError,
)
from scroll_exporter.utils.logging_config import get_logger, set_log_level, setup_file_logging

logger = get_logger("main")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_OPEN_FAILED = 2
EXIT_FETCH_FAILED = 3
EXIT_INVALID_CURSOR = 4
EXIT_SINK_FAILED = 5
EXIT_INTERRUPTED = 130

EXIT_CODES = {
    OpenError: EXIT_OPEN_FAILED,
    FetchError: EXIT_FETCH_FAILED,
    InvalidCursorError: EXIT_INVALID_CURSOR,
    SinkWriteError: EXIT_SINK_FAILED,
}


def exit_code_for(error: Optional[Exception]) -> int:
    """Map a fatal export error to the process exit code."""
    if error is None:
        return EXIT_OK
    for error_type, code in EXIT_CODES.items():
        if isinstance(error, error_type):
            return code
    return EXIT_ERROR


def echo_value(value: Any) -> None:
    """Print an extracted value to stdout."""
    if isinstance(value, str):
        print(value, flush=True)
    else:
        print(json.dumps(value, ensure_ascii=False), flush=True)


def run_export(
    config: Config,
    echo: Optional[Callable[[Any], None]] = None,
    transport: Optional[HttpTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ExportResult:
    """
    Run one export with the given configuration.

    Args:
        config: Validated configuration
        echo: Optional callback receiving each written value
        transport: Transport to use (default: built from config.api)
        sleep: Sleep function for retry backoff

    Returns:
        ExportResult of the run

    Raises:
        SinkWriteError: If the output could not be created or finalized
        KeyboardInterrupt: After the scroll has been released
    """
    if transport is None:
        transport = HttpTransport(config.api)

    with transport, create_sink(config.output.path, config.output.format, config.query.fields) as sink:
        orchestrator = ExportOrchestrator.from_config(
            transport,
            sink,
            config=config,
            echo=echo,
            sleep=sleep,
        )
        return orchestrator.run()


def _parse_fields(value: str) -> List[str]:
    fields = [part.strip() for part in value.split(",") if part.strip()]
    if not fields:
        raise argparse.ArgumentTypeError("at least one field name is required")
    return fields


def _parse_query(value: str) -> dict:
    try:
        query = json.loads(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON query: {e}")
    if not isinstance(query, dict):
        raise argparse.ArgumentTypeError("query must be a JSON object")
    return query


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Scroll Exporter - Export a field of every document in a search index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Export titles with defaults (localhost:9200, index sample_data)
    python -m scroll_exporter.main

    # Custom endpoint, index and output
    python -m scroll_exporter.main --url=http://es:9200 --index=articles --output=titles.ndjson

    # Load settings from a config file and print values as they arrive
    python -m scroll_exporter.main --config=export.json --echo
        """
    )

    parser.add_argument("--config", type=Path, default=None,
                        help="Path to JSON config file (default: ./scroll_exporter.json)")
    parser.add_argument("--url", default=None, help="Search service base URL")
    parser.add_argument("--index", default=None, help="Index to export")
    parser.add_argument("--fields", type=_parse_fields, default=None,
                        help="Comma-separated field names to extract")
    parser.add_argument("--size", type=int, default=None, help="Page size per batch")
    parser.add_argument("--scroll", default=None, help="Scroll time-to-live (e.g. 5m)")
    parser.add_argument("--query", type=_parse_query, default=None,
                        help="Query DSL as a JSON object (default: match all)")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Maximum attempts per batch")
    parser.add_argument("--retry-delay", type=float, default=None,
                        help="Initial retry delay in seconds (doubles per attempt)")
    parser.add_argument("--output", default=None, help="Output file path")
    parser.add_argument("--format", choices=["ndjson", "json", "parquet"], default=None,
                        help="Output format (default: from file suffix)")
    parser.add_argument("--missing", choices=["skip", "null"], default=None,
                        help="What to write for documents without the field")
    parser.add_argument("--echo", action="store_true", help="Print each value to stdout")
    parser.add_argument("--log-file", action="store_true",
                        help="Enable file logging to logs/scroll_exporter.log")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply CLI flags on top of file/default configuration."""
    if args.url is not None:
        config.api.base_url = args.url
    if args.index is not None:
        config.query.index = args.index
    if args.fields is not None:
        config.query.fields = args.fields
    if args.size is not None:
        config.query.page_size = args.size
    if args.scroll is not None:
        config.query.scroll_ttl = args.scroll
    if args.query is not None:
        config.query.query = args.query
    if args.max_retries is not None:
        config.retry.max_attempts = args.max_retries
    if args.retry_delay is not None:
        config.retry.base_delay = args.retry_delay
    if args.output is not None:
        config.output.path = args.output
    if args.format is not None:
        config.output.format = args.format
    if args.missing is not None:
        config.output.missing = args.missing
    if args.echo:
        config.output.echo = True
    return config


def _handle_sigterm(signum: int, frame) -> None:
    """Turn SIGTERM into KeyboardInterrupt so the scroll scope still exits."""
    raise KeyboardInterrupt


def _register_signal_handlers() -> None:
    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except ValueError:
        # Not in main thread, skip signal registration
        pass


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI argument parsing."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        set_log_level(logging.DEBUG)
    if args.log_file:
        log_file = setup_file_logging()
        logger.info(f"Logging to {log_file}")

    try:
        config = apply_overrides(load_config(args.config), args).validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_ERROR

    _register_signal_handlers()

    try:
        logger.info(
            f"Starting export: url={config.api.base_url}, index={config.query.index}, "
            f"fields={','.join(config.query.fields)}, output={config.output.path}"
        )
        result = run_export(config, echo=echo_value if config.output.echo else None)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user. Export stopped.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except (SinkWriteError, ConfigError) as e:
        logger.error(str(e))
        return exit_code_for(e)
    except Exception as e:
        logger.exception(f"Export failed: {e}")
        return EXIT_ERROR

    print("\n=== Export Complete ===" if result.succeeded else "\n=== Export Aborted ===", file=sys.stderr)
    print(f"  {result.summary()}", file=sys.stderr)
    print(f"  batches: {result.batches}", file=sys.stderr)
    print(f"  records seen: {result.records_seen}", file=sys.stderr)
    print(f"  skipped: {result.skipped}", file=sys.stderr)
    print(f"  output: {config.output.path}", file=sys.stderr)
    if result.error is not None:
        print(f"  error: {result.error_kind}: {result.error}", file=sys.stderr)

    return exit_code_for(result.error)


if __name__ == "__main__":
    sys.exit(main())
