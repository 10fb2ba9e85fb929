"""
Logging configuration for the scroll exporter.
Provides consistent logging across all modules.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "scroll_exporter"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually module name)
        level: Logging level (default INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    if not logger.handlers:
        # Progress goes to stderr so stdout stays free for --echo values
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))

        logger.addHandler(console_handler)
        logger.setLevel(level)
        logger.propagate = False

    return logger


def set_log_level(level: int) -> None:
    """
    Change the level of every scroll_exporter logger and its handlers.

    Args:
        level: New logging level
    """
    prefix = f"{ROOT_LOGGER_NAME}."
    for name, logger in logging.root.manager.loggerDict.items():
        if not name.startswith(prefix) or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def setup_file_logging(log_dir: Optional[Path] = None, level: int = logging.DEBUG) -> Path:
    """
    Add a file handler to every scroll_exporter logger.

    Args:
        log_dir: Directory for log files. If None, uses ./logs
        level: File logging level (default DEBUG)

    Returns:
        Path of the log file
    """
    if log_dir is None:
        log_dir = Path.cwd() / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "scroll_exporter.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))

    # Package loggers do not propagate, so attach to each of them
    prefix = f"{ROOT_LOGGER_NAME}."
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if name.startswith(prefix) and isinstance(logger, logging.Logger):
            logger.addHandler(file_handler)
            if logger.level > level:
                logger.setLevel(level)

    return log_file
