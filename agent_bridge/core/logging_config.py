"""
Logging configuration for the agent bridge.

stdout carries the line protocol, so log records never go there. The bridge
logs to stderr (colored via colorlog) and, optionally, to a rotating file.

Usage:
    from .logging_config import setup_bridge_logging

    setup_bridge_logging(log_level="DEBUG", log_dir=Path("/var/log/bridge"))
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

import colorlog

from .constants import (
    COLORLOG_COLORS,
    LOG_BACKUP_COUNT,
    LOG_FILE_BRIDGE,
    LOG_FORMAT_COLORED,
    LOG_FORMAT_FILE,
    LOG_MAX_BYTES,
)

logger = logging.getLogger(__name__)


def _get_log_level(log_level: str) -> int:
    """
    Convert log level string to logging constant.

    Args:
        log_level: Log level name (DEBUG, INFO, WARNING, ERROR).

    Returns:
        Logging level constant.
    """
    return getattr(logging, log_level.upper(), logging.INFO)


def _create_rotating_file_handler(
    log_file: Path,
    level: int,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> RotatingFileHandler:
    """
    Create a rotating file handler with standard configuration.

    Args:
        log_file: Path to the log file.
        level: Logging level.
        max_bytes: Maximum file size before rotation.
        backup_count: Number of backup files to keep.

    Returns:
        Configured RotatingFileHandler.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=str(log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_FILE))
    return handler


def _create_stderr_handler(level: int, stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Create a colored stderr handler.

    Args:
        level: Logging level.
        stream: Stream to write to. Defaults to sys.stderr.

    Returns:
        Configured colorlog StreamHandler.
    """
    handler = colorlog.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            LOG_FORMAT_COLORED,
            log_colors=COLORLOG_COLORS,
            secondary_log_colors={},
            style="%",
        )
    )
    handler.setLevel(level)
    return handler


def setup_bridge_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_name: str = LOG_FILE_BRIDGE,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure logging for the bridge process.

    Replaces all handlers on the root logger with a stderr handler and,
    when log_dir is given, a rotating file handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_dir: Directory for the log file. File logging is skipped if None.
        log_name: Name of the log file inside log_dir.
        stream: Console stream override (tests). Defaults to sys.stderr.
    """
    level = _get_log_level(log_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(_create_stderr_handler(level, stream))

    if log_dir is not None:
        root_logger.addHandler(
            _create_rotating_file_handler(log_file=log_dir / log_name, level=level)
        )
        logger.debug(f"File logging enabled: {log_dir / log_name}")
