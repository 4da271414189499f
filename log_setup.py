"""Logging configuration for the bridge."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_level: int | str = logging.INFO,
    log_dir: str | Path = "logs",
    log_file: str = "bili_subtitle_bridge.log",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Configures the root logger for the service.

    Logs go to stdout and to a rotating file. If the file handler cannot be
    created the service keeps running with console logging only.

    Args:
        log_level: Minimum level, as an int or a level name such as "DEBUG".
        log_dir: Directory for the log file.
        log_file: Name of the log file.
        log_format: Format string for log records.
        date_format: Format string for timestamps.
        max_bytes: Size at which the log file rotates.
        backup_count: Number of rotated files to keep.
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    logger = logging.getLogger()
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    logger.setLevel(log_level)
    formatter = logging.Formatter(log_format, datefmt=date_format)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(log_level)
    logger.addHandler(stream_handler)

    try:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.info("Logging initialized. Log file: %s", log_path / log_file)
    except OSError as exc:
        logger.error("Failed to set up file logging in %s: %s", log_dir, exc)

    # websocket-client logs every frame at DEBUG
    logging.getLogger("websocket").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
