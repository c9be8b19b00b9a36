"""Rotating logger setup for the mock server."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


def _file_handler(
    log_file: Union[str, Path], max_bytes: int, backup_count: int, level: int
) -> RotatingFileHandler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    return handler


def setup_logger(
    name: str = "mockhttpd",
    log_file: Optional[Union[str, Path]] = None,
    error_log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 3,
    level: int = logging.INFO,
) -> logging.Logger:
    """Setup console logging plus optional rotating log and error-log files.

    Child loggers (``mockhttpd.access``, ``mockhttpd.handler``, ...)
    propagate here, so the access lines end up in the log file too.

    Args:
        name: Logger name
        log_file: Path to the main log file (created with parents if missing)
        error_log_file: Path to a file receiving WARNING and above only
        max_bytes: Max size before rotation (default 10MB)
        backup_count: Number of rotated files to keep
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if already configured
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    handlers.append(console_handler)

    if log_file:
        handlers.append(_file_handler(log_file, max_bytes, backup_count, level))

    if error_log_file:
        handlers.append(
            _file_handler(
                error_log_file, max_bytes, backup_count, max(level, logging.WARNING)
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
