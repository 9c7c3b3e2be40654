"""Logging setup for the CLI and for applications embedding iam_auth."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from iam_auth.logging.formatters import ConsoleFormatter, JSONFormatter

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_FILE_BACKUPS = 3

# HTTP client loggers that would otherwise echo every token request
HTTP_CLIENT_LOGGERS = ("urllib3", "requests")


def _console_handler(level: int, json_format: bool) -> logging.Handler:
    # stderr keeps stdout free for the token printed by the CLI
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    return handler


def _file_handler(
    log_file: Path,
    level: int,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(
    name: str = "iam_auth",
    json_format: bool = False,
    console_level: int = logging.INFO,
    log_file: Optional[Path] = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = LOG_FILE_MAX_BYTES,
    backup_count: int = LOG_FILE_BACKUPS,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Install console (and optionally rotating JSON file) handlers on the root logger.

    Calling again replaces the handlers installed earlier.

    Args:
        name: Logger to return
        json_format: JSON lines on the console instead of plain text
        console_level: Console threshold
        log_file: Rotating log file, always written as JSON
        file_level: File threshold
        max_bytes: Rotation size of the log file
        backup_count: Rotated files kept
        suppress_noisy: Raise HTTP client loggers to WARNING

    Returns:
        The logger called ``name``
    """
    handlers = [_console_handler(console_level, json_format)]
    if log_file is not None:
        handlers.append(_file_handler(log_file, file_level, max_bytes, backup_count))

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)

    if suppress_noisy:
        for logger_name in HTTP_CLIENT_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(f"Logging configured: json={json_format}, file={log_file}")
    return logger
