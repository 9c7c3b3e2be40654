"""Structured logging helpers shared by the token manager modules."""

import logging
from typing import Any

from iam_auth.security import sanitize_error_message


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **fields: Any,
) -> None:
    """
    Emit a log line carrying structured fields.

    Fields end up as LogRecord attributes; JSONFormatter emits the ones it
    whitelists (identity, api_endpoint, http_status, expires_in, ...).

    Example:
        log_with_context(
            logger, logging.INFO, "IAM token refreshed",
            identity=identity.masked,
            expires_in=3600,
        )
    """
    logger.log(level, msg, extra=fields)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **fields: Any,
) -> None:
    """
    Log a failure with its classification.

    For TokenServiceError subclasses the error category is added, and for
    token exchange errors the token URL and HTTP status too, unless the
    caller already supplied them. The exception text is sanitized so API
    keys and bearer tokens in response bodies never reach the log.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: What was being attempted
        level: Log level (default: ERROR)
        include_traceback: Attach exc_info (default: True)
        **fields: Additional context fields
    """
    category = getattr(exc, "category", None)
    if category is not None:
        fields.setdefault("error_category", getattr(category, "value", str(category)))

    endpoint = getattr(exc, "endpoint", None)
    if endpoint is not None:
        fields.setdefault("api_endpoint", endpoint)

    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        fields.setdefault("http_status", status_code)

    fields["error_message"] = sanitize_error_message(str(exc))

    logger.log(
        level,
        msg,
        exc_info=exc if include_traceback else None,
        extra=fields,
    )
