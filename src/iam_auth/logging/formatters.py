"""JSON and console formatters for token manager logs."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from iam_auth.security import sanitize_error_message, sanitize_url

# Structured fields emitted by iam_auth modules, in output order
CONTEXT_FIELDS = (
    "identity",
    "auth_mode",
    "api_endpoint",
    "http_status",
    "content_type",
    "duration_ms",
    "token_state",
    "expires_in",
    "refresh_in_seconds",
    "expiry_threshold",
    "exchange_count",
    "registry_size",
    "error_category",
    "error_message",
    "config_path",
    "command",
)


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect known context fields set on a record, redacting credentials."""
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is None:
            continue
        if name == "api_endpoint" and isinstance(value, str):
            value = sanitize_url(value)
        elif name == "error_message" and isinstance(value, str):
            value = sanitize_error_message(value)
        context[name] = value
    return context


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Only CONTEXT_FIELDS are copied from the record, so arbitrary extras can
    never leak into the output.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": record.threadName,
        }
        if record.levelno >= logging.ERROR or record.levelno == logging.DEBUG:
            entry["file"] = f"{record.filename}:{record.lineno}"

        entry.update(_context(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Plain text: time, level, logger, [identity] message, then key=value context."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        context = _context(record)
        identity = context.pop("identity", None)

        line = f"{created} {record.levelname:<7} {record.name} - "
        if identity:
            line += f"[{identity}] "
        line += record.getMessage()
        if context:
            line += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line
