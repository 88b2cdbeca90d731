# src/logging/logger.py — v2
"""Logger factory and the two output formats (json for services, text for a terminal).

Records are stamped with the current LogContext by ContextFilter when they
are created, so a record handed to a slower handler later still carries the
request it belongs to.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from nutriresolve.logging.context import LogContext, get_context

ROOT_LOGGER = "nutriresolve"

# Third-party loggers that log every HTTP round-trip at INFO
_CHATTY_LIBRARIES = ("httpx", "httpcore", "anthropic", "openai")


def _record_context(record: logging.LogRecord) -> LogContext:
    ctx = getattr(record, "log_context", None)
    return ctx if isinstance(ctx, LogContext) else get_context()


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class ContextFilter(logging.Filter):
    """Attach the request context snapshot to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "log_context"):
            record.log_context = get_context()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Fields: timestamp, level, logger, message, plus ``context`` when a
    request is in flight, ``data`` when the call passed
    ``extra={"data": {...}}``, and ``exception`` for exc_info records.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _record_context(record).as_dict()
        if context:
            entry["context"] = context
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``time [LEVEL] logger <request> [operation] (step) - message``"""

    def format(self, record: logging.LogRecord) -> str:
        ctx = _record_context(record)
        head = f"{_record_time(record):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        tags = "".join(
            f" {open_}{value}{close}"
            for value, open_, close in (
                (ctx.request_id, "<", ">"),
                (ctx.operation, "[", "]"),
                (ctx.step, "(", ")"),
            )
            if value
        )
        line = f"{head}{tags} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger; handlers come from setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Install handlers on the package logger, replacing earlier ones.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text"; unknown values fall back to text.
        log_file: Optional rotating log file in addition to stderr.
        rotation: File size that triggers a rollover, e.g. "10MB".
        retention: Rotated files to keep.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for old in root.handlers:
        old.close()
    root.handlers.clear()

    formatter = _FORMATTERS.get(log_format, TextFormatter)()
    context_filter = ContextFilter()

    # stdout is reserved for CLI output
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from nutriresolve.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    # SDK chatter only surfaces when the engine itself is at DEBUG
    library_level = logging.DEBUG if root.level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)
