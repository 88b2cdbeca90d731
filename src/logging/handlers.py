# src/logging/handlers.py — v2
"""Rotating file handler for the engine log.

``LOG_ROTATION`` is either a size ("10MB", "512KB", a bare byte count) or a
time interval ("hourly", "daily", "weekly"). ``LOG_RETENTION`` is the number
of rotated files kept in both cases.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*([KMG]?B)?$", re.IGNORECASE)
_SHIFTS = {"B": 0, "KB": 10, "MB": 20, "GB": 30}

# interval name -> TimedRotatingFileHandler "when"
_INTERVALS = {"hourly": "H", "daily": "midnight", "weekly": "W0"}


def parse_size(size_str: str) -> int:
    match = _SIZE_RE.match(size_str.strip())
    if match is None:
        raise ValueError(f"Invalid size {size_str!r}; expected e.g. '10MB' or 'daily'.")
    number, unit = match.groups()
    return int(number) << _SHIFTS[(unit or "B").upper()]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.FileHandler:
    """Build a size- or time-rotating handler; the parent directory is created,
    the file itself is opened on the first record."""
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    when = _INTERVALS.get(rotation.strip().lower())
    if when is not None:
        return TimedRotatingFileHandler(
            path, when=when, backupCount=retention, encoding="utf-8", delay=True, utc=True
        )
    return RotatingFileHandler(
        path,
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
        delay=True,
    )
