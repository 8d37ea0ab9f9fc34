# src/logging/handlers.py - v1
"""File handlers for crawl logs, rotated by size or by time."""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*([KMG]?B)?$", re.IGNORECASE)
_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}

# rotation keyword -> TimedRotatingFileHandler ``when``
TIME_ROTATIONS = {"midnight": "midnight", "daily": "D", "hourly": "H"}


def parse_size(value: str) -> int:
    """Bytes for ``"10MB"``, ``"1.5GB"``, ``"512kb"`` or a bare byte count."""
    match = _SIZE_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid size {value!r}, expected e.g. '10MB'")
    unit = (match.group(2) or "B").upper()
    size = int(float(match.group(1)) * _SIZE_UNITS[unit])
    if size <= 0:
        raise ValueError(f"Invalid size {value!r}, must be positive")
    return size


def create_file_handler(
    log_file: str | Path, rotation: str = "10MB", retention: int = 30
) -> logging.FileHandler:
    """Rotating file handler for ``log_file``; parent directories are created.

    ``rotation`` names a time interval from ``TIME_ROTATIONS`` or a size
    accepted by ``parse_size``. ``retention`` is the number of rotated files
    kept. The file is opened lazily on first write.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    when = TIME_ROTATIONS.get(rotation.strip().lower())
    if when is not None:
        return TimedRotatingFileHandler(
            path, when=when, backupCount=retention, encoding="utf-8", delay=True, utc=True
        )
    return RotatingFileHandler(
        path, maxBytes=parse_size(rotation), backupCount=retention, encoding="utf-8", delay=True
    )
