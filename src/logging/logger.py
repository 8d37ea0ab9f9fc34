# src/logging/logger.py - v1
"""Crawl log formatting and root logger setup.

JSON lines carry the active crawl context (session, task, execution, url)
as top-level keys so log shippers can index them, plus any of
``CRAWL_FIELDS`` passed through ``extra=``::

    logger.info("Fetched %s", url, extra={"status_code": 200, "duration_ms": 84.0})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

from crawlintel.logging.context import get_context
from crawlintel.logging.handlers import create_file_handler

ROOT_LOGGER = "crawlintel"
CRAWL_FIELDS = ("domain", "status_code", "duration_ms", "attempt", "task_type")
NOISY_LOGGERS = ("httpx", "httpcore")


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _timestamp(record).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(get_context().as_dict())
        for field in CRAWL_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [session/task] url | message``"""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        line = f"{_timestamp(record):%H:%M:%S} {record.levelname:<7} {record.name}"
        scope = "/".join(s for s in (ctx.session_id, ctx.task_id) if s)
        if scope:
            line += f" [{scope}]"
        if ctx.url:
            line += f" {ctx.url}"
        line += f" | {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | Path | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """(Re)configure the ``crawlintel`` logger and return it.

    Previous handlers are closed and replaced. ``rotation`` is either a size
    (``"10MB"``) or a time interval (``"midnight"``, ``"hourly"``, ``"daily"``).
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = create_file_handler(log_file, rotation=rotation, retention=retention)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
