# src/logging/context.py - v1
"""Contextual logging support - attach session, task and url to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per crawl session / task run.
_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_task_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task_id", default=None
)
_execution_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "execution_id", default=None
)
_url: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "url", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    session_id: str | None = None
    task_id: str | None = None
    execution_id: str | None = None
    url: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        session_id=_session_id.get(),
        task_id=_task_id.get(),
        execution_id=_execution_id.get(),
        url=_url.get(),
    )


def set_session_context(session_id: str) -> None:
    """Set crawl-session context (called once per crawl run)."""
    _session_id.set(session_id)


def set_task_context(task_id: str, execution_id: str | None = None) -> None:
    """Set task-level context (called per task execution)."""
    _task_id.set(task_id)
    _execution_id.set(execution_id)


def set_url_context(url: str | None) -> None:
    """Set the URL currently being processed."""
    _url.set(url)


def clear_context() -> None:
    """Reset all context variables."""
    _session_id.set(None)
    _task_id.set(None)
    _execution_id.set(None)
    _url.set(None)
