# src/orchestrator/cron.py - v1
"""Cron expression evaluation for scheduled tasks (five-field syntax)."""

from __future__ import annotations

from datetime import datetime

from croniter import croniter


class CronExpressionError(ValueError):
    """Raised when a schedule is not a valid cron expression."""


def validate_cron(expression: str) -> str:
    """Return the stripped expression or raise CronExpressionError."""
    expression = expression.strip()
    if len(expression.split()) != 5 or not croniter.is_valid(expression):
        raise CronExpressionError(f"Invalid cron expression: {expression!r}")
    return expression


def next_fire_time(expression: str, after: datetime) -> datetime:
    """First fire time strictly after ``after`` (same tzinfo as ``after``)."""
    itr = croniter(validate_cron(expression), after)
    return itr.get_next(datetime)
