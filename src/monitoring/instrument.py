# src/monitoring/instrument.py - v1
"""Helpers that route timings and failures of async callables into a Monitor."""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, TypeVar

from crawlintel.monitoring.monitor import Monitor

T = TypeVar("T")


async def with_error_handling(
    monitor: Monitor,
    operation: str,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    url: str | None = None,
    session_id: str | None = None,
    **kwargs: Any,
) -> T:
    """Await ``fn`` under a timer; failures are recorded and re-raised."""
    timer_id = monitor.start_timing(operation, {"url": url} if url else None)
    try:
        result = await fn(*args, **kwargs)
    except Exception as exc:
        monitor.end_timing(timer_id, success=False)
        monitor.record_error(exc, operation, url=url, session_id=session_id)
        raise
    monitor.end_timing(timer_id, success=True)
    return result


def timed(
    monitor: Monitor, operation: str | None = None
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator timing every call of an async function."""

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = operation or fn.__qualname__

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_error_handling(monitor, name, fn, *args, **kwargs)

        return wrapper

    return decorator
