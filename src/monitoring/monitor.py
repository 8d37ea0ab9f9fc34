# src/monitoring/monitor.py - v1
"""In-memory monitoring: error ledger, performance ring buffer, health
registry, alerts and per-session crawl metrics.

All mutating methods are synchronous, so on a single event loop every
read-modify-write on the ledgers is atomic. ``health_check`` is the only
coroutine and applies its result after the probe has returned.
"""

from __future__ import annotations

import asyncio
import hashlib
import inspect
import logging
import resource
import sys
import time
from collections import Counter, deque
from datetime import datetime, timedelta
from typing import Any, Callable

import numpy as np

from crawlintel.config.settings import Settings
from crawlintel.core.models import new_id, utcnow
from crawlintel.monitoring.models import (
    Alert,
    AlertType,
    Analytics,
    AnalyticsTimeframe,
    ErrorBreakdown,
    ErrorExample,
    ErrorRecord,
    HealthCheck,
    HealthState,
    OperationStats,
    OverallStatus,
    PerformanceSample,
    PerformanceSummary,
    SessionAggregate,
    SessionMetrics,
    SystemStatus,
    TrendPoint,
    UrlStage,
)

logger = logging.getLogger(__name__)

# Error ledger thresholds (alert fires when count reaches exactly this value).
ERROR_WARNING_COUNT = 5
ERROR_CRITICAL_COUNT = 20
MAX_ERROR_EXAMPLES = 5
MAX_SESSION_ERROR_EXAMPLES = 3

RECENT_PERFORMANCE_WINDOW = 100
RECENT_ERRORS_LIMIT = 10
HEALTH_HISTORY_SIZE = 1000

SERVICE_UPTIME_SCORE: dict[str, float] = {
    "healthy": 1.0,
    "warning": 0.8,
    "critical": 0.2,
    "down": 0.0,
}

# timeframe -> (window, bucket size)
_ANALYTICS_WINDOWS: dict[str, tuple[timedelta, timedelta]] = {
    "hour": (timedelta(hours=1), timedelta(minutes=5)),
    "day": (timedelta(days=1), timedelta(hours=1)),
    "week": (timedelta(days=7), timedelta(days=1)),
}

HealthProbe = Callable[[], Any]

MEMORY_ALERT_TITLE = "High memory usage"


def read_rss_bytes() -> int:
    """Current resident set size of this process.

    Reads ``/proc/self/statm`` where available; elsewhere falls back to the
    ``getrusage`` high-water mark, which never decreases.
    """
    try:
        with open("/proc/self/statm", encoding="ascii") as fh:
            resident_pages = int(fh.read().split()[1])
        return resident_pages * resource.getpagesize()
    except (OSError, IndexError, ValueError):
        peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
        return peak if sys.platform == "darwin" else peak * 1024


class Monitor:
    """Observability hub shared by every engine component."""

    def __init__(
        self,
        settings: Settings | None = None,
        memory_probe: Callable[[], int] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or Settings()
        self._memory_probe = memory_probe or read_rss_bytes
        self._clock = clock

        self._errors: dict[str, ErrorRecord] = {}
        self._error_events: deque[tuple[datetime, str]] = deque(
            maxlen=self._settings.monitoring_perf_buffer_size
        )
        self._samples: deque[PerformanceSample] = deque(
            maxlen=self._settings.monitoring_perf_buffer_size
        )
        self._timers: dict[str, tuple[str, datetime, float, dict[str, Any]]] = {}
        self._health: dict[str, HealthCheck] = {}
        self._health_history: dict[str, deque[tuple[datetime, HealthState]]] = {}
        self._alerts: dict[str, Alert] = {}
        self._sessions: dict[str, SessionMetrics] = {}
        self._cleanup_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Error ledger
    # ------------------------------------------------------------------

    def record_error(
        self,
        error: BaseException | str,
        operation: str,
        url: str | None = None,
        context: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> ErrorRecord:
        """Accumulate an error occurrence; raises alerts at 5 and 20 hits."""
        kind = error if isinstance(error, str) else type(error).__name__
        message = str(error)
        now = self._clock()
        key = error_key(kind, operation, url)

        record = self._errors.get(key)
        if record is None:
            record = ErrorRecord(
                key=key, kind=kind, operation=operation, url=url,
                message=message, first_seen=now, last_seen=now,
            )
            self._errors[key] = record

        record.count += 1
        record.last_seen = now
        record.message = message
        record.examples.append(
            ErrorExample(timestamp=now, message=message, context=context or {})
        )
        del record.examples[:-MAX_ERROR_EXAMPLES]
        self._error_events.append((now, key))

        logger.error("%s in %s (%s): %s", kind, operation, url or "-", message)

        if record.count == ERROR_WARNING_COUNT:
            self.create_alert(
                "warning",
                f"Recurring error: {kind}",
                operation,
                f"{kind} occurred {record.count} times in {operation}",
                {"error_key": key, "url": url},
            )
        elif record.count == ERROR_CRITICAL_COUNT:
            self.create_alert(
                "critical",
                f"Persistent error: {kind}",
                operation,
                f"{kind} occurred {record.count} times in {operation}",
                {"error_key": key, "url": url},
            )

        if session_id and session_id in self._sessions:
            breakdown = self._sessions[session_id].error_breakdown.setdefault(
                kind, ErrorBreakdown()
            )
            breakdown.count += 1
            if len(breakdown.examples) < MAX_SESSION_ERROR_EXAMPLES:
                breakdown.examples.append(message)

        return record

    def get_error(self, key: str) -> ErrorRecord | None:
        return self._errors.get(key)

    @property
    def errors(self) -> list[ErrorRecord]:
        return list(self._errors.values())

    # ------------------------------------------------------------------
    # Performance ledger
    # ------------------------------------------------------------------

    def start_timing(self, operation: str, metadata: dict[str, Any] | None = None) -> str:
        """Begin timing an operation; returns the timer id for end_timing."""
        timer_id = new_id("timer")
        self._timers[timer_id] = (
            operation, self._clock(), time.perf_counter(), dict(metadata or {}),
        )
        return timer_id

    def end_timing(
        self,
        timer_id: str,
        success: bool = True,
        metadata: dict[str, Any] | None = None,
    ) -> PerformanceSample | None:
        """Finish a timer, append the sample and check thresholds."""
        timer = self._timers.pop(timer_id, None)
        if timer is None:
            logger.warning("Unknown timer id %s", timer_id)
            return None

        operation, started_at, start_perf, meta = timer
        meta.update(metadata or {})
        sample = PerformanceSample(
            operation=operation,
            started_at=started_at,
            duration_ms=(time.perf_counter() - start_perf) * 1000.0,
            success=success,
            memory_bytes=self._memory_probe(),
            metadata=meta,
        )
        self.record_sample(sample)
        return sample

    def record_sample(self, sample: PerformanceSample) -> None:
        """Append a finished sample to the ring buffer."""
        self._samples.append(sample)
        self._update_session_memory(sample.memory_bytes)

        if sample.duration_ms > self._settings.monitoring_slow_operation_ms:
            self.create_alert(
                "warning",
                "Slow operation",
                sample.operation,
                f"{sample.operation} took {sample.duration_ms:.0f}ms",
                {"duration_ms": sample.duration_ms},
            )
        self._check_memory(sample)

    def _check_memory(self, sample: PerformanceSample) -> None:
        """Keep at most one open memory alert; close it once usage drops."""
        open_alerts = [
            a for a in self._alerts.values()
            if a.title == MEMORY_ALERT_TITLE and not a.acknowledged
        ]
        if sample.memory_bytes > self._settings.monitoring_memory_threshold_bytes:
            if not open_alerts:
                self.create_alert(
                    "warning",
                    MEMORY_ALERT_TITLE,
                    sample.operation,
                    f"Memory at {sample.memory_bytes / 1024**2:.0f}MB",
                    {"memory_bytes": sample.memory_bytes},
                )
            return
        for alert in open_alerts:
            self.acknowledge_alert(alert.id)
            logger.info(
                "Memory back under threshold (%.0fMB), closed alert %s",
                sample.memory_bytes / 1024**2, alert.id,
            )

    def sample_memory(self) -> int:
        """Current process memory in bytes, from the configured reader."""
        return self._memory_probe()

    @property
    def samples(self) -> list[PerformanceSample]:
        return list(self._samples)

    # ------------------------------------------------------------------
    # Health registry
    # ------------------------------------------------------------------

    async def health_check(self, service: str, fn: HealthProbe) -> HealthCheck:
        """Run a probe and overwrite the service's health entry.

        The probe may be sync or async and may return ``None``/``True``
        (healthy), ``False`` (critical), a status string, or a dict with a
        ``status`` key plus details. Exceptions mark the service ``down``.
        """
        start = time.perf_counter()
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            status, details = _interpret_probe(result)
            message = ""
        except Exception as exc:
            status, details, message = "down", {}, str(exc)
            self.record_error(exc, f"health_check:{service}")

        check = HealthCheck(
            service=service,
            status=status,
            checked_at=self._clock(),
            response_ms=(time.perf_counter() - start) * 1000.0,
            message=message,
            details=details,
        )
        self.set_health(check)
        return check

    def set_health(self, check: HealthCheck) -> None:
        """Overwrite a service health entry; critical/down raises an alert."""
        self._health[check.service] = check
        self._health_history.setdefault(
            check.service, deque(maxlen=HEALTH_HISTORY_SIZE)
        ).append((check.checked_at, check.status))

        if check.status in ("critical", "down"):
            self.create_alert(
                "critical",
                f"Service {check.status}: {check.service}",
                check.service,
                check.message or f"{check.service} reported {check.status}",
                {"details": check.details},
            )

    def get_health(self, service: str) -> HealthCheck | None:
        return self._health.get(service)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def create_alert(
        self,
        alert_type: AlertType,
        title: str,
        source: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert:
        alert = Alert(
            type=alert_type,
            title=title,
            source=source,
            message=message,
            created_at=self._clock(),
            metadata=metadata or {},
        )
        self._alerts[alert.id] = alert
        log_level = logging.ERROR if alert_type in ("critical", "error") else logging.WARNING
        logger.log(log_level, "Alert [%s] %s: %s", alert_type, title, message)
        return alert

    def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark an alert acknowledged; returns False for unknown ids."""
        alert = self._alerts.get(alert_id)
        if alert is None:
            return False
        if not alert.acknowledged:
            alert.acknowledged = True
            alert.acknowledged_at = self._clock()
        return True

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts.values())

    def active_alerts(self) -> list[Alert]:
        return [a for a in self._alerts.values() if not a.acknowledged]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self, session_id: str | None = None) -> SessionMetrics:
        session = SessionMetrics(
            session_id=session_id or new_id("session"), started_at=self._clock(),
        )
        self._sessions[session.session_id] = session
        logger.info("Crawl session %s started", session.session_id)
        return session

    @property
    def sessions(self) -> list[SessionMetrics]:
        return list(self._sessions.values())

    def get_session(self, session_id: str) -> SessionMetrics | None:
        return self._sessions.get(session_id)

    def record_request(
        self, session_id: str, success: bool, bytes_processed: int = 0
    ) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        session.requests += 1
        if success:
            session.successes += 1
            session.bytes_processed += bytes_processed
        else:
            session.failures += 1

    def record_url_stage(self, session_id: str, stage: UrlStage, count: int = 1) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.url_stages[stage] = session.url_stages.get(stage, 0) + count

    def record_duplicate_skipped(self, session_id: str, count: int = 1) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.duplicates_skipped += count

    def end_session(self, session_id: str, status: str = "completed") -> SessionMetrics | None:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        session.ended_at = self._clock()
        session.status = status  # type: ignore[assignment]
        session.peak_memory_bytes = max(session.peak_memory_bytes, self._memory_probe())
        logger.info(
            "Crawl session %s %s: %d requests, %d failures, %d duplicates skipped",
            session_id, status, session.requests, session.failures,
            session.duplicates_skipped,
        )
        return session

    def _update_session_memory(self, memory_bytes: int) -> None:
        for session in self._sessions.values():
            if session.status == "running" and memory_bytes > session.peak_memory_bytes:
                session.peak_memory_bytes = memory_bytes

    # ------------------------------------------------------------------
    # Status & analytics
    # ------------------------------------------------------------------

    def get_system_status(self) -> SystemStatus:
        active = self.active_alerts()
        recent_errors = sorted(
            self._errors.values(), key=lambda r: r.last_seen, reverse=True
        )[:RECENT_ERRORS_LIMIT]

        return SystemStatus(
            overall=self._overall_status(active),
            services=dict(self._health),
            active_alerts=active,
            recent_errors=recent_errors,
            performance=self._performance_summary(),
            active_sessions=sum(1 for s in self._sessions.values() if s.status == "running"),
            total_sessions=len(self._sessions),
        )

    def _overall_status(self, active: list[Alert]) -> OverallStatus:
        alert_types = {a.type for a in active}
        service_states = {h.status for h in self._health.values()}
        if "critical" in alert_types or service_states & {"critical", "down"}:
            return "critical"
        if alert_types & {"warning", "error"} or "warning" in service_states:
            return "warning"
        return "healthy"

    def _performance_summary(self) -> PerformanceSummary:
        recent = list(self._samples)[-RECENT_PERFORMANCE_WINDOW:]
        if not recent:
            return PerformanceSummary(memory_bytes=self._memory_probe())
        durations = np.array([s.duration_ms for s in recent], dtype=np.float64)
        failures = sum(1 for s in recent if not s.success)
        return PerformanceSummary(
            samples=len(recent),
            avg_duration_ms=float(durations.mean()),
            error_rate=failures / len(recent),
            memory_bytes=recent[-1].memory_bytes,
        )

    def get_analytics(self, timeframe: AnalyticsTimeframe = "day") -> Analytics:
        """Aggregate trends over the last hour, day or week."""
        if timeframe not in _ANALYTICS_WINDOWS:
            raise ValueError(f"Unsupported timeframe: {timeframe!r}")
        window, bucket = _ANALYTICS_WINDOWS[timeframe]
        end = self._clock()
        start = end - window

        n_buckets = int(window / bucket)
        counts = [0] * n_buckets
        key_counts: Counter[str] = Counter()
        for ts, key in self._error_events:
            if start <= ts <= end:
                idx = min(int((ts - start) / bucket), n_buckets - 1)
                counts[idx] += 1
                key_counts[key] += 1
        error_trends = [
            TrendPoint(bucket_start=start + i * bucket, count=c)
            for i, c in enumerate(counts)
        ]
        top_errors = [
            self._errors[k] for k, _ in key_counts.most_common(RECENT_ERRORS_LIMIT)
            if k in self._errors
        ]

        by_operation: dict[str, list[PerformanceSample]] = {}
        for sample in self._samples:
            if start <= sample.started_at <= end:
                by_operation.setdefault(sample.operation, []).append(sample)
        performance_trends = []
        for operation, samples in sorted(by_operation.items()):
            durations = np.array([s.duration_ms for s in samples], dtype=np.float64)
            performance_trends.append(
                OperationStats(
                    operation=operation,
                    count=len(samples),
                    avg_duration_ms=float(durations.mean()),
                    p95_duration_ms=float(np.percentile(durations, 95)),
                    success_rate=sum(1 for s in samples if s.success) / len(samples),
                )
            )

        service_uptime: dict[str, float] = {}
        for service, history in self._health_history.items():
            scores = [SERVICE_UPTIME_SCORE[st] for ts, st in history if start <= ts <= end]
            if scores:
                service_uptime[service] = float(np.mean(scores))

        sessions = [s for s in self._sessions.values() if s.started_at >= start]
        aggregate = SessionAggregate(
            sessions=len(sessions),
            requests=sum(s.requests for s in sessions),
            duplicates_skipped=sum(s.duplicates_skipped for s in sessions),
            bytes_processed=sum(s.bytes_processed for s in sessions),
            avg_error_rate=(
                float(np.mean([s.error_rate for s in sessions])) if sessions else 0.0
            ),
        )

        return Analytics(
            timeframe=timeframe,
            window_start=start,
            window_end=end,
            error_trends=error_trends,
            performance_trends=performance_trends,
            top_errors=top_errors,
            service_uptime=service_uptime,
            sessions=aggregate,
        )

    def export_data(self, fmt: str = "json") -> str:
        """Serialize all ledgers as JSON or CSV text."""
        from crawlintel.monitoring.exporter import export_csv, export_json

        if fmt == "json":
            return export_json(self)
        if fmt == "csv":
            return export_csv(self)
        raise ValueError(f"Unsupported export format: {fmt!r}")

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Purge entries older than the retention window.

        Unacknowledged alerts are always kept. Returns the number of
        entries removed.
        """
        cutoff = self._clock() - timedelta(days=self._settings.monitoring_retention_days)
        removed = 0

        stale_errors = [k for k, r in self._errors.items() if r.last_seen < cutoff]
        for key in stale_errors:
            del self._errors[key]
        removed += len(stale_errors)

        kept_events = [(ts, k) for ts, k in self._error_events if ts >= cutoff]
        removed += len(self._error_events) - len(kept_events)
        self._error_events = deque(kept_events, maxlen=self._error_events.maxlen)

        kept_samples = [s for s in self._samples if s.started_at >= cutoff]
        removed += len(self._samples) - len(kept_samples)
        self._samples = deque(kept_samples, maxlen=self._samples.maxlen)

        stale_alerts = [
            a.id for a in self._alerts.values()
            if a.acknowledged and a.created_at < cutoff
        ]
        for alert_id in stale_alerts:
            del self._alerts[alert_id]
        removed += len(stale_alerts)

        stale_sessions = [
            sid for sid, s in self._sessions.items()
            if s.ended_at is not None and s.ended_at < cutoff
        ]
        for sid in stale_sessions:
            del self._sessions[sid]
        removed += len(stale_sessions)

        for history in self._health_history.values():
            while history and history[0][0] < cutoff:
                history.popleft()
                removed += 1

        if removed:
            logger.info("Monitoring cleanup removed %d stale entries", removed)
        return removed

    async def start(self) -> None:
        """Start the periodic cleanup loop."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.monitoring_cleanup_interval_seconds)
            self.cleanup()


def error_key(kind: str, operation: str, url: str | None) -> str:
    """Stable ledger key for an (error kind, operation, url) triple."""
    raw = f"{kind}:{operation}:{url or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def _interpret_probe(result: Any) -> tuple[HealthState, dict[str, Any]]:
    if result is None or result is True:
        return "healthy", {}
    if result is False:
        return "critical", {}
    if isinstance(result, str) and result in SERVICE_UPTIME_SCORE:
        return result, {}  # type: ignore[return-value]
    if isinstance(result, dict):
        status = result.get("status", "healthy")
        if status not in SERVICE_UPTIME_SCORE:
            raise ValueError(f"Invalid health status: {status!r}")
        details = {k: v for k, v in result.items() if k != "status"}
        return status, details
    raise ValueError(f"Unsupported health probe result: {result!r}")
