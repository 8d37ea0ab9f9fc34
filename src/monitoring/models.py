# src/monitoring/models.py - v1
"""Monitoring domain models: errors, performance samples, health, alerts, sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from crawlintel.core.models import new_id, utcnow

AlertType = Literal["error", "warning", "info", "critical"]
HealthState = Literal["healthy", "warning", "critical", "down"]
OverallStatus = Literal["healthy", "warning", "critical"]
AnalyticsTimeframe = Literal["hour", "day", "week"]
UrlStage = Literal[
    "discovered", "queued", "fetched", "extracted", "persisted", "failed", "skipped"
]


class ErrorExample(BaseModel):
    """One occurrence kept as an example on an error ledger entry."""

    timestamp: datetime
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class ErrorRecord(BaseModel):
    """Aggregated ledger entry for one (kind, operation, url) triple."""

    key: str
    kind: str
    operation: str
    url: str | None = None
    message: str
    count: int = 0
    first_seen: datetime
    last_seen: datetime
    examples: list[ErrorExample] = Field(default_factory=list)


class PerformanceSample(BaseModel):
    """A finished timing measurement."""

    operation: str
    started_at: datetime
    duration_ms: float
    success: bool = True
    memory_bytes: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class HealthCheck(BaseModel):
    """Latest health state of a named service."""

    service: str
    status: HealthState
    checked_at: datetime = Field(default_factory=utcnow)
    response_ms: float = 0.0
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class Alert(BaseModel):
    """Operator-visible alert, append-only until acknowledged."""

    id: str = Field(default_factory=lambda: new_id("alert"))
    type: AlertType
    title: str
    source: str
    message: str
    created_at: datetime = Field(default_factory=utcnow)
    acknowledged: bool = False
    acknowledged_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorBreakdown(BaseModel):
    """Per-kind error counter inside a session."""

    count: int = 0
    examples: list[str] = Field(default_factory=list)


class SessionMetrics(BaseModel):
    """Counters for one bounded crawl run."""

    session_id: str
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: datetime | None = None
    status: Literal["running", "completed", "failed", "cancelled"] = "running"
    requests: int = 0
    successes: int = 0
    failures: int = 0
    duplicates_skipped: int = 0
    bytes_processed: int = 0
    url_stages: dict[str, int] = Field(default_factory=dict)
    peak_memory_bytes: int = 0
    error_breakdown: dict[str, ErrorBreakdown] = Field(default_factory=dict)

    @property
    def error_rate(self) -> float:
        return self.failures / self.requests if self.requests else 0.0

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()


class PerformanceSummary(BaseModel):
    """Recent performance digest used by the system status."""

    samples: int = 0
    avg_duration_ms: float = 0.0
    error_rate: float = 0.0
    memory_bytes: int = 0


class SystemStatus(BaseModel):
    """Snapshot returned by Monitor.get_system_status()."""

    overall: OverallStatus
    services: dict[str, HealthCheck] = Field(default_factory=dict)
    active_alerts: list[Alert] = Field(default_factory=list)
    recent_errors: list[ErrorRecord] = Field(default_factory=list)
    performance: PerformanceSummary = Field(default_factory=PerformanceSummary)
    active_sessions: int = 0
    total_sessions: int = 0


class TrendPoint(BaseModel):
    bucket_start: datetime
    count: int = 0


class OperationStats(BaseModel):
    operation: str
    count: int
    avg_duration_ms: float
    p95_duration_ms: float
    success_rate: float


class SessionAggregate(BaseModel):
    sessions: int = 0
    requests: int = 0
    duplicates_skipped: int = 0
    bytes_processed: int = 0
    avg_error_rate: float = 0.0


class Analytics(BaseModel):
    """Windowed analytics returned by Monitor.get_analytics()."""

    timeframe: AnalyticsTimeframe
    window_start: datetime
    window_end: datetime
    error_trends: list[TrendPoint] = Field(default_factory=list)
    performance_trends: list[OperationStats] = Field(default_factory=list)
    top_errors: list[ErrorRecord] = Field(default_factory=list)
    service_uptime: dict[str, float] = Field(default_factory=dict)
    sessions: SessionAggregate = Field(default_factory=SessionAggregate)
