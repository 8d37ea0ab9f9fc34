# src/orchestrator/models.py - v1
"""Task orchestrator models: scheduled tasks, executions and reports."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from crawlintel.core.models import new_id, utcnow
from crawlintel.monitoring.models import OverallStatus, SystemStatus


class TaskType(str, Enum):
    """Kinds of background work the orchestrator can dispatch."""

    CRAWL_DISCOVERY = "crawl_discovery"
    CONTENT_EXTRACTION = "content_extraction"
    DATA_QUALITY_CHECK = "data_quality_check"
    DEDUPLICATION = "deduplication"
    URL_DISCOVERY = "url_discovery"
    SYSTEM_MAINTENANCE = "system_maintenance"
    BACKUP = "backup"
    ANALYTICS_GENERATION = "analytics_generation"
    HEALTH_CHECK = "health_check"


ExecutionStatus = Literal[
    "pending", "running", "completed", "failed", "cancelled", "timeout", "retrying"
]
ReportTimeframe = Literal["day", "week", "month"]

# Statuses counted as a failed run (and eligible for retry).
FAILED_STATUSES: frozenset[str] = frozenset({"failed", "timeout"})
FINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled", "timeout"})


class TaskConfiguration(BaseModel):
    """Per-task execution limits; ``override_config`` patches these per run."""

    max_duration_ms: int | None = Field(default=None, gt=0)
    retry_attempts: int = Field(default=0, ge=0)
    retry_delay_ms: int | None = Field(default=None, ge=0)
    resource_limits: dict[str, Any] = Field(default_factory=dict)
    parameters: dict[str, Any] = Field(default_factory=dict)
    alert_on_failure: bool = True
    alert_on_long_running: bool = False


class ScheduledTask(BaseModel):
    """A cron-bound unit of work and its run counters.

    ``run_count`` always equals ``success_count + failure_count``;
    cancelled executions count toward neither.
    """

    id: str = Field(default_factory=lambda: new_id("task"))
    name: str
    type: TaskType
    schedule: str
    priority: int = Field(default=5, ge=1, le=10)
    enabled: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    skip_count: int = 0
    average_duration_ms: float = 0.0
    configuration: TaskConfiguration = Field(default_factory=TaskConfiguration)
    dependencies: list[str] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        """Ran at least once and succeeds more often than it fails."""
        return self.run_count > 0 and self.success_count > self.failure_count


class ExecutionMetrics(BaseModel):
    memory_bytes: int = 0
    cpu_seconds: float = 0.0
    items_processed: int = 0
    items_created: int = 0
    items_updated: int = 0
    items_skipped: int = 0
    items_deduplicated: int = 0
    quality_improved: int = 0
    errors_encountered: int = 0
    quality_score: float | None = None


class TaskExecution(BaseModel):
    """One run attempt of a task; retries create a new row."""

    execution_id: str = Field(default_factory=lambda: new_id("exec"))
    task_id: str
    task_type: TaskType
    attempt: int = 0
    status: ExecutionStatus = "pending"
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: datetime | None = None
    duration_ms: float | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    metrics: ExecutionMetrics = Field(default_factory=ExecutionMetrics)

    @property
    def finished(self) -> bool:
        return self.status in FINAL_STATUSES


class OrchestratorStatus(BaseModel):
    is_running: bool
    maintenance_mode: bool
    scheduled_tasks: int
    running_count: int
    queue_depth: int
    system_health: SystemStatus
    recent_executions: list[TaskExecution] = Field(default_factory=list)


class TaskSummary(BaseModel):
    task_id: str
    name: str
    type: TaskType
    run_count: int
    success_count: int
    failure_count: int
    skip_count: int
    average_duration_ms: float
    last_run: datetime | None = None


class DataChanges(BaseModel):
    items_added: int = 0
    items_updated: int = 0
    items_deduped: int = 0
    quality_improved: int = 0


class SystemHealthSnapshot(BaseModel):
    overall_status: OverallStatus
    memory_mb: float = 0.0
    disk_usage: float = 0.0
    error_rate: float = 0.0


class OrchestrationReport(BaseModel):
    """Aggregated view of task outcomes over a timeframe."""

    session_id: str = Field(default_factory=lambda: new_id("report"))
    timeframe: ReportTimeframe = "day"
    start_time: datetime
    end_time: datetime
    total_tasks: int = 0
    successful_tasks: int = 0
    failed_tasks: int = 0
    skipped_tasks: int = 0
    total_executions: int = 0
    executions_by_status: dict[str, int] = Field(default_factory=dict)
    p95_duration_ms: float = 0.0
    tasks: list[TaskSummary] = Field(default_factory=list)
    data_changes: DataChanges = Field(default_factory=DataChanges)
    system_health: SystemHealthSnapshot
    recommendations: list[str] = Field(default_factory=list)

    @property
    def total_duration_ms(self) -> float:
        return (self.end_time - self.start_time).total_seconds() * 1000.0
