# src/orchestrator/orchestrator.py - v1
"""Dependency-aware task orchestrator.

One coordinator loop owns a min-heap of next fire times (UTC cron
evaluation). Due tasks are dispatched when their dependencies are healthy,
the orchestrator is not in maintenance mode, and an execution slot is
free; otherwise they wait in a FIFO queue drained on a timer and whenever
a slot is released. Each attempt gets its own TaskExecution row and runs
under ``asyncio.wait_for`` so a timeout cancels the task body.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import shutil
import time
from collections import Counter, deque
from collections.abc import Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

import numpy as np

from crawlintel.config.settings import Settings
from crawlintel.core.models import utcnow
from crawlintel.logging.context import set_task_context
from crawlintel.monitoring.models import OverallStatus, SystemStatus
from crawlintel.monitoring.monitor import Monitor
from crawlintel.orchestrator.cron import next_fire_time, validate_cron
from crawlintel.orchestrator.dependencies import (
    TaskRegistrationError,
    blocking_dependencies,
    build_dependency_graph,
    dependents_of,
)
from crawlintel.orchestrator.models import (
    FAILED_STATUSES,
    DataChanges,
    ExecutionStatus,
    OrchestrationReport,
    OrchestratorStatus,
    ReportTimeframe,
    ScheduledTask,
    SystemHealthSnapshot,
    TaskConfiguration,
    TaskExecution,
    TaskSummary,
    TaskType,
)
from crawlintel.orchestrator.tasks import TaskHandler

logger = logging.getLogger(__name__)

RECENT_EXECUTIONS_LIMIT = 10
EXECUTION_HISTORY_SIZE = 1000
MAX_SCHEDULER_SLEEP_SECONDS = 60.0
LONG_RUNNING_RATIO = 0.8
QUALITY_TARGET = 0.7

REPORT_WINDOWS: dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


class TaskNotFoundError(Exception):
    """Raised when a task id is not registered."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class Orchestrator:
    """Runs registered ScheduledTasks on their cron schedules."""

    def __init__(
        self,
        handlers: Mapping[TaskType, TaskHandler],
        monitor: Monitor | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings or Settings()
        self._monitor = monitor or Monitor(self._settings)
        self._handlers = dict(handlers)
        self._clock = clock
        self._max_concurrency = self._settings.orchestrator_max_concurrency

        self._tasks: dict[str, ScheduledTask] = {}
        self._heap: list[tuple[datetime, int, str]] = []
        self._seq = itertools.count()
        self._wait_queue: deque[str] = deque()
        self._running: dict[str, TaskExecution] = {}
        self._history: deque[TaskExecution] = deque(maxlen=EXECUTION_HISTORY_SIZE)
        self._active = 0
        self._slot_freed = asyncio.Event()
        self._wakeup = asyncio.Event()
        self._workers: set[asyncio.Task[Any]] = set()
        self._loops: list[asyncio.Task[None]] = []
        self._is_running = False
        self._maintenance_mode = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def maintenance_mode(self) -> bool:
        return self._maintenance_mode

    @property
    def tasks(self) -> list[ScheduledTask]:
        return list(self._tasks.values())

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def queue_depth(self) -> int:
        return len(self._wait_queue)

    @property
    def executions(self) -> list[TaskExecution]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Schedule every enabled task and start the background loops."""
        if self._is_running:
            return
        self._is_running = True
        await self._monitor.health_check(
            "orchestrator", lambda: {"status": "healthy", "tasks": len(self._tasks)}
        )

        now = self._clock()
        self._heap.clear()
        for task in self._tasks.values():
            if task.enabled:
                self._schedule(task, now, keep_future=True)

        self._loops = [
            asyncio.create_task(self._scheduler_loop()),
            asyncio.create_task(self._queue_loop()),
            asyncio.create_task(self._health_loop()),
        ]
        logger.info("Orchestrator started with %d tasks", len(self._tasks))

    async def stop(self) -> None:
        """Stop the loops and cancel every in-flight execution."""
        if not self._is_running:
            return
        self._is_running = False
        self._wakeup.set()

        pending = [*self._loops, *self._workers]
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        self._loops = []
        self._wait_queue.clear()
        self._heap.clear()
        logger.info("Orchestrator stopped")

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def add_task(self, task: ScheduledTask) -> str:
        """Register a task and return its id.

        Raises:
            CronExpressionError: If the schedule is not a valid cron expression.
            TaskRegistrationError: If the id is taken, a dependency is unknown
                or the dependency graph would contain a cycle.
        """
        task.schedule = validate_cron(task.schedule)
        if task.id in self._tasks:
            raise TaskRegistrationError(f"Task id {task.id} is already registered")
        build_dependency_graph({**self._tasks, task.id: task})

        self._tasks[task.id] = task
        if self._is_running and task.enabled:
            self._schedule(task, self._clock(), keep_future=True)
        logger.info("Added scheduled task %s (%s) as %s", task.name, task.schedule, task.id)
        return task.id

    def remove_task(self, task_id: str) -> ScheduledTask:
        """Unregister a task that nothing else depends on.

        Raises:
            TaskNotFoundError: If the id is unknown.
            TaskRegistrationError: If other tasks depend on it.
        """
        if task_id not in self._tasks:
            raise TaskNotFoundError(task_id)
        dependents = dependents_of(task_id, self._tasks)
        if dependents:
            raise TaskRegistrationError(f"Task {task_id} is required by {dependents}")
        task = self._tasks.pop(task_id)
        self._wait_queue = deque(t for t in self._wait_queue if t != task_id)
        logger.info("Removed scheduled task %s", task.name)
        return task

    def get_task(self, task_id: str) -> ScheduledTask | None:
        return self._tasks.get(task_id)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch_due_tasks(self) -> list[str]:
        """Fire every task whose next run time has passed.

        Returns the ids of tasks started or queued.
        """
        now = self._clock()
        accepted = []
        while self._heap and self._heap[0][0] <= now:
            fire_at, _, task_id = heapq.heappop(self._heap)
            task = self._tasks.get(task_id)
            if task is None or not task.enabled or task.next_run != fire_at:
                continue
            self._schedule(task, now)
            if self._dispatch(task):
                accepted.append(task_id)
        return accepted

    def _dispatch(self, task: ScheduledTask) -> bool:
        if not self._is_running:
            return False
        if self._maintenance_mode:
            task.skip_count += 1
            logger.info("Task %s suppressed: maintenance mode", task.name)
            return False
        blocking = blocking_dependencies(task, self._tasks)
        if blocking:
            task.skip_count += 1
            logger.info("Task %s deferred: dependencies not ready %s", task.name, blocking)
            return False

        if self._active >= self._max_concurrency or self._wait_queue:
            if task.id not in self._wait_queue:
                self._wait_queue.append(task.id)
                logger.info(
                    "Task %s queued: %d/%d slots busy", task.name, self._active, self._max_concurrency
                )
            return True

        self._active += 1
        self._spawn(self._run_task(task, task.configuration, reserved=True))
        return True

    def _drain_queue(self) -> None:
        while (
            self._wait_queue
            and self._active < self._max_concurrency
            and self._is_running
            and not self._maintenance_mode
        ):
            task = self._tasks.get(self._wait_queue.popleft())
            if task is None or not task.enabled:
                continue
            if blocking_dependencies(task, self._tasks):
                task.skip_count += 1
                continue
            self._active += 1
            self._spawn(self._run_task(task, task.configuration, reserved=True))

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        worker = asyncio.create_task(coro)
        self._workers.add(worker)
        worker.add_done_callback(self._workers.discard)
        return worker

    def _schedule(self, task: ScheduledTask, now: datetime, keep_future: bool = False) -> None:
        if not (keep_future and task.next_run is not None and task.next_run > now):
            task.next_run = next_fire_time(task.schedule, now)
        heapq.heappush(self._heap, (task.next_run, next(self._seq), task.id))
        self._wakeup.set()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_task(
        self, task_id: str, override_config: dict[str, Any] | None = None
    ) -> TaskExecution:
        """Run a task now, outside its schedule.

        Blocked dependencies or maintenance mode produce a ``cancelled``
        execution instead of a run. Waits for a free slot when all are busy.

        Raises:
            TaskNotFoundError: If the id is unknown.
        """
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        if self._maintenance_mode:
            return self._cancelled_execution(task, "Maintenance mode active")
        blocking = blocking_dependencies(task, self._tasks)
        if blocking:
            return self._cancelled_execution(task, f"Dependencies not satisfied: {blocking}")

        config = task.configuration
        if override_config:
            config = TaskConfiguration.model_validate(
                {**task.configuration.model_dump(), **override_config}
            )

        rows: list[TaskExecution] = []
        worker = self._spawn(self._run_task(task, config, rows=rows))
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            if not worker.cancelled() or not rows:
                raise
            return rows[-1]

    async def _run_task(
        self,
        task: ScheduledTask,
        config: TaskConfiguration,
        reserved: bool = False,
        rows: list[TaskExecution] | None = None,
    ) -> TaskExecution:
        """Run ``task`` with retries; returns the last attempt's execution."""
        rows = rows if rows is not None else []
        execution = self._new_execution(task, 0, "pending")
        rows.append(execution)
        try:
            while True:
                if not reserved:
                    await self._acquire_slot()
                reserved = False
                try:
                    await self._run_attempt(task, config, execution)
                finally:
                    self._release_slot()

                if execution.status not in FAILED_STATUSES or execution.attempt >= config.retry_attempts:
                    break
                delay_ms = (
                    config.retry_delay_ms
                    if config.retry_delay_ms is not None
                    else self._settings.orchestrator_default_retry_delay_ms
                )
                logger.info(
                    "Retrying %s in %dms (attempt %d/%d)",
                    task.name, delay_ms, execution.attempt + 1, config.retry_attempts,
                )
                execution = self._new_execution(task, execution.attempt + 1, "retrying")
                rows.append(execution)
                if delay_ms:
                    await asyncio.sleep(delay_ms / 1000.0)
        except asyncio.CancelledError:
            if not execution.finished:
                execution.status = "cancelled"
                execution.error = "Cancelled"
                execution.ended_at = self._clock()
            raise

        if execution.status in FAILED_STATUSES and config.alert_on_failure:
            self._monitor.create_alert(
                "error",
                f"Task failed: {task.name}",
                "orchestrator",
                execution.error or execution.status,
                {"task_id": task.id, "execution_id": execution.execution_id, "attempts": len(rows)},
            )
        return execution

    async def _run_attempt(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> None:
        handler = self._handlers.get(task.type)
        operation = f"task:{task.type.value}"
        timeout = config.max_duration_ms / 1000.0 if config.max_duration_ms else None

        execution.status = "running"
        execution.started_at = self._clock()
        self._running[execution.execution_id] = execution
        set_task_context(task.id, execution.execution_id)
        timer_id = self._monitor.start_timing(
            operation, {"task_id": task.id, "attempt": execution.attempt}
        )
        start = time.perf_counter()
        cpu_start = time.process_time()
        memory_start = self._monitor.sample_memory()
        logger.info("Starting %s (%s, attempt %d)", task.name, execution.execution_id, execution.attempt)

        try:
            if handler is None:
                raise ValueError(f"No handler registered for task type {task.type.value}")
            execution.result = await asyncio.wait_for(handler(task, config, execution), timeout)
            execution.status = "completed"
        except asyncio.TimeoutError:
            execution.status = "timeout"
            execution.error = f"Exceeded max duration of {timeout:.1f}s"
            execution.metrics.errors_encountered += 1
            self._monitor.record_error(
                "TaskTimeout", operation,
                context={"task_id": task.id, "execution_id": execution.execution_id},
            )
        except asyncio.CancelledError:
            execution.status = "cancelled"
            execution.error = "Cancelled"
            raise
        except Exception as exc:
            execution.status = "failed"
            execution.error = str(exc) or type(exc).__name__
            execution.metrics.errors_encountered += 1
            self._monitor.record_error(
                exc, operation,
                context={"task_id": task.id, "execution_id": execution.execution_id},
            )
        finally:
            execution.ended_at = self._clock()
            execution.duration_ms = (time.perf_counter() - start) * 1000.0
            execution.metrics.cpu_seconds = time.process_time() - cpu_start
            execution.metrics.memory_bytes = max(0, self._monitor.sample_memory() - memory_start)
            self._running.pop(execution.execution_id, None)
            self._monitor.end_timing(
                timer_id, success=execution.status == "completed",
                metadata={"status": execution.status},
            )
            self._record_outcome(task, config, execution)

    def _record_outcome(
        self, task: ScheduledTask, config: TaskConfiguration, execution: TaskExecution
    ) -> None:
        if execution.status == "cancelled":
            logger.info("Cancelled %s (%s)", task.name, execution.execution_id)
            return
        task.run_count += 1
        task.last_run = execution.started_at
        duration = execution.duration_ms or 0.0
        if execution.status == "completed":
            task.success_count += 1
            task.average_duration_ms += (duration - task.average_duration_ms) / task.success_count
            logger.info("Completed %s in %.0fms", task.name, duration)
            if (
                config.alert_on_long_running
                and config.max_duration_ms
                and duration > LONG_RUNNING_RATIO * config.max_duration_ms
            ):
                self._monitor.create_alert(
                    "warning",
                    f"Long-running task: {task.name}",
                    "orchestrator",
                    f"{task.name} took {duration:.0f}ms of its {config.max_duration_ms}ms budget",
                    {"task_id": task.id},
                )
        else:
            task.failure_count += 1
            logger.warning("Task %s %s: %s", task.name, execution.status, execution.error)

    def _new_execution(
        self, task: ScheduledTask, attempt: int, status: ExecutionStatus
    ) -> TaskExecution:
        execution = TaskExecution(
            task_id=task.id, task_type=task.type, attempt=attempt,
            status=status, started_at=self._clock(),
        )
        self._history.append(execution)
        return execution

    def _cancelled_execution(self, task: ScheduledTask, reason: str) -> TaskExecution:
        execution = self._new_execution(task, 0, "cancelled")
        execution.error = reason
        execution.ended_at = execution.started_at
        execution.duration_ms = 0.0
        task.skip_count += 1
        logger.info("Task %s not run: %s", task.name, reason)
        return execution

    async def _acquire_slot(self) -> None:
        while self._active >= self._max_concurrency:
            self._slot_freed.clear()
            await self._slot_freed.wait()
        self._active += 1

    def _release_slot(self) -> None:
        self._active -= 1
        self._slot_freed.set()
        self._drain_queue()

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    async def _scheduler_loop(self) -> None:
        while True:
            self.dispatch_due_tasks()
            delay = MAX_SCHEDULER_SLEEP_SECONDS
            if self._heap:
                until_next = (self._heap[0][0] - self._clock()).total_seconds()
                delay = min(delay, max(0.0, until_next))
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def _queue_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.orchestrator_queue_drain_seconds)
            self._drain_queue()

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.orchestrator_health_interval_seconds)
            self.check_health()

    def check_health(self) -> OverallStatus:
        """Enter maintenance mode on critical health; leave it once healthy."""
        overall = self._monitor.get_system_status().overall
        if overall == "critical" and not self._maintenance_mode:
            self._maintenance_mode = True
            logger.warning("System health critical: maintenance mode enabled")
            self._monitor.create_alert(
                "info", "Maintenance mode enabled", "orchestrator",
                "New task dispatch suspended until system health recovers",
            )
        elif overall == "healthy" and self._maintenance_mode:
            self._maintenance_mode = False
            logger.info("System health restored: maintenance mode disabled")
            self._monitor.create_alert(
                "info", "Maintenance mode disabled", "orchestrator", "Task dispatch resumed",
            )
            self._drain_queue()
        return overall

    # ------------------------------------------------------------------
    # Status and reports
    # ------------------------------------------------------------------

    def get_status(self) -> OrchestratorStatus:
        recent = sorted(self._history, key=lambda e: e.started_at, reverse=True)
        return OrchestratorStatus(
            is_running=self._is_running,
            maintenance_mode=self._maintenance_mode,
            scheduled_tasks=len(self._tasks),
            running_count=len(self._running),
            queue_depth=len(self._wait_queue),
            system_health=self._monitor.get_system_status(),
            recent_executions=recent[:RECENT_EXECUTIONS_LIMIT],
        )

    def generate_report(self, timeframe: ReportTimeframe = "day") -> OrchestrationReport:
        """Summarise task outcomes, data changes and system health."""
        if timeframe not in REPORT_WINDOWS:
            raise ValueError(f"Unsupported timeframe: {timeframe!r}")
        end = self._clock()
        start = end - REPORT_WINDOWS[timeframe]
        executions = [e for e in self._history if e.started_at >= start]
        durations = np.array(
            [e.duration_ms for e in executions if e.finished and e.duration_ms], dtype=np.float64
        )
        tasks = list(self._tasks.values())
        status = self._monitor.get_system_status()

        return OrchestrationReport(
            timeframe=timeframe,
            start_time=start,
            end_time=end,
            total_tasks=len(tasks),
            successful_tasks=sum(1 for t in tasks if t.success_count > t.failure_count),
            failed_tasks=sum(
                1 for t in tasks if t.failure_count > 0 and t.failure_count >= t.success_count
            ),
            skipped_tasks=sum(1 for t in tasks if t.run_count == 0),
            total_executions=len(executions),
            executions_by_status=dict(Counter(e.status for e in executions)),
            p95_duration_ms=float(np.percentile(durations, 95)) if durations.size else 0.0,
            tasks=[_summarise(t) for t in tasks],
            data_changes=DataChanges(
                items_added=sum(e.metrics.items_created for e in executions),
                items_updated=sum(e.metrics.items_updated for e in executions),
                items_deduped=sum(e.metrics.items_deduplicated for e in executions),
                quality_improved=sum(e.metrics.quality_improved for e in executions),
            ),
            system_health=SystemHealthSnapshot(
                overall_status=status.overall,
                memory_mb=status.performance.memory_bytes / 1024**2,
                disk_usage=disk_usage_ratio(),
                error_rate=status.performance.error_rate,
            ),
            recommendations=self._recommendations(status, tasks, executions),
        )

    def _recommendations(
        self,
        status: SystemStatus,
        tasks: list[ScheduledTask],
        executions: list[TaskExecution],
    ) -> list[str]:
        recommendations: list[str] = []
        if status.performance.error_rate > self._settings.monitoring_error_rate_threshold:
            recommendations.append(
                "High error rate detected - review system logs and increase monitoring"
            )

        quality_runs = [
            e for e in executions
            if e.task_type == TaskType.DATA_QUALITY_CHECK and e.metrics.quality_score is not None
        ]
        if quality_runs:
            latest = max(quality_runs, key=lambda e: e.started_at)
            if latest.metrics.quality_score < QUALITY_TARGET:  # type: ignore[operator]
                recommendations.append(
                    "Data quality is below optimal - consider reviewing validation rules"
                )

        if status.performance.memory_bytes > self._settings.monitoring_memory_threshold_bytes:
            recommendations.append("Memory usage is high - consider implementing memory optimization")

        failing = sorted(
            t.name for t in tasks if t.failure_count > 0 and t.failure_count >= t.success_count
        )
        if failing:
            recommendations.append(f"Tasks failing as often as they succeed: {', '.join(failing)}")

        timed_out = sorted({
            self._tasks[e.task_id].name for e in executions
            if e.status == "timeout" and e.task_id in self._tasks
        })
        if timed_out:
            recommendations.append(f"Consider raising max duration for: {', '.join(timed_out)}")

        if self._maintenance_mode:
            recommendations.append(
                "Maintenance mode is active - resolve critical alerts to resume dispatch"
            )

        if not recommendations:
            recommendations.append("System is operating normally - continue with current configuration")
        return recommendations


def _summarise(task: ScheduledTask) -> TaskSummary:
    return TaskSummary(
        task_id=task.id,
        name=task.name,
        type=task.type,
        run_count=task.run_count,
        success_count=task.success_count,
        failure_count=task.failure_count,
        skip_count=task.skip_count,
        average_duration_ms=task.average_duration_ms,
        last_run=task.last_run,
    )


def disk_usage_ratio(path: Path | None = None) -> float:
    """Used fraction of the filesystem holding ``path`` (cwd by default)."""
    usage = shutil.disk_usage(path or Path.cwd())
    return usage.used / usage.total if usage.total else 0.0
