# tests/unit/orchestrator/test_dependencies.py - v1
"""Tests for orchestrator/dependencies.py."""

from __future__ import annotations

import pytest

from crawlintel.orchestrator.dependencies import (
    TaskRegistrationError,
    blocking_dependencies,
    build_dependency_graph,
    dependencies_satisfied,
    dependency_order,
    dependents_of,
)
from crawlintel.orchestrator.models import ScheduledTask, TaskType


def _make_task(task_id: str, deps: list[str] | None = None, **overrides) -> ScheduledTask:
    fields = {
        "id": task_id,
        "name": task_id.upper(),
        "type": TaskType.HEALTH_CHECK,
        "schedule": "*/15 * * * *",
        "dependencies": deps or [],
    }
    fields.update(overrides)
    return ScheduledTask(**fields)


def _registry(*tasks: ScheduledTask) -> dict[str, ScheduledTask]:
    return {t.id: t for t in tasks}


class TestGraph:
    def test_edges_point_to_dependents(self):
        graph = build_dependency_graph(_registry(_make_task("a"), _make_task("b", ["a"])))
        assert list(graph.edges) == [("a", "b")]

    def test_unknown_dependency(self):
        with pytest.raises(TaskRegistrationError, match="not registered"):
            build_dependency_graph(_registry(_make_task("b", ["missing"])))

    def test_cycle(self):
        with pytest.raises(TaskRegistrationError, match="Cycle"):
            build_dependency_graph(_registry(_make_task("a", ["b"]), _make_task("b", ["a"])))

    def test_order(self):
        tasks = _registry(_make_task("c", ["b"]), _make_task("b", ["a"]), _make_task("a"))
        assert dependency_order(tasks) == ["a", "b", "c"]

    def test_dependents_transitive(self):
        tasks = _registry(
            _make_task("a"), _make_task("b", ["a"]), _make_task("c", ["b"]), _make_task("d"),
        )
        assert dependents_of("a", tasks) == ["b", "c"]
        assert dependents_of("d", tasks) == []
        assert dependents_of("zz", tasks) == []


class TestReadiness:
    def test_never_ran_blocks(self):
        tasks = _registry(_make_task("a"), _make_task("b", ["a"]))
        assert blocking_dependencies(tasks["b"], tasks) == ["a"]
        assert not dependencies_satisfied(tasks["b"], tasks)

    def test_healthy_dependency(self):
        tasks = _registry(
            _make_task("a", run_count=3, success_count=2, failure_count=1),
            _make_task("b", ["a"]),
        )
        assert dependencies_satisfied(tasks["b"], tasks)

    def test_tied_failures_block(self):
        tasks = _registry(
            _make_task("a", run_count=2, success_count=1, failure_count=1),
            _make_task("b", ["a"]),
        )
        assert blocking_dependencies(tasks["b"], tasks) == ["a"]

    def test_removed_dependency_blocks(self):
        task = _make_task("b", ["gone"])
        assert blocking_dependencies(task, {"b": task}) == ["gone"]

    def test_no_dependencies(self):
        task = _make_task("a")
        assert dependencies_satisfied(task, {"a": task})
