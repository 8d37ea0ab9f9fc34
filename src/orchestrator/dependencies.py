# src/orchestrator/dependencies.py - v1
"""Task dependency graph.

Edges point from a dependency to the task that waits on it. Registration
is rejected if it would reference an unknown task or close a cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import networkx as nx

from crawlintel.orchestrator.models import ScheduledTask

logger = logging.getLogger(__name__)


class TaskRegistrationError(Exception):
    """Raised when a task cannot be added (missing dependency, cycle, bad schedule)."""


def build_dependency_graph(tasks: Mapping[str, ScheduledTask]) -> nx.DiGraph:
    """Build and validate the dependency DAG for ``tasks``.

    Raises:
        TaskRegistrationError: If a dependency id is unknown or the graph
            contains a cycle.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(tasks)
    for task_id, task in tasks.items():
        for dep in task.dependencies:
            if dep not in tasks:
                raise TaskRegistrationError(
                    f"Task '{task.name}' depends on '{dep}' which is not registered"
                )
            graph.add_edge(dep, task_id)

    if not nx.is_directed_acyclic_graph(graph):
        cycle = [edge[0] for edge in nx.find_cycle(graph)]
        raise TaskRegistrationError(f"Cycle detected involving tasks: {cycle}")
    return graph


def dependency_order(tasks: Mapping[str, ScheduledTask]) -> list[str]:
    """Task ids ordered so that every dependency precedes its dependents."""
    graph = build_dependency_graph(tasks)
    order = list(nx.lexicographical_topological_sort(graph))
    logger.debug("Dependency order: %s", order)
    return order


def blocking_dependencies(
    task: ScheduledTask, tasks: Mapping[str, ScheduledTask]
) -> list[str]:
    """Dependencies of ``task`` that are missing, never ran, or fail as often as they succeed."""
    blocking = []
    for dep_id in task.dependencies:
        dep = tasks.get(dep_id)
        if dep is None or not dep.healthy:
            blocking.append(dep_id)
    return blocking


def dependencies_satisfied(task: ScheduledTask, tasks: Mapping[str, ScheduledTask]) -> bool:
    return not blocking_dependencies(task, tasks)


def dependents_of(task_id: str, tasks: Mapping[str, ScheduledTask]) -> list[str]:
    """Every task that transitively depends on ``task_id``."""
    graph = build_dependency_graph(tasks)
    if task_id not in graph:
        return []
    return sorted(nx.descendants(graph, task_id))
