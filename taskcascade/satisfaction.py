"""Decide whether a task's dependencies allow it to become actionable."""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import (
    SatisfactionReport,
    Task,
    TaskStatus,
    UnmetDependency,
    WorkflowInstance,
)
from .resolver import DependencyResolver

logger = logging.getLogger(__name__)


def dependency_met(dependency: Task) -> bool:
    """Return ``True`` when ``dependency`` no longer blocks its dependents.

    Completed tasks always count. An auto-executable task counts as soon as it
    is actionable, since it has been handed to its executor.
    """
    if dependency.status == TaskStatus.COMPLETED:
        return True
    return dependency.status == TaskStatus.ACTIONABLE and dependency.auto_executable


def evaluate(
    instance: WorkflowInstance,
    task: Task,
    resolver: Optional[DependencyResolver] = None,
) -> SatisfactionReport:
    """Evaluate every dependency of ``task`` against ``instance``.

    References are checked in declaration order and all of them are visited,
    so the report lists every reason the task is blocked.

    Raises:
        AmbiguousDependency: If a reference matches several tasks.
    """
    resolver = resolver or DependencyResolver(instance)
    unresolved: list[str] = []
    unmet: list[UnmetDependency] = []

    for ref in task.dependencies:
        dependency = resolver.resolve(ref)
        if dependency is None:
            logger.warning(
                f"Task {task.id} depends on '{ref}' which is not in instance {instance.id}"
            )
            unresolved.append(ref)
            continue
        if not dependency_met(dependency):
            unmet.append(
                UnmetDependency(
                    ref=ref,
                    task_id=dependency.id,
                    status=dependency.status,
                    auto_executable=dependency.auto_executable,
                )
            )

    return SatisfactionReport(
        satisfied=not unresolved and not unmet,
        unresolved=unresolved,
        unmet=unmet,
    )


def is_satisfied(instance: WorkflowInstance, task: Task) -> tuple[bool, list[str]]:
    """Return ``(satisfied, unresolved_refs)`` for ``task``."""
    report = evaluate(instance, task)
    return report.satisfied, report.unresolved
