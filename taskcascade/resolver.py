"""Map dependency references onto the tasks of a workflow instance.

A reference is written either as a task ``id`` of the instance or as the
``template_id`` the wanted task was created from. Task ids win; a template
id must identify exactly one task of the instance.
"""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import Task, WorkflowInstance
from .errors import AmbiguousDependency

logger = logging.getLogger(__name__)


def resolve(instance: WorkflowInstance, ref: str) -> Optional[Task]:
    """Return the task ``ref`` denotes within ``instance``, or ``None``.

    Raises:
        ValueError: If ``ref`` is empty or the instance has no tasks.
        AmbiguousDependency: If ``ref`` matches the template of several tasks.
    """
    if not isinstance(ref, str) or not ref:
        raise ValueError("Dependency reference must be a non-empty string")
    if not instance.tasks:
        raise ValueError(f"Workflow instance {instance.id} has no tasks")

    task = instance.get(ref)
    if task is not None:
        return task

    matches = instance.with_template(ref)
    if len(matches) > 1:
        raise AmbiguousDependency(ref, [t.id for t in matches])
    if matches:
        logger.debug(f"Resolved '{ref}' by template to task {matches[0].id}")
        return matches[0]

    logger.debug(f"Dependency '{ref}' not found in instance {instance.id}")
    return None


class DependencyResolver:
    """Resolver bound to one instance snapshot, memoizing template lookups."""

    def __init__(self, instance: WorkflowInstance) -> None:
        self.instance = instance
        self._cache: dict[str, Optional[Task]] = {}

    def resolve(self, ref: str) -> Optional[Task]:
        if ref not in self._cache:
            self._cache[ref] = resolve(self.instance, ref)
        return self._cache[ref]
