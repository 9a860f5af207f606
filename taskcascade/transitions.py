"""Status state machine and its conditional writes.

Allowed moves::

    Upcoming -> Actionable -> Completed
    Upcoming -> Completed          (only when dependencies are satisfied)

Nothing leaves ``Completed``. Every write is a compare-and-set on the status
the caller observed, so two racing writers produce one change and one no-op.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from .contracts import Task, TaskStatus, TransitionOutcome, parse_status, utcnow
from .errors import InvalidTransition, StoreConflict, TaskNotFound
from .persistence.store import TaskStore

logger = logging.getLogger(__name__)


def check_transition(
    current: Any, target: Any, *, dependencies_satisfied: bool = True
) -> bool:
    """Validate a status change.

    Returns:
        ``True`` if the change is allowed, ``False`` if it is a no-op.

    Raises:
        InvalidTransition: For regressions, undefined statuses, or skipping
            straight to ``Completed`` with unmet dependencies.
    """
    current = parse_status(current)
    target = parse_status(target)
    if current == target:
        return False
    if current == TaskStatus.COMPLETED:
        raise InvalidTransition(current.value, target.value, "completed tasks never regress")
    if target.rank < current.rank:
        raise InvalidTransition(current.value, target.value, "status cannot move backwards")
    if (
        current == TaskStatus.UPCOMING
        and target == TaskStatus.COMPLETED
        and not dependencies_satisfied
    ):
        raise InvalidTransition(current.value, target.value, "dependencies are not satisfied")
    return True


class TransitionEngine:
    """Single writer of task status."""

    def __init__(
        self, store: TaskStore, clock: Callable[[], datetime] = utcnow
    ) -> None:
        self._store = store
        self._clock = clock

    def _timestamp(self, task: Task) -> datetime:
        now = self._clock()
        return max(now, task.updated_at)

    async def transition(
        self, task: Task, target: Any, *, dependencies_satisfied: bool = True
    ) -> TransitionOutcome:
        """Move ``task`` to ``target`` with a conditional write.

        ``task`` is the caller's snapshot; its status is the expected value of
        the compare-and-set.
        """
        try:
            changed = check_transition(
                task.status, target, dependencies_satisfied=dependencies_satisfied
            )
        except InvalidTransition as exc:
            logger.warning(f"Rejected transition for task {task.id}: {exc}")
            raise
        if not changed:
            return TransitionOutcome(changed=False, status=task.status)

        target = parse_status(target)
        won = await self._store.compare_and_set_status(
            task.workflow_instance_id,
            task.id,
            task.status,
            target,
            self._timestamp(task),
        )
        if won:
            logger.info(
                f"Task {task.id} in {task.workflow_instance_id}: "
                f"{task.status.value} -> {target.value}"
            )
            return TransitionOutcome(changed=True, status=target)

        current = await self._store.get_task(task.workflow_instance_id, task.id)
        if current is None:
            raise TaskNotFound(task.workflow_instance_id, task.id)
        if current.status.rank >= target.rank:
            logger.info(
                f"Task {task.id} already {current.status.value}; "
                f"concurrent transition to {target.value} is a no-op"
            )
            return TransitionOutcome(changed=False, status=current.status)
        raise StoreConflict(task.id, task.status.value, current.status.value)

    async def promote_to_actionable(self, task: Task) -> TransitionOutcome:
        """``Upcoming -> Actionable``; a no-op for tasks already past ``Upcoming``."""
        if task.status != TaskStatus.UPCOMING:
            return TransitionOutcome(changed=False, status=task.status)
        return await self.transition(task, TaskStatus.ACTIONABLE)

    async def complete(
        self, task: Task, *, dependencies_satisfied: bool
    ) -> TransitionOutcome:
        """Record that ``task``'s own work has finished."""
        return await self.transition(
            task, TaskStatus.COMPLETED, dependencies_satisfied=dependencies_satisfied
        )
