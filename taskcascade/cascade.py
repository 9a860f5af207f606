"""Cascade coordinator: propagate a task completion to its dependents.

Each call reads one snapshot of the instance and evaluates every
``Upcoming`` task against it. Promotions made by the call are applied to that
snapshot; when one of them makes an auto-executable task actionable, the
remaining ``Upcoming`` tasks are evaluated again, because queued automation
already satisfies its dependents. Every task can be promoted at most once, so
a call makes at most one pass per task of the instance. Completions that
happen later are handled by their own calls.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from .constants import DEFAULT_EXECUTOR_TIMEOUT
from .contracts import (
    CascadeResult,
    Task,
    TaskOutcome,
    TaskStatus,
    WorkflowInstance,
    utcnow,
)
from .errors import (
    AmbiguousDependency,
    CascadeError,
    ExecutorTriggerFailed,
    InstanceNotFound,
    InvalidTransition,
    TaskNotFound,
)
from .executors.base import BaseExecutorTrigger
from .persistence.store import TaskStore
from .resolver import DependencyResolver
from .satisfaction import dependency_met, evaluate
from .transitions import TransitionEngine

if TYPE_CHECKING:
    from .db import CascadeHistory

logger = logging.getLogger(__name__)


class CascadeCoordinator:
    """Entry point that turns completion signals into status changes."""

    def __init__(
        self,
        store: TaskStore,
        executor: Optional[BaseExecutorTrigger] = None,
        *,
        history: Optional["CascadeHistory"] = None,
        executor_timeout: Optional[float] = DEFAULT_EXECUTOR_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._executor = executor
        self._history = history
        self._executor_timeout = executor_timeout
        self._engine = TransitionEngine(store, clock=clock)

    @property
    def store(self) -> TaskStore:
        return self._store

    @property
    def engine(self) -> TransitionEngine:
        return self._engine

    async def load_instance(self, instance_id: str) -> WorkflowInstance:
        """Read one consistent snapshot of the instance.

        Raises:
            InstanceNotFound: If the instance has no tasks.
        """
        tasks = await self._store.load_instance_tasks(instance_id)
        if not tasks:
            raise InstanceNotFound(instance_id)
        return WorkflowInstance(id=instance_id, tasks=tasks)

    # ------------------------------------------------------------------
    # Engine API
    async def on_task_completed(
        self, instance_id: str, completed_task_id: str
    ) -> CascadeResult:
        """Re-evaluate the instance after ``completed_task_id`` completed.

        The caller must already have moved the task to ``Completed``.

        Raises:
            InstanceNotFound: If the instance cannot be loaded.
            TaskNotFound: If the completed task is not part of the instance.
            InvalidTransition: If the task is not ``Completed`` yet.
        """
        instance = await self.load_instance(instance_id)
        origin = instance.get(completed_task_id)
        if origin is None:
            raise TaskNotFound(instance_id, completed_task_id)
        if origin.status != TaskStatus.COMPLETED:
            raise InvalidTransition(
                origin.status.value,
                TaskStatus.COMPLETED.value,
                "cascade origin must be completed by the caller first",
            )
        logger.info(f"Cascade for {instance_id} after task {completed_task_id} completed")
        return await self._cascade(instance, trigger_task_id=completed_task_id)

    async def refresh_instance(self, instance_id: str) -> CascadeResult:
        """Run the same sweep without an origin task.

        Picks up tasks left in ``Upcoming`` although their dependencies are
        met, including dependency-free tasks of a freshly provisioned instance.
        """
        instance = await self.load_instance(instance_id)
        logger.info(f"Refreshing task statuses for {instance_id}")
        return await self._cascade(instance, trigger_task_id=None)

    async def complete_task(self, instance_id: str, task_id: str) -> CascadeResult:
        """Mark ``task_id`` completed, then cascade from it.

        An ``Upcoming`` task may only be completed directly when its
        dependencies are satisfied.
        """
        instance = await self.load_instance(instance_id)
        task = instance.get(task_id)
        if task is None:
            raise TaskNotFound(instance_id, task_id)

        satisfied = True
        if task.status == TaskStatus.UPCOMING:
            satisfied = evaluate(instance, task).satisfied
        await self._engine.complete(task, dependencies_satisfied=satisfied)
        return await self.on_task_completed(instance_id, task_id)

    # ------------------------------------------------------------------
    async def _cascade(
        self, instance: WorkflowInstance, trigger_task_id: Optional[str]
    ) -> CascadeResult:
        result = CascadeResult(instance_id=instance.id, trigger_task_id=trigger_task_id)
        outcomes: dict[str, TaskOutcome] = {}
        tasks = list(instance.tasks)

        for _ in range(len(tasks) + 1):
            view = WorkflowInstance(id=instance.id, tasks=list(tasks))
            resolver = DependencyResolver(view)
            unlocked = False
            for index, task in enumerate(view.tasks):
                if task.status != TaskStatus.UPCOMING:
                    continue
                outcome, status = await self._process(view, resolver, task)
                outcomes[task.id] = outcome
                if status != task.status:
                    tasks[index] = task.model_copy(update={"status": status})
                    if dependency_met(tasks[index]):
                        unlocked = True
            if not unlocked:
                break

        result.outcomes = list(outcomes.values())
        logger.info(
            f"Cascade for {instance.id} done: {len(result.advanced)} advanced, "
            f"{len(result.triggered)} triggered, {len(result.blocked)} blocked, "
            f"{len(result.integrity_errors)} errors"
        )
        await self._record(result)
        return result

    async def _process(
        self, instance: WorkflowInstance, resolver: DependencyResolver, task: Task
    ) -> tuple[TaskOutcome, TaskStatus]:
        outcome = TaskOutcome(task_id=task.id)
        try:
            report = evaluate(instance, task, resolver)
        except (AmbiguousDependency, ValueError) as exc:
            logger.error(f"Integrity error for task {task.id}: {exc}")
            outcome.error = str(exc)
            return outcome, task.status

        outcome.unresolved = report.unresolved
        outcome.unmet = report.unmet
        if not report.satisfied:
            logger.debug(
                f"Task {task.id} stays Upcoming: unresolved={report.unresolved} "
                f"unmet={[dep.ref for dep in report.unmet]}"
            )
            return outcome, task.status

        try:
            transition = await self._engine.promote_to_actionable(task)
        except CascadeError as exc:
            outcome.error = str(exc)
            return outcome, task.status
        except Exception as exc:
            logger.error(f"Store write failed for task {task.id}: {exc}")
            outcome.error = f"store error: {exc}"
            return outcome, task.status

        outcome.transitioned = transition.changed
        if transition.changed and task.auto_executable:
            outcome.executor_triggered, outcome.warning = await self._trigger(
                instance.id, task.id
            )
        return outcome, transition.status

    async def _trigger(
        self, instance_id: str, task_id: str
    ) -> tuple[bool, Optional[str]]:
        """Hand the task to the executor once.

        A failed or timed-out call still counts as triggered; the task is not
        handed over again by later cascades.
        """
        if self._executor is None:
            logger.warning(f"No executor configured; task {task_id} left for manual start")
            return False, "no executor configured"

        call = self._executor.trigger_execution(instance_id, task_id)
        try:
            if self._executor_timeout:
                await asyncio.wait_for(call, timeout=self._executor_timeout)
            else:
                await call
        except asyncio.TimeoutError:
            failure = ExecutorTriggerFailed(
                task_id, f"timed out after {self._executor_timeout}s"
            )
        except ExecutorTriggerFailed as exc:
            failure = exc
        except Exception as exc:
            failure = ExecutorTriggerFailed(task_id, f"{type(exc).__name__}: {exc}")
        else:
            logger.info(f"Executor triggered for task {task_id} in {instance_id}")
            return True, None

        logger.warning(str(failure))
        return True, str(failure)

    async def _record(self, result: CascadeResult) -> None:
        if self._history is None:
            return
        try:
            await self._history.record(result)
        except Exception as exc:
            logger.error(f"Failed to record cascade history for {result.instance_id}: {exc}")
