"""In-memory implementation of the task store."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict

from ..contracts import Task, TaskStatus
from .store import TaskStore


class InMemoryTaskStore(TaskStore):
    """Store task records in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._instances: Dict[str, Dict[str, Task]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def load_instance_tasks(self, instance_id: str) -> list[Task]:
        async with self._lock:
            tasks = self._instances.get(instance_id, {})
            snapshot = [task.model_copy(deep=True) for task in tasks.values()]
        return sorted(snapshot, key=lambda t: t.sort_order)

    async def get_task(self, instance_id: str, task_id: str) -> Task | None:
        async with self._lock:
            task = self._instances.get(instance_id, {}).get(task_id)
            return task.model_copy(deep=True) if task else None

    async def compare_and_set_status(
        self,
        instance_id: str,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        timestamp: datetime,
    ) -> bool:
        async with self._lock:
            tasks = self._instances.get(instance_id, {})
            task = tasks.get(task_id)
            if task is None or task.status != expected:
                return False
            tasks[task_id] = task.model_copy(
                update={"status": new, "updated_at": max(timestamp, task.updated_at)}
            )
            return True

    async def create_tasks(self, instance_id: str, tasks: list[Task]) -> None:
        async with self._lock:
            existing = self._instances.get(instance_id, {})
            batch: set[str] = set()
            for task in tasks:
                if task.id in existing or task.id in batch:
                    raise ValueError(f"Task {task.id} already exists in {instance_id}")
                batch.add(task.id)
            for task in tasks:
                existing[task.id] = task.model_copy(deep=True)
            self._instances[instance_id] = existing

    async def update_task_definition(
        self, instance_id: str, task_id: str, fields: dict[str, Any]
    ) -> None:
        if "status" in fields or "updated_at" in fields:
            raise ValueError("Task status is only written through compare_and_set_status")
        async with self._lock:
            tasks = self._instances.get(instance_id, {})
            task = tasks.get(task_id)
            if task is None:
                return
            tasks[task_id] = Task.model_validate({**task.model_dump(), **fields})

    async def list_instances(self) -> list[str]:
        async with self._lock:
            return list(self._instances)
