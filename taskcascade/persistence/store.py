"""Store abstraction for task records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..contracts import Task, TaskStatus


class TaskStore(Protocol):
    """Protocol for task persistence backends.

    ``compare_and_set_status`` must be atomic for a single task record.
    """

    async def load_instance_tasks(self, instance_id: str) -> list[Task]:
        """Return every task of the instance, ordered by sort order."""

    async def get_task(self, instance_id: str, task_id: str) -> Task | None:
        """Retrieve a single task."""

    async def compare_and_set_status(
        self,
        instance_id: str,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        timestamp: datetime,
    ) -> bool:
        """Set ``status`` to ``new`` only if it currently equals ``expected``."""

    async def create_tasks(self, instance_id: str, tasks: list[Task]) -> None:
        """Persist the tasks of a newly provisioned instance."""

    async def update_task_definition(
        self, instance_id: str, task_id: str, fields: dict[str, Any]
    ) -> None:
        """Update non-status fields of a task."""

    async def list_instances(self) -> list[str]:
        """Return the ids of all known instances."""
