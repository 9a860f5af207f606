"""In-memory executor trigger for testing."""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Tuple

from ..errors import ExecutorTriggerFailed
from .base import BaseExecutorTrigger


class InMemoryExecutorTrigger(BaseExecutorTrigger):
    """Records every trigger in process; optionally fails for given task ids."""

    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.triggered: List[Tuple[str, str]] = []
        self._fail_for = set(fail_for)
        self._lock = asyncio.Lock()

    async def trigger_execution(self, instance_id: str, task_id: str) -> None:
        async with self._lock:
            self.triggered.append((instance_id, task_id))
        if task_id in self._fail_for:
            raise ExecutorTriggerFailed(task_id, "executor rejected the task")

    def triggered_task_ids(self) -> list[str]:
        return [task_id for _, task_id in self.triggered]
