from __future__ import annotations

import abc


class BaseExecutorTrigger(metaclass=abc.ABCMeta):
    """Abstract hand-off point to an automated task executor.

    Triggering is fire-and-forget: implementations return once the executor
    has accepted the task, not when the task's work is done.
    """

    async def connect(self) -> None:
        """Open connection to the executor (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the executor (no-op by default)."""
        pass

    @abc.abstractmethod
    async def trigger_execution(self, instance_id: str, task_id: str) -> None:
        """Ask the executor to run ``task_id``.

        Raises:
            ExecutorTriggerFailed: If the executor did not accept the task.
        """
        raise NotImplementedError
