"""Redis executor trigger for cross-process automation workers."""

from __future__ import annotations

import json
from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..constants import DEFAULT_REDIS_QUEUE
from ..contracts import utcnow
from ..errors import ExecutorTriggerFailed
from .base import BaseExecutorTrigger


class RedisExecutorTrigger(BaseExecutorTrigger):
    """Push execution requests onto a Redis list consumed by automation workers."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        queue: str = DEFAULT_REDIS_QUEUE,
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisExecutorTrigger")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.queue = queue
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def trigger_execution(self, instance_id: str, task_id: str) -> None:
        """Enqueue the task; workers pop from the other end of the list."""
        payload = json.dumps(
            {
                "taskId": task_id,
                "instanceId": instance_id,
                "requestedAt": utcnow().isoformat(),
            }
        )
        try:
            if not self._redis:
                await self.connect()
            await self._redis.lpush(self.queue, payload)
        except redis.RedisError as exc:
            raise ExecutorTriggerFailed(task_id, str(exc)) from exc
