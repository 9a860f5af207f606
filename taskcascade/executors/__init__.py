"""Executor trigger factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CascadeConfig, load_config
from .base import BaseExecutorTrigger
from .inmemory import InMemoryExecutorTrigger


def get_executor(
    backend: Optional[str] = None, config: Optional[CascadeConfig] = None
) -> BaseExecutorTrigger:
    """Factory function to get the configured executor trigger."""

    config = config or load_config()
    executor_conf = config.executor
    backend = (
        backend
        or os.getenv("TASKCASCADE_EXECUTOR")
        or executor_conf.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryExecutorTrigger()
    elif backend == "http":
        from .http import HttpExecutorTrigger

        return HttpExecutorTrigger(
            url=executor_conf.http.url or "",
            timeout=executor_conf.timeout,
            max_retries=executor_conf.max_retries,
            headers=executor_conf.http.headers,
        )
    elif backend == "redis":
        from .redis import RedisExecutorTrigger

        redis_conf = executor_conf.redis
        return RedisExecutorTrigger(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            queue=redis_conf.queue,
        )
    else:
        raise ValueError(f"Unsupported executor backend: {backend}")


__all__ = ["BaseExecutorTrigger", "InMemoryExecutorTrigger", "get_executor"]
