"""HTTP executor trigger: posts the task to an automation endpoint."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from ..constants import DEFAULT_EXECUTOR_RETRIES, DEFAULT_EXECUTOR_TIMEOUT
from ..errors import ExecutorTriggerFailed
from ..utils.retry import schedule_retry
from .base import BaseExecutorTrigger

logger = logging.getLogger(__name__)


class HttpExecutorTrigger(BaseExecutorTrigger):
    """POST ``{"taskId", "instanceId"}`` to an endpoint that queues the work.

    Connection errors and 5xx responses are retried with backoff up to
    ``max_retries`` times; 4xx responses fail immediately.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_EXECUTOR_TIMEOUT,
        max_retries: int = DEFAULT_EXECUTOR_RETRIES,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not url:
            raise ValueError("HttpExecutorTrigger requires an endpoint url")
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = headers or {}
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
            self._owns_client = True

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def trigger_execution(self, instance_id: str, task_id: str) -> None:
        if self._client is None:
            await self.connect()

        last_error = "no attempt made"
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.post(
                    self.url, json={"taskId": task_id, "instanceId": instance_id}
                )
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if response.is_success:
                    logger.info(f"Executor accepted task {task_id} ({response.status_code})")
                    return
                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                if response.status_code < 500:
                    break

            logger.warning(
                f"Executor trigger attempt {attempt + 1}/{self.max_retries + 1} "
                f"for task {task_id} failed: {last_error}"
            )
            if attempt < self.max_retries:
                await schedule_retry(attempt)

        raise ExecutorTriggerFailed(task_id, last_error)
