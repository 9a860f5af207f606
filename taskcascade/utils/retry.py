from __future__ import annotations

import asyncio
import random


def compute_backoff(
    attempt: int, base: float = 0.5, factor: float = 2.0, jitter: float = 0.1
) -> float:
    """Exponential backoff for ``attempt`` (0-based): 0.5s, 1s, 2s, ... plus jitter."""
    delay = base * factor ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 0.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base)
    await asyncio.sleep(delay)
