"""Task stores: in-memory, SQLite and PostgreSQL backends."""

from __future__ import annotations

import os
from typing import Optional

from ..config import CascadeConfig, load_config
from .inmemory import InMemoryTaskStore
from .sqlite import SQLiteTaskStore
from .store import TaskStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresTaskStore
except Exception:  # pragma: no cover - optional dependency
    PostgresTaskStore = None  # type: ignore

_store_instance: TaskStore | None = None


def _store_for_url(database_url: str) -> TaskStore:
    if database_url.startswith("sqlite://"):
        return SQLiteTaskStore(database_url[len("sqlite://"):])
    if database_url.startswith(("postgres://", "postgresql://")):
        if PostgresTaskStore is None:
            raise RuntimeError("asyncpg is required for PostgreSQL task stores")
        return PostgresTaskStore(database_url)
    raise ValueError(f"Unsupported task store url: {database_url}")


def get_store(
    database_url: Optional[str] = None, config: Optional[CascadeConfig] = None
) -> TaskStore:
    """Return the process-wide task store.

    With no arguments the cached store is reused. Otherwise the url is taken
    from ``database_url``, ``TASKCASCADE_DATABASE_URL``/``DATABASE_URL`` or
    ``config.database_url``, in that order. ``sqlite://<path>`` and
    ``postgres(ql)://`` urls select a database; no url keeps tasks in memory.
    """
    global _store_instance
    if database_url is None and config is None and _store_instance is not None:
        return _store_instance

    url = (
        database_url
        or os.getenv("TASKCASCADE_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or (config or load_config()).database_url
    )
    _store_instance = _store_for_url(url) if url else InMemoryTaskStore()
    return _store_instance


__all__ = [
    "TaskStore",
    "InMemoryTaskStore",
    "SQLiteTaskStore",
    "PostgresTaskStore",
    "get_store",
]
