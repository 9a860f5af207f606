"""PostgreSQL implementation of the task store."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import asyncpg

from ..contracts import Task, TaskStatus, status_labels
from .store import TaskStore

_COLUMNS = (
    "instance_id, task_id, template_id, name, dependencies, status, "
    "auto_executable, sort_order, updated_at"
)


class PostgresTaskStore(TaskStore):
    """Persist task records using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                instance_id TEXT NOT NULL,
                task_id TEXT NOT NULL,
                template_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                dependencies JSONB NOT NULL,
                status TEXT NOT NULL,
                auto_executable BOOLEAN NOT NULL DEFAULT FALSE,
                sort_order INTEGER NOT NULL DEFAULT 0,
                updated_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (instance_id, task_id)
            )
            """
        )

    @staticmethod
    def _row_to_task(row: Any) -> Task:
        dependencies = row["dependencies"]
        if isinstance(dependencies, str):
            dependencies = json.loads(dependencies)
        return Task(
            id=row["task_id"],
            template_id=row["template_id"],
            workflow_instance_id=row["instance_id"],
            name=row["name"],
            dependencies=dependencies,
            status=row["status"],
            auto_executable=row["auto_executable"],
            sort_order=row["sort_order"],
            updated_at=row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def load_instance_tasks(self, instance_id: str) -> list[Task]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM tasks WHERE instance_id = $1 ORDER BY sort_order, task_id",
                instance_id,
            )
        finally:
            await conn.close()
        return [self._row_to_task(r) for r in rows]

    async def get_task(self, instance_id: str, task_id: str) -> Task | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM tasks WHERE instance_id = $1 AND task_id = $2",
                instance_id,
                task_id,
            )
        finally:
            await conn.close()
        return self._row_to_task(row) if row else None

    async def compare_and_set_status(
        self,
        instance_id: str,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        timestamp: datetime,
    ) -> bool:
        conn = await self._connect()
        try:
            result = await conn.execute(
                """
                UPDATE tasks
                SET status = $1, updated_at = GREATEST(updated_at, $2)
                WHERE instance_id = $3 AND task_id = $4
                  AND lower(btrim(status)) = ANY($5::text[])
                """,
                new.value,
                timestamp,
                instance_id,
                task_id,
                status_labels(expected),
            )
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return result.split()[-1] == "1"

    async def create_tasks(self, instance_id: str, tasks: list[Task]) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.executemany(
                    f"INSERT INTO tasks ({_COLUMNS}) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)",
                    [
                        (
                            instance_id,
                            task.id,
                            task.template_id,
                            task.name,
                            json.dumps(task.dependencies),
                            task.status.value,
                            task.auto_executable,
                            task.sort_order,
                            task.updated_at,
                        )
                        for task in tasks
                    ],
                )
        except asyncpg.UniqueViolationError as exc:
            raise ValueError(f"Task already exists in {instance_id}: {exc}") from exc
        finally:
            await conn.close()

    async def update_task_definition(
        self, instance_id: str, task_id: str, fields: dict[str, Any]
    ) -> None:
        if "status" in fields or "updated_at" in fields:
            raise ValueError("Task status is only written through compare_and_set_status")
        allowed = {"name", "template_id", "dependencies", "auto_executable", "sort_order"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        if not fields:
            return
        keys = list(fields)
        values = [
            json.dumps(list(fields[k])) if k == "dependencies" else fields[k] for k in keys
        ]
        assignments = ", ".join(f"{key} = ${i}" for i, key in enumerate(keys, start=1))
        n = len(keys)
        conn = await self._connect()
        try:
            await conn.execute(
                f"UPDATE tasks SET {assignments} WHERE instance_id = ${n + 1} AND task_id = ${n + 2}",
                *values,
                instance_id,
                task_id,
            )
        finally:
            await conn.close()

    async def list_instances(self) -> list[str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT DISTINCT instance_id FROM tasks ORDER BY instance_id"
            )
        finally:
            await conn.close()
        return [r["instance_id"] for r in rows]
