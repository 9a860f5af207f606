"""SQLite implementation of the task store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..contracts import Task, TaskStatus, status_labels
from .store import TaskStore

_COLUMNS = (
    "instance_id, task_id, template_id, name, dependencies, status, "
    "auto_executable, sort_order, updated_at"
)


class SQLiteTaskStore(TaskStore):
    """Persist task records using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS tasks (
                instance_id TEXT NOT NULL,
                task_id TEXT NOT NULL,
                template_id TEXT NOT NULL,
                name TEXT NOT NULL DEFAULT '',
                dependencies TEXT NOT NULL,
                status TEXT NOT NULL,
                auto_executable INTEGER NOT NULL DEFAULT 0,
                sort_order INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (instance_id, task_id)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
            return cur.rowcount

    def _executemany(self, query: str, rows: list[tuple]) -> None:
        with self._lock:
            try:
                self._conn.executemany(query, rows)
            except sqlite3.Error:
                self._conn.rollback()
                raise
            self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["task_id"],
            template_id=row["template_id"],
            workflow_instance_id=row["instance_id"],
            name=row["name"],
            dependencies=json.loads(row["dependencies"]),
            status=row["status"],
            auto_executable=bool(row["auto_executable"]),
            sort_order=row["sort_order"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Store API
    async def load_instance_tasks(self, instance_id: str) -> list[Task]:
        rows = await asyncio.to_thread(
            self._fetchall,
            f"SELECT {_COLUMNS} FROM tasks WHERE instance_id = ? ORDER BY sort_order, rowid",
            instance_id,
        )
        return [self._row_to_task(r) for r in rows]

    async def get_task(self, instance_id: str, task_id: str) -> Task | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {_COLUMNS} FROM tasks WHERE instance_id = ? AND task_id = ?",
            instance_id,
            task_id,
        )
        return self._row_to_task(row) if row else None

    async def compare_and_set_status(
        self,
        instance_id: str,
        task_id: str,
        expected: TaskStatus,
        new: TaskStatus,
        timestamp: datetime,
    ) -> bool:
        # Rows written by older clients may still carry a legacy label.
        labels = status_labels(expected)
        placeholders = ", ".join("?" for _ in labels)
        updated = await asyncio.to_thread(
            self._execute,
            f"""
            UPDATE tasks
            SET status = ?, updated_at = MAX(updated_at, ?)
            WHERE instance_id = ? AND task_id = ?
              AND lower(trim(status)) IN ({placeholders})
            """,
            new.value,
            timestamp.astimezone(timezone.utc).isoformat(timespec="microseconds"),
            instance_id,
            task_id,
            *labels,
        )
        return updated == 1

    async def create_tasks(self, instance_id: str, tasks: list[Task]) -> None:
        rows = [
            (
                instance_id,
                task.id,
                task.template_id,
                task.name,
                json.dumps(task.dependencies),
                task.status.value,
                int(task.auto_executable),
                task.sort_order,
                task.updated_at.isoformat(timespec="microseconds"),
            )
            for task in tasks
        ]
        try:
            await asyncio.to_thread(
                self._executemany,
                f"INSERT INTO tasks ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Task already exists in {instance_id}: {exc}") from exc

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
        values = []
        for key, value in fields.items():
            if key == "dependencies":
                value = json.dumps(list(value))
            elif key == "auto_executable":
                value = int(bool(value))
            values.append(value)
        assignments = ", ".join(f"{key} = ?" for key in fields)
        await asyncio.to_thread(
            self._execute,
            f"UPDATE tasks SET {assignments} WHERE instance_id = ? AND task_id = ?",
            *values,
            instance_id,
            task_id,
        )

    async def list_instances(self) -> list[str]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT DISTINCT instance_id FROM tasks ORDER BY instance_id",
        )
        return [r["instance_id"] for r in rows]
