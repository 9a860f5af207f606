from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import SQLModel, select

from ..contracts import CascadeResult
from .models import CascadeOutcomeRecord, CascadeRun


class CascadeHistory:
    """Async audit trail of cascade runs and their per-task outcomes."""

    def __init__(self, database_url: str) -> None:
        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with AsyncSession(self.engine, expire_on_commit=False) as session:
            yield session

    async def record(self, result: CascadeResult) -> CascadeRun:
        run = CascadeRun(
            instance_id=result.instance_id,
            trigger_task_id=result.trigger_task_id,
            started_at=result.started_at,
            advanced=len(result.advanced),
            triggered=len(result.triggered),
            errors=len(result.integrity_errors),
        )
        async with self.session() as session:
            session.add(run)
            for position, outcome in enumerate(result.outcomes):
                session.add(
                    CascadeOutcomeRecord(
                        run_id=run.id,
                        position=position,
                        task_id=outcome.task_id,
                        transitioned=outcome.transitioned,
                        executor_triggered=outcome.executor_triggered,
                        unresolved=list(outcome.unresolved),
                        unmet=[dep.model_dump(mode="json") for dep in outcome.unmet],
                        error=outcome.error,
                        warning=outcome.warning,
                    )
                )
            await session.commit()
        return run

    async def list_runs(self, instance_id: str) -> list[CascadeRun]:
        async with self.session() as session:
            rows = await session.execute(
                select(CascadeRun)
                .where(CascadeRun.instance_id == instance_id)
                .order_by(CascadeRun.started_at)
            )
            return list(rows.scalars().all())

    async def outcomes(self, run_id: UUID) -> list[CascadeOutcomeRecord]:
        async with self.session() as session:
            rows = await session.execute(
                select(CascadeOutcomeRecord)
                .where(CascadeOutcomeRecord.run_id == run_id)
                .order_by(CascadeOutcomeRecord.position)
            )
            return list(rows.scalars().all())
