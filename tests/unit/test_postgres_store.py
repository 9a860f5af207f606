import os
import uuid
from datetime import datetime, timezone

import pytest

from taskcascade.contracts import Task, TaskStatus
from taskcascade.persistence import PostgresTaskStore


def _get_dsn() -> str | None:
    return os.getenv("TASKCASCADE_TEST_POSTGRES_DSN")


async def _connected_store() -> PostgresTaskStore:
    dsn = _get_dsn()
    if not dsn or PostgresTaskStore is None:
        pytest.skip("PostgreSQL server not configured")
    try:
        store = PostgresTaskStore(dsn)
        conn = await store._connect()
        await conn.close()
    except Exception:
        pytest.skip("PostgreSQL server not available")
    return store


def _task(instance_id, task_id, deps=()):
    return Task(
        id=task_id,
        template_id=f"tpl-{task_id}",
        workflow_instance_id=instance_id,
        name=f"Task {task_id}",
        dependencies=list(deps),
    )


@pytest.mark.asyncio
async def test_postgres_store_crud():
    store = await _connected_store()
    instance_id = f"wf-{uuid.uuid4()}"

    await store.create_tasks(instance_id, [_task(instance_id, "T1"), _task(instance_id, "T2", ["T1"])])
    tasks = await store.load_instance_tasks(instance_id)
    assert {t.id for t in tasks} == {"T1", "T2"}
    assert (await store.get_task(instance_id, "T2")).dependencies == ["T1"]
    assert instance_id in await store.list_instances()

    await store.update_task_definition(instance_id, "T2", {"name": "Renamed"})
    assert (await store.get_task(instance_id, "T2")).name == "Renamed"

    with pytest.raises(ValueError):
        await store.create_tasks(instance_id, [_task(instance_id, "T1")])


@pytest.mark.asyncio
async def test_postgres_compare_and_set_status():
    store = await _connected_store()
    instance_id = f"wf-{uuid.uuid4()}"
    await store.create_tasks(instance_id, [_task(instance_id, "T1")])
    now = datetime.now(timezone.utc)

    assert await store.compare_and_set_status(
        instance_id, "T1", TaskStatus.UPCOMING, TaskStatus.ACTIONABLE, now
    )
    assert not await store.compare_and_set_status(
        instance_id, "T1", TaskStatus.UPCOMING, TaskStatus.ACTIONABLE, now
    )
    assert (await store.get_task(instance_id, "T1")).status == TaskStatus.ACTIONABLE
