import asyncio

import pytest

from taskcascade import CascadeCoordinator
from taskcascade.contracts import TaskStatus, TaskTemplate
from taskcascade.executors import InMemoryExecutorTrigger
from taskcascade.persistence import SQLiteTaskStore, get_store
from taskcascade.provisioning import provision_instance
from taskcascade.templates import TemplateCatalog


def _renewal_catalog():
    return TemplateCatalog(
        [
            TaskTemplate(id="1", name="Collect loss runs", sort_order=1),
            TaskTemplate(id="2", name="Collect exposures", sort_order=2),
            TaskTemplate(
                id="3",
                name="Draft submission email",
                dependencies=["1", "2"],
                auto_executable=True,
                sort_order=3,
            ),
            TaskTemplate(
                id="4",
                name="Send submission",
                dependencies=["3"],
                auto_executable=True,
                sort_order=4,
            ),
            TaskTemplate(id="5", name="Review quotes", dependencies=["4"], sort_order=5),
        ]
    )


async def _statuses(store, instance_id):
    return {t.template_id: t.status for t in await store.load_instance_tasks(instance_id)}


@pytest.mark.asyncio
async def test_renewal_workflow_on_sqlite(tmp_path):
    store = SQLiteTaskStore(tmp_path / "tasks.db")
    executor = InMemoryExecutorTrigger()
    coordinator = CascadeCoordinator(store, executor)

    await provision_instance(store, _renewal_catalog(), "acme")
    await coordinator.refresh_instance("acme")
    assert await _statuses(store, "acme") == {
        "1": TaskStatus.ACTIONABLE,
        "2": TaskStatus.ACTIONABLE,
        "3": TaskStatus.UPCOMING,
        "4": TaskStatus.UPCOMING,
        "5": TaskStatus.UPCOMING,
    }

    await coordinator.complete_task("acme", "acme:1")
    assert (await _statuses(store, "acme"))["3"] == TaskStatus.UPCOMING

    result = await coordinator.complete_task("acme", "acme:2")
    assert await _statuses(store, "acme") == {
        "1": TaskStatus.COMPLETED,
        "2": TaskStatus.COMPLETED,
        "3": TaskStatus.ACTIONABLE,
        "4": TaskStatus.ACTIONABLE,
        "5": TaskStatus.ACTIONABLE,
    }
    assert executor.triggered_task_ids() == ["acme:3", "acme:4"]
    assert len(result.advanced) == 3


@pytest.mark.asyncio
async def test_concurrent_completions_on_sqlite(tmp_path):
    store = SQLiteTaskStore(tmp_path / "tasks.db")
    executor = InMemoryExecutorTrigger()
    coordinator = CascadeCoordinator(store, executor)
    await provision_instance(store, _renewal_catalog(), "acme")
    await coordinator.refresh_instance("acme")

    engine = coordinator.engine
    for task_id in ("acme:1", "acme:2"):
        await engine.complete(await store.get_task("acme", task_id), dependencies_satisfied=True)

    results = await asyncio.gather(
        coordinator.on_task_completed("acme", "acme:1"),
        coordinator.on_task_completed("acme", "acme:2"),
        coordinator.on_task_completed("acme", "acme:2"),
    )

    assert sorted(executor.triggered_task_ids()) == ["acme:3", "acme:4"]
    assert all(r.integrity_errors == [] for r in results)
    assert (await _statuses(store, "acme"))["5"] == TaskStatus.ACTIONABLE


def test_get_store_selects_sqlite(tmp_path):
    store = get_store(f"sqlite://{tmp_path / 'tasks.db'}")
    assert isinstance(store, SQLiteTaskStore)
    assert get_store() is store


@pytest.mark.asyncio
async def test_cascade_over_legacy_status_labels(tmp_path):
    store = SQLiteTaskStore(tmp_path / "tasks.db")
    coordinator = CascadeCoordinator(store, InMemoryExecutorTrigger())
    await provision_instance(store, _renewal_catalog(), "acme")
    store._execute("UPDATE tasks SET status = ? WHERE task_id = ?", "Needs attention", "acme:1")
    store._execute("UPDATE tasks SET status = ? WHERE task_id = ?", "Complete", "acme:2")

    result = await coordinator.complete_task("acme", "acme:1")
    assert result.integrity_errors == []
    statuses = await _statuses(store, "acme")
    assert statuses["1"] == TaskStatus.COMPLETED
    assert statuses["3"] == TaskStatus.ACTIONABLE

    store._execute("UPDATE tasks SET status = ? WHERE task_id = ?", "upcoming", "acme:5")
    store._execute("UPDATE tasks SET status = ? WHERE task_id = ?", "completed", "acme:4")
    refresh = await coordinator.refresh_instance("acme")
    assert [o.task_id for o in refresh.advanced] == ["acme:5"]
    assert (await _statuses(store, "acme"))["5"] == TaskStatus.ACTIONABLE


def test_get_store_rejects_unknown_urls():
    with pytest.raises(ValueError):
        get_store("mysql://localhost/tasks")
