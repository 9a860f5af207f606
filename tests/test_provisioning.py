import pytest

from taskcascade import CascadeCoordinator
from taskcascade.contracts import TaskStatus, TaskTemplate
from taskcascade.errors import TaskNotFound, TemplateCycleError, UnknownTemplate
from taskcascade.executors import InMemoryExecutorTrigger
from taskcascade.persistence import InMemoryTaskStore
from taskcascade.provisioning import (
    provision_instance,
    sync_task_with_template,
    task_id_for,
)
from taskcascade.templates import TemplateCatalog


def _catalog(**overrides):
    templates = {
        "1": dict(id="1", name="Collect loss runs", sort_order=1),
        "2": dict(id="2", name="Draft submission", dependencies=["1"], auto_executable=True, sort_order=2),
        "3": dict(id="3", name="Review quotes", dependencies=["2"], sort_order=3),
    }
    for template_id, fields in overrides.items():
        templates[template_id] = {**templates.get(template_id, {"id": template_id}), **fields}
    return TemplateCatalog(TaskTemplate(**fields) for fields in templates.values())


@pytest.mark.asyncio
async def test_provision_creates_upcoming_tasks():
    store = InMemoryTaskStore()
    instance = await provision_instance(store, _catalog(), "acme")

    assert [t.id for t in instance.tasks] == ["acme:1", "acme:2", "acme:3"]
    tasks = await store.load_instance_tasks("acme")
    assert all(t.status == TaskStatus.UPCOMING for t in tasks)
    assert tasks[1].dependencies == ["1"]
    assert tasks[1].auto_executable
    assert task_id_for("acme", "2") == "acme:2"


@pytest.mark.asyncio
async def test_provisioned_instance_cascades_through_template_references():
    store = InMemoryTaskStore()
    executor = InMemoryExecutorTrigger()
    coordinator = CascadeCoordinator(store, executor)
    await provision_instance(store, _catalog(), "acme")

    refresh = await coordinator.refresh_instance("acme")
    assert [o.task_id for o in refresh.advanced] == ["acme:1"]

    await coordinator.complete_task("acme", "acme:1")
    statuses = {t.id: t.status for t in await store.load_instance_tasks("acme")}
    assert statuses == {
        "acme:1": TaskStatus.COMPLETED,
        "acme:2": TaskStatus.ACTIONABLE,
        "acme:3": TaskStatus.ACTIONABLE,
    }
    assert executor.triggered_task_ids() == ["acme:2"]


@pytest.mark.asyncio
async def test_provision_subset_drops_missing_dependencies():
    store = InMemoryTaskStore()
    instance = await provision_instance(store, _catalog(), "acme", template_ids=["3", "2"])

    assert [t.template_id for t in instance.tasks] == ["2", "3"]
    assert instance.get("acme:2").dependencies == []
    assert instance.get("acme:3").dependencies == ["2"]


@pytest.mark.asyncio
async def test_provision_rejects_bad_input():
    store = InMemoryTaskStore()
    await provision_instance(store, _catalog(), "acme")

    with pytest.raises(ValueError):
        await provision_instance(store, _catalog(), "acme")
    with pytest.raises(ValueError):
        await provision_instance(store, _catalog(), "other", template_ids=[])
    with pytest.raises(UnknownTemplate):
        await provision_instance(store, _catalog(), "other", template_ids=["9"])
    with pytest.raises(TemplateCycleError):
        await provision_instance(store, _catalog(**{"1": {"dependencies": ["3"]}}), "cyclic")
    assert await store.list_instances() == ["acme"]


@pytest.mark.asyncio
async def test_sync_updates_definition_but_not_status():
    store = InMemoryTaskStore()
    coordinator = CascadeCoordinator(store)
    await provision_instance(store, _catalog(), "acme")
    await coordinator.refresh_instance("acme")

    changed = _catalog(**{"1": {"name": "Collect five years of loss runs", "auto_executable": True}})
    result = await sync_task_with_template(store, changed, "acme", "acme:1")
    assert result.synced
    assert sorted(result.updated_fields) == ["auto_executable", "name"]

    task = await store.get_task("acme", "acme:1")
    assert task.name == "Collect five years of loss runs"
    assert task.auto_executable
    assert task.status == TaskStatus.ACTIONABLE

    again = await sync_task_with_template(store, changed, "acme", "acme:1")
    assert not again.synced
    assert again.skipped_reason == "task already up to date"


@pytest.mark.asyncio
async def test_sync_edge_cases():
    store = InMemoryTaskStore()
    await provision_instance(store, _catalog(), "acme")

    with pytest.raises(TaskNotFound):
        await sync_task_with_template(store, _catalog(), "acme", "acme:9")
    with pytest.raises(ValueError):
        await sync_task_with_template(store, _catalog(), "acme", "acme:1", fields=["status"])

    partial = TemplateCatalog([TaskTemplate(id="2", name="Draft submission")])
    result = await sync_task_with_template(store, partial, "acme", "acme:1")
    assert not result.synced
    assert "not found" in result.skipped_reason


@pytest.mark.asyncio
async def test_provision_ignores_repeated_template_ids():
    store = InMemoryTaskStore()
    instance = await provision_instance(store, _catalog(), "acme", template_ids=["1", "1", 2])

    assert [t.id for t in instance.tasks] == ["acme:1", "acme:2"]
    assert len(await store.load_instance_tasks("acme")) == 2
