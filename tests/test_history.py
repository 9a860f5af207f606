import pytest

from taskcascade import CascadeCoordinator
from taskcascade.contracts import CascadeResult, Task, TaskOutcome
from taskcascade.db import CascadeHistory
from taskcascade.executors import InMemoryExecutorTrigger
from taskcascade.persistence import InMemoryTaskStore


@pytest.mark.asyncio
async def test_history_records_runs_and_outcomes(tmp_path):
    history = CascadeHistory(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    await history.init_db()

    result = CascadeResult(
        instance_id="wf-1",
        trigger_task_id="T1",
        outcomes=[
            TaskOutcome(task_id="T2", transitioned=True, executor_triggered=True),
            TaskOutcome(task_id="T3", unresolved=["ghost"]),
            TaskOutcome(task_id="T4", error="ambiguous"),
        ],
    )
    run = await history.record(result)
    assert run.advanced == 1
    assert run.triggered == 1
    assert run.errors == 1

    runs = await history.list_runs("wf-1")
    assert [r.id for r in runs] == [run.id]
    assert await history.list_runs("wf-404") == []

    outcomes = await history.outcomes(run.id)
    assert [o.task_id for o in outcomes] == ["T2", "T3", "T4"]
    assert outcomes[1].unresolved == ["ghost"]
    assert outcomes[2].error == "ambiguous"
    await history.close()


@pytest.mark.asyncio
async def test_coordinator_writes_history(tmp_path):
    history = CascadeHistory(f"sqlite+aiosqlite:///{tmp_path / 'history.db'}")
    await history.init_db()
    store = InMemoryTaskStore()
    await store.create_tasks(
        "wf-1",
        [
            Task(id="T1", template_id="a", workflow_instance_id="wf-1", status="Completed"),
            Task(
                id="T2",
                template_id="b",
                workflow_instance_id="wf-1",
                dependencies=["a"],
                auto_executable=True,
            ),
        ],
    )
    coordinator = CascadeCoordinator(store, InMemoryExecutorTrigger(), history=history)

    await coordinator.on_task_completed("wf-1", "T1")
    await coordinator.refresh_instance("wf-1")

    runs = await history.list_runs("wf-1")
    assert [r.trigger_task_id for r in runs] == ["T1", None]
    assert runs[0].advanced == 1
    assert runs[1].advanced == 0
    await history.close()


@pytest.mark.asyncio
async def test_history_failure_does_not_break_cascade(tmp_path):
    history = CascadeHistory(f"sqlite+aiosqlite:///{tmp_path / 'never-initialized.db'}")
    store = InMemoryTaskStore()
    await store.create_tasks(
        "wf-1", [Task(id="T1", template_id="a", workflow_instance_id="wf-1")]
    )
    coordinator = CascadeCoordinator(store, history=history)

    result = await coordinator.refresh_instance("wf-1")
    assert [o.task_id for o in result.advanced] == ["T1"]
    await history.close()
