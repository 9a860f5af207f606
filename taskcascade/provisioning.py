"""Create workflow instances from templates and keep tasks in sync with them."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pydantic import BaseModel, Field

from .constants import SYNCABLE_FIELDS
from .contracts import Task, TaskStatus, WorkflowInstance, utcnow
from .errors import TaskNotFound, UnknownTemplate
from .persistence.store import TaskStore
from .templates import TemplateCatalog

logger = logging.getLogger(__name__)


class TemplateSyncResult(BaseModel):
    synced: bool
    updated_fields: List[str] = Field(default_factory=list)
    skipped_reason: Optional[str] = None


def task_id_for(instance_id: str, template_id: str) -> str:
    return f"{instance_id}:{template_id}"


async def provision_instance(
    store: TaskStore,
    catalog: TemplateCatalog,
    instance_id: str,
    template_ids: Optional[Iterable[str]] = None,
    clock: Callable[[], datetime] = utcnow,
) -> WorkflowInstance:
    """Create one ``Upcoming`` task per applicable template.

    Dependencies are copied as template references; references to templates
    that are not instantiated in this instance are dropped.

    Raises:
        ValueError: If the instance already exists or is given no templates.
        UnknownTemplate: If ``template_ids`` names a missing template.
        TemplateCycleError: If the catalog is cyclic.
    """
    catalog.validate()
    if await store.load_instance_tasks(instance_id):
        raise ValueError(f"Workflow instance already exists: {instance_id}")

    if template_ids is None:
        selected = list(catalog)
    else:
        selected = []
        seen: set[str] = set()
        for template_id in template_ids:
            if str(template_id) in seen:
                continue
            seen.add(str(template_id))
            template = catalog.get(template_id)
            if template is None:
                raise UnknownTemplate(str(template_id))
            selected.append(template)
        selected.sort(key=lambda t: t.sort_order)
    if not selected:
        raise ValueError("Cannot provision an instance without templates")

    applicable = {template.id for template in selected}
    now = clock()
    tasks = []
    for template in selected:
        dropped = [d for d in template.dependencies if d not in applicable]
        if dropped:
            logger.info(
                f"Template {template.id} dependencies {dropped} not provisioned in {instance_id}"
            )
        tasks.append(
            Task(
                id=task_id_for(instance_id, template.id),
                template_id=template.id,
                workflow_instance_id=instance_id,
                name=template.name,
                dependencies=[d for d in template.dependencies if d in applicable],
                status=TaskStatus.UPCOMING,
                auto_executable=template.auto_executable,
                sort_order=template.sort_order,
                updated_at=now,
            )
        )

    await store.create_tasks(instance_id, tasks)
    logger.info(f"Provisioned {instance_id} with {len(tasks)} tasks")
    return WorkflowInstance(id=instance_id, tasks=tasks)


async def sync_task_with_template(
    store: TaskStore,
    catalog: TemplateCatalog,
    instance_id: str,
    task_id: str,
    fields: Optional[Iterable[str]] = None,
) -> TemplateSyncResult:
    """Copy definition fields from a task's template onto the task.

    Only ``SYNCABLE_FIELDS`` are touched; status is never changed.
    """
    task = await store.get_task(instance_id, task_id)
    if task is None:
        raise TaskNotFound(instance_id, task_id)
    template = catalog.get(task.template_id)
    if template is None:
        return TemplateSyncResult(
            synced=False, skipped_reason=f"template {task.template_id} not found"
        )

    requested = list(fields) if fields is not None else list(SYNCABLE_FIELDS)
    unknown = [f for f in requested if f not in SYNCABLE_FIELDS]
    if unknown:
        raise ValueError(f"Fields cannot be synced: {', '.join(unknown)}")

    updates = {}
    for field in requested:
        template_value = getattr(template, field)
        if getattr(task, field) != template_value:
            updates[field] = template_value
    if not updates:
        return TemplateSyncResult(synced=False, skipped_reason="task already up to date")

    await store.update_task_definition(instance_id, task_id, updates)
    logger.info(f"Synced task {task_id} with template {template.id}: {sorted(updates)}")
    return TemplateSyncResult(synced=True, updated_fields=list(updates))
