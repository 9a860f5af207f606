"""Core data contracts for the taskcascade engine."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    """Lifecycle of a task: Upcoming -> Actionable -> Completed."""

    UPCOMING = "Upcoming"
    ACTIONABLE = "Actionable"
    COMPLETED = "Completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    TaskStatus.UPCOMING: 0,
    TaskStatus.ACTIONABLE: 1,
    TaskStatus.COMPLETED: 2,
}

# Labels written by older task records.
_STATUS_ALIASES = {
    "upcoming": TaskStatus.UPCOMING,
    "actionable": TaskStatus.ACTIONABLE,
    "needs attention": TaskStatus.ACTIONABLE,
    "completed": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
}


def status_labels(status: TaskStatus) -> list[str]:
    """Lower-cased labels, legacy ones included, stored for ``status``."""
    return [label for label, value in _STATUS_ALIASES.items() if value == status]


def parse_status(value: Any) -> TaskStatus:
    """Return the ``TaskStatus`` for ``value``.

    Raises:
        InvalidTransition: If ``value`` is not a known status label.
    """
    if isinstance(value, TaskStatus):
        return value
    if isinstance(value, str):
        status = _STATUS_ALIASES.get(value.strip().lower())
        if status is not None:
            return status
    raise InvalidTransition(None, str(value), "undefined status value")


def _dedupe_refs(value: Any) -> list[str]:
    refs: list[str] = []
    for ref in value or []:
        if ref is None or not str(ref).strip():
            raise ValueError("Dependency references must be non-empty")
        ref = str(ref)
        if ref not in refs:
            refs.append(ref)
    return refs


class TaskTemplate(BaseModel):
    """Immutable definition of a workflow step shared by all instances."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    dependencies: List[str] = Field(default_factory=list)
    auto_executable: bool = False
    sort_order: int = 0
    description: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value: Any) -> list[str]:
        return _dedupe_refs(value)


class Task(BaseModel):
    """A task of one workflow instance, instantiated from a template."""

    id: str
    template_id: str
    workflow_instance_id: str
    name: str = ""
    dependencies: List[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.UPCOMING
    auto_executable: bool = False
    sort_order: int = 0
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("template_id", mode="before")
    @classmethod
    def _coerce_template_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value: Any) -> list[str]:
        return _dedupe_refs(value)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> TaskStatus:
        return parse_status(value)

    @field_validator("updated_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class WorkflowInstance(BaseModel):
    """Point-in-time snapshot of every task in one workflow instance."""

    id: str
    tasks: List[Task] = Field(default_factory=list)

    def get(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def with_template(self, template_id: str) -> list[Task]:
        return [task for task in self.tasks if task.template_id == template_id]


class UnmetDependency(BaseModel):
    """A dependency that resolved to a task which does not yet count as met."""

    ref: str
    task_id: str
    status: TaskStatus
    auto_executable: bool = False


class SatisfactionReport(BaseModel):
    satisfied: bool
    unresolved: List[str] = Field(default_factory=list)
    unmet: List[UnmetDependency] = Field(default_factory=list)


class TransitionOutcome(BaseModel):
    changed: bool
    status: TaskStatus


class TaskOutcome(BaseModel):
    """What a cascade did with one ``Upcoming`` task."""

    task_id: str
    transitioned: bool = False
    executor_triggered: bool = False
    unresolved: List[str] = Field(default_factory=list)
    unmet: List[UnmetDependency] = Field(default_factory=list)
    error: Optional[str] = None
    warning: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return not self.transitioned and self.error is None and bool(
            self.unresolved or self.unmet
        )


class CascadeResult(BaseModel):
    """Per-task record of a single cascade pass."""

    instance_id: str
    trigger_task_id: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    outcomes: List[TaskOutcome] = Field(default_factory=list)

    @property
    def advanced(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.transitioned]

    @property
    def blocked(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.blocked]

    @property
    def integrity_errors(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    @property
    def triggered(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.executor_triggered]

    def summary(self) -> str:
        """Human readable multi-line summary of the cascade."""
        origin = f" after {self.trigger_task_id}" if self.trigger_task_id else ""
        lines = [
            f"Cascade for {self.instance_id}{origin}: "
            f"{len(self.advanced)} advanced, {len(self.blocked)} blocked, "
            f"{len(self.integrity_errors)} errors"
        ]
        for outcome in self.outcomes:
            if outcome.transitioned:
                line = f"- {outcome.task_id}: Actionable"
                if outcome.executor_triggered:
                    line += " (executor triggered)"
                if outcome.warning:
                    line += f" [warning: {outcome.warning}]"
            elif outcome.error:
                line = f"- {outcome.task_id}: error: {outcome.error}"
            else:
                reasons = [f"{ref} not found" for ref in outcome.unresolved]
                reasons += [f"{dep.ref} is {dep.status.value}" for dep in outcome.unmet]
                line = f"- {outcome.task_id}: blocked ({'; '.join(reasons) or 'no change'})"
            lines.append(line)
        return "\n".join(lines)
