"""Exception taxonomy for dependency resolution and status cascades."""

from __future__ import annotations

from typing import Iterable, Optional


class CascadeError(Exception):
    """Base class for all taskcascade errors."""


class AmbiguousDependency(CascadeError):
    """A dependency reference matched more than one task of an instance."""

    def __init__(self, ref: str, candidates: Iterable[str]) -> None:
        self.ref = ref
        self.candidates = list(candidates)
        super().__init__(
            f"Dependency '{ref}' is ambiguous: matches tasks {', '.join(self.candidates)}"
        )


class InvalidTransition(CascadeError):
    """A status change outside the state machine was requested."""

    def __init__(
        self, current: Optional[str], target: Optional[str], reason: str = ""
    ) -> None:
        self.current = current
        self.target = target
        self.reason = reason
        message = f"Invalid transition {current} -> {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreConflict(CascadeError):
    """A compare-and-set write lost against another writer."""

    def __init__(self, task_id: str, expected: str, actual: Optional[str] = None) -> None:
        self.task_id = task_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Status of task {task_id} changed concurrently "
            f"(expected {expected}, found {actual})"
        )


class ExecutorTriggerFailed(CascadeError):
    """The automated executor could not be reached for a task."""

    def __init__(self, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Executor trigger failed for task {task_id}: {reason}")


class InstanceNotFound(CascadeError):
    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"Workflow instance not found: {instance_id}")


class TaskNotFound(CascadeError):
    def __init__(self, instance_id: str, task_id: str) -> None:
        self.instance_id = instance_id
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found in instance {instance_id}")


class UnknownTemplate(CascadeError):
    """A template references a template id missing from the catalog."""

    def __init__(self, template_id: str, referenced_by: Optional[str] = None) -> None:
        self.template_id = template_id
        self.referenced_by = referenced_by
        message = f"Unknown template: {template_id}"
        if referenced_by:
            message = f"{message} (referenced by {referenced_by})"
        super().__init__(message)


class TemplateCycleError(CascadeError):
    """The template dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Template dependency cycle: {' -> '.join(cycle)}")
