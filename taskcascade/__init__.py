"""taskcascade: dependency resolution and cascading task status for workflows."""

from .cascade import CascadeCoordinator
from .contracts import (
    CascadeResult,
    Task,
    TaskOutcome,
    TaskStatus,
    TaskTemplate,
    WorkflowInstance,
)
from .errors import (
    AmbiguousDependency,
    CascadeError,
    ExecutorTriggerFailed,
    InvalidTransition,
    StoreConflict,
)
from .executors import get_executor
from .persistence import get_store
from .resolver import resolve
from .satisfaction import evaluate, is_satisfied
from .transitions import TransitionEngine

__version__ = "0.1.0"
__all__ = [
    "AmbiguousDependency",
    "CascadeCoordinator",
    "CascadeError",
    "CascadeResult",
    "ExecutorTriggerFailed",
    "InvalidTransition",
    "StoreConflict",
    "Task",
    "TaskOutcome",
    "TaskStatus",
    "TaskTemplate",
    "TransitionEngine",
    "WorkflowInstance",
    "evaluate",
    "get_executor",
    "get_store",
    "is_satisfied",
    "resolve",
]
