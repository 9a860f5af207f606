from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from ..contracts import utcnow


class CascadeRun(SQLModel, table=True):
    """One cascade pass over a workflow instance."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    instance_id: str = Field(index=True)
    trigger_task_id: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    advanced: int = 0
    triggered: int = 0
    errors: int = 0


class CascadeOutcomeRecord(SQLModel, table=True):
    """What a cascade did with a single task."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    run_id: UUID = Field(foreign_key="cascaderun.id", index=True)
    position: int = 0
    task_id: str
    transitioned: bool = False
    executor_triggered: bool = False
    unresolved: list = Field(default_factory=list, sa_column=Column(JSON))
    unmet: list = Field(default_factory=list, sa_column=Column(JSON))
    error: Optional[str] = None
    warning: Optional[str] = None
