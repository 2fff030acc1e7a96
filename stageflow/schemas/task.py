"""
Task Pydantic schemas.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from stageflow.core.statuses import Priority
from stageflow.schemas.base import EntityRead


def normalize_assignees(value) -> List[str]:
    """
    Convert any accepted assignee shape into a list of distinct user ids.

    Older clients send a single id (or an empty string); newer ones send a
    list. Empty and duplicate ids are dropped, order is kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    result: List[str] = []
    for item in value:
        if item is None:
            continue
        user_id = str(item).strip()
        if user_id and user_id not in result:
            result.append(user_id)
    return result


def check_priority(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in Priority.ALL:
        raise ValueError(f"priority must be one of: {', '.join(Priority.ALL)}")
    return value


class TaskCreate(BaseModel):
    """Schema for creating a new task."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: str = Priority.MEDIUM
    assigned_to: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    requires_approval: bool = False
    parent_task_id: Optional[UUID] = None

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assigned_to(cls, value):
        return normalize_assignees(value)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value):
        return check_priority(value)


class TaskUpdate(BaseModel):
    """Schema for updating a task. All fields optional; status is not editable here."""

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[List[str]] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    requires_approval: Optional[bool] = None
    parent_task_id: Optional[UUID] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value):
        return check_priority(value)

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assigned_to(cls, value):
        if value is None:
            return None
        return normalize_assignees(value)


class TaskRead(EntityRead):
    """Schema for reading task data (API response and snapshot node)."""

    stage_id: UUID
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    assignee_ids: List[str] = Field(default_factory=list)
    created_by: str
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    requires_approval: bool
    parent_task_id: Optional[UUID] = None


class UserTaskRead(TaskRead):
    """A task in the "my tasks" list, with its context resolved."""

    project_id: UUID
    project_name: str
    stage_name: str
    parent_task_title: Optional[str] = None


class TaskHistoryRead(EntityRead):
    task_id: UUID
    status: str
    user_id: str
    user_name: str
    timestamp: datetime


class TransferTaskRequest(BaseModel):
    """Body of POST /tasks/{id}/transfer."""

    assigned_to: List[str]
    reason: str = ""

    @field_validator("assigned_to", mode="before")
    @classmethod
    def normalize_assigned_to(cls, value):
        return normalize_assignees(value)
