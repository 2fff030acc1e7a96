"""
Stage Pydantic schemas.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stageflow.schemas.base import EntityRead
from stageflow.schemas.task import TaskCreate, TaskRead


class StageCreate(BaseModel):
    """Schema for creating a stage, optionally with its initial tasks."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    order_index: int = 0
    requires_approval: bool = False
    tasks: List[TaskCreate] = Field(default_factory=list)


class StageUpdate(BaseModel):
    """Schema for updating a stage. All fields optional; status is derived."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    order_index: Optional[int] = None
    requires_approval: Optional[bool] = None


class StageRead(EntityRead):
    project_id: UUID
    name: str
    description: Optional[str] = None
    order_index: int
    requires_approval: bool
    status: str
    tasks: List[TaskRead] = Field(default_factory=list)
