"""
Project Pydantic schemas.

ProjectRead (with its nested stages and tasks) doubles as the read-only
snapshot that the approval queue and the "my tasks" views are built from.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from stageflow.core.statuses import Priority
from stageflow.schemas.base import EntityRead
from stageflow.schemas.stage import StageCreate, StageRead
from stageflow.schemas.task import check_priority


class ProjectCreate(BaseModel):
    """Schema for creating a project with its stage/task tree."""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: str = Priority.MEDIUM
    stages: List[StageCreate] = Field(default_factory=list)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value):
        return check_priority(value)


class ProjectUpdate(BaseModel):
    """Editable project fields. Status is derived and cannot be set here."""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value):
        return check_priority(value)


class ProjectRead(EntityRead):
    name: str
    description: Optional[str] = None
    status: str
    priority: str
    created_by: str
    stages: List[StageRead] = Field(default_factory=list)
