"""
Approval queue schemas.
"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ApprovalItem(BaseModel):
    """
    One entry of the approver's queue: a stage awaiting sign-off or a task
    waiting for approval. Carries enough project/stage context to render
    without further lookups.
    """

    kind: Literal["stage", "task"]
    id: UUID
    name: str
    description: Optional[str] = None
    status: str

    project_id: UUID
    project_name: str
    project_description: Optional[str] = None

    stage_id: UUID
    stage_name: str
    stage_description: Optional[str] = None
    stage_status: str

    # Task items only
    priority: Optional[str] = None
    assignee_ids: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    requires_approval: Optional[bool] = None
