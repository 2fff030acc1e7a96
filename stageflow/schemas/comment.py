"""
Task comment schemas.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stageflow.schemas.base import EntityRead


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    parent_id: Optional[UUID] = None
    mentioned_user_id: Optional[str] = None
    attachment_url: Optional[str] = None


class CommentRead(EntityRead):
    task_id: UUID
    content: str
    author_id: str
    parent_id: Optional[UUID] = None
    mentioned_user_id: Optional[str] = None
    attachment_url: Optional[str] = None


class CommentThread(CommentRead):
    """A comment with its replies nested below it."""

    replies: List["CommentThread"] = Field(default_factory=list)
