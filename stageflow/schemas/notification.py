"""Notification schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from stageflow.core.statuses import Priority
from stageflow.schemas.base import EntityRead


class NotificationMessage(BaseModel):
    """What the core hands to the notification sink (fire-and-forget)."""

    recipient_user_id: str
    type: str
    title: str
    message: str
    related_task_id: Optional[UUID] = None
    priority: str = Priority.MEDIUM
    project_name: Optional[str] = None


class NotificationRead(EntityRead):
    user_id: str
    type: str
    title: str
    message: str
    task_id: Optional[UUID] = None
    project_name: Optional[str] = None
    priority: str
    read: bool


class UnreadCount(BaseModel):
    unread: int


class MarkedRead(BaseModel):
    updated: int
