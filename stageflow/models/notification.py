"""
Notification model.

Rows written by the database notification sink. Delivery (push, email,
realtime) is handled elsewhere; this table is the inbox.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from stageflow.core.statuses import Priority
from stageflow.models.base_model import EntityModel


class Notification(EntityModel):
    __tablename__ = "notifications"

    # Recipient
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    task_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tasks.id", ondelete="SET NULL"),
        nullable=True,
    )

    project_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.MEDIUM)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_user_task_type", "user_id", "task_id", "type"),
    )
