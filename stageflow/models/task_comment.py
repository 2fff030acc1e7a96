"""
TaskComment model.

Comments form a tree per task through parent_id. Approval and rejection
reasons are stored here too, prefixed with "Approved: " / "Rejected: ".
"""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from stageflow.models.base_model import EntityModel


class TaskComment(EntityModel):
    __tablename__ = "task_comments"

    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Threaded reply
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("task_comments.id", ondelete="SET NULL"),
        nullable=True,
    )

    mentioned_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    attachment_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
