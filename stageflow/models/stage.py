"""
Stage model.

An ordered phase within a project, grouping tasks, with its own optional
approval gate. The order_index determines the display order.
"""

import uuid
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stageflow.core.statuses import StageStatus
from stageflow.models.base_model import EntityModel


class Stage(EntityModel):
    """Stage table - a step of a project."""

    __tablename__ = "stages"

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Position within the project (1, 2, 3, etc.)
    order_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    requires_approval: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # pending, waiting-approval, approved, completed
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=StageStatus.PENDING,
    )

    project: Mapped["Project"] = relationship("Project", back_populates="stages")

    tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="stage",
        cascade="all, delete-orphan",
        order_by="Task.created_at",
        lazy="selectin",
    )
