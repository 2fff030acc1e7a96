"""
Project model.

A project is an ordered sequence of stages. Its status is derived from the
stages and tasks below it (see services.project_aggregator); only closing a
project sets it directly.
"""

from typing import List, Optional

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stageflow.core.statuses import Priority, ProjectStatus
from stageflow.models.base_model import EntityModel


class Project(EntityModel):
    """Project table - the root of a stage/task tree."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # planning, in-progress, completed, on-hold, closed
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=ProjectStatus.PLANNING,
        index=True,
    )

    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Priority.MEDIUM,
    )

    # Owning user id from the identity provider
    created_by: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    stages: Mapped[List["Stage"]] = relationship(
        "Stage",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Stage.order_index",
        lazy="selectin",
    )
