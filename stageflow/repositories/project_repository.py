"""
Project repository - database operations for Project.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.models.task import Task, TaskAssignee


class ProjectRepository:
    """Repository for Project database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, project_id: UUID) -> Optional[Project]:
        """Get a project by ID."""
        result = await self.db.execute(
            select(Project).where(Project.id == project_id)
        )
        return result.scalar_one_or_none()

    async def list(self, project_ids: Optional[Sequence[UUID]] = None) -> List[Project]:
        """List projects, newest first, optionally restricted to a set of ids."""
        query = select(Project)
        if project_ids is not None:
            query = query.where(Project.id.in_(list(project_ids)))
        query = query.order_by(Project.created_at.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_visible_to(self, user_id: str) -> List[Project]:
        """Projects the user created or holds at least one task assignment in."""
        assigned = (
            select(Stage.project_id)
            .join(Task, Task.stage_id == Stage.id)
            .join(TaskAssignee, TaskAssignee.task_id == Task.id)
            .where(TaskAssignee.user_id == user_id)
        )
        query = (
            select(Project)
            .where(or_(Project.created_by == user_id, Project.id.in_(assigned)))
            .order_by(Project.created_at.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, project: Project) -> Project:
        """Persist a new project."""
        self.db.add(project)
        await self.db.flush()
        return project

    async def delete(self, project: Project) -> None:
        """Delete a project; stages and tasks go with it."""
        await self.db.delete(project)
        await self.db.flush()
