"""
Task repository - database operations for Task and its assignees.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.statuses import TaskStatus
from stageflow.models.stage import Stage
from stageflow.models.task import Task, TaskAssignee


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        result = await self.db.execute(
            select(Task).where(Task.id == task_id)
        )
        return result.scalar_one_or_none()

    async def list_for_stage(self, stage_id: UUID) -> List[Task]:
        """Tasks of one stage, oldest first."""
        result = await self.db.execute(
            select(Task)
            .where(Task.stage_id == stage_id)
            .order_by(Task.created_at)
        )
        return list(result.scalars().all())

    async def list_for_projects(self, project_ids: Sequence[UUID]) -> List[Task]:
        """Every task under the given projects."""
        if not project_ids:
            return []
        result = await self.db.execute(
            select(Task)
            .join(Stage, Stage.id == Task.stage_id)
            .where(Stage.project_id.in_(list(project_ids)))
            .order_by(Task.created_at)
        )
        return list(result.scalars().all())

    async def list_for_project(self, project_id: UUID) -> List[Task]:
        return await self.list_for_projects([project_id])

    async def list_dependents(self, task_id: UUID) -> List[Task]:
        """Tasks that name this task as their predecessor."""
        result = await self.db.execute(
            select(Task).where(Task.parent_task_id == task_id)
        )
        return list(result.scalars().all())

    async def list_assigned_to(self, user_id: str) -> List[Task]:
        """Tasks with the user among their assignees."""
        result = await self.db.execute(
            select(Task)
            .join(TaskAssignee, TaskAssignee.task_id == Task.id)
            .where(TaskAssignee.user_id == user_id)
            .order_by(Task.created_at.desc())
        )
        return list(result.scalars().unique().all())

    async def list_open_with_due_date(self) -> List[Task]:
        """Tasks that have a due date and are not completed (deadline scan input)."""
        result = await self.db.execute(
            select(Task)
            .where(
                Task.due_date.is_not(None),
                Task.status != TaskStatus.COMPLETED,
            )
            .order_by(Task.due_date)
        )
        return list(result.scalars().all())

    async def create(self, task: Task) -> Task:
        self.db.add(task)
        await self.db.flush()
        return task

    async def delete(self, task: Task) -> None:
        await self.db.delete(task)
        await self.db.flush()
