"""
Task comment repository.
"""

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.models.task_comment import TaskComment


class TaskCommentRepository:
    """Repository for TaskComment operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_task(self, task_id: UUID) -> List[TaskComment]:
        """Comments of a task, oldest first."""
        result = await self.db.execute(
            select(TaskComment)
            .where(TaskComment.task_id == task_id)
            .order_by(TaskComment.created_at)
        )
        return list(result.scalars().all())

    async def create(self, comment: TaskComment) -> TaskComment:
        self.db.add(comment)
        await self.db.flush()
        return comment
