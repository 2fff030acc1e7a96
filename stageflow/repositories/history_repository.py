"""
Task status history repository.

Insert and read only; history rows are never updated.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.models.task_status_history import TaskStatusHistory


class TaskStatusHistoryRepository:
    """Repository for TaskStatusHistory operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_task(self, task_id: UUID) -> List[TaskStatusHistory]:
        """History of a task in the order it was applied."""
        result = await self.db.execute(
            select(TaskStatusHistory)
            .where(TaskStatusHistory.task_id == task_id)
            .order_by(TaskStatusHistory.timestamp, TaskStatusHistory.created_at)
        )
        return list(result.scalars().all())

    async def get_by_operation_id(self, operation_id: str) -> Optional[TaskStatusHistory]:
        result = await self.db.execute(
            select(TaskStatusHistory).where(TaskStatusHistory.operation_id == operation_id)
        )
        return result.scalar_one_or_none()

    async def append(self, entry: TaskStatusHistory) -> TaskStatusHistory:
        self.db.add(entry)
        await self.db.flush()
        return entry
