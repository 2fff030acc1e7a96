"""
Notification repository.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.models.notification import Notification


class NotificationRepository:
    """Repository for Notification operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists_for(self, user_id: str, task_id: UUID, types: Sequence[str]) -> bool:
        """Whether the user already has a notification of one of these types for the task."""
        result = await self.db.execute(
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.task_id == task_id,
                Notification.type.in_(list(types)),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_for_user(self, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_by_id(self, notification_id: UUID) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def count_unread(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of the user as read; returns how many changed."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        return result.rowcount
