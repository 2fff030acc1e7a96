"""
Notification sink and notification inbox operations.

The workflow only produces notification records; delivering them (email,
push, realtime) is someone else's job.
"""

import logging
import uuid
from typing import List, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.errors import PersistenceError
from stageflow.models.notification import Notification
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Receives NotificationMessage values. Fire-and-forget."""

    async def notify(self, message) -> None: ...


class DatabaseNotificationSink:
    """Stores each message as a row in the notifications table."""

    def __init__(self, store: WorkflowStore):
        self.store = store

    async def notify(self, message) -> None:
        notification = Notification(
            id=uuid.uuid4(),
            user_id=message.recipient_user_id,
            type=message.type,
            title=message.title,
            message=message.message,
            task_id=message.related_task_id,
            project_name=message.project_name,
            priority=message.priority,
            read=False,
        )
        try:
            await self.store.add_isolated(notification)
        except PersistenceError:
            # Only the savepoint is rolled back; the workflow change stays
            logger.exception(
                "Failed to record %s notification for user %s",
                message.type,
                message.recipient_user_id,
            )


class NotificationService:
    """A user's notification inbox."""

    def __init__(self, db: Optional[AsyncSession] = None, store: Optional[WorkflowStore] = None):
        self.store = store or SqlWorkflowStore(db)

    async def list_for(self, actor, unread_only: bool = False) -> List[Notification]:
        return await self.store.list_notifications(actor.id, unread_only=unread_only)

    async def mark_read(self, notification_id: UUID, actor) -> Optional[Notification]:
        """Mark one of the actor's notifications as read. None if it is not theirs."""
        notification = await self.store.get_notification(notification_id)
        if notification is None or notification.user_id != actor.id:
            return None
        if not notification.read:
            notification.read = True
            await self.store.flush()
        return notification

    async def mark_all_read(self, actor) -> int:
        """Mark every unread notification of the actor as read; returns how many changed."""
        updated = await self.store.mark_all_notifications_read(actor.id)
        logger.info("Marked %d notifications read for user %s", updated, actor.id)
        return updated

    async def unread_count(self, actor) -> int:
        return await self.store.count_unread_notifications(actor.id)

    async def delete(self, notification_id: UUID, actor) -> bool:
        """Delete one of the actor's notifications. False if it is not theirs."""
        notification = await self.store.get_notification(notification_id)
        if notification is None or notification.user_id != actor.id:
            return False
        await self.store.delete(notification)
        return True
