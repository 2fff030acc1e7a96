"""
Deadline notifications.

deadline_notice is the pure rule; DeadlineScanService applies it to every open
task with a due date and records one notification per assignee, once.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.config import settings
from stageflow.core.statuses import NotificationType, Priority, TaskStatus
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.notification import NotificationMessage
from stageflow.services.notification_service import DatabaseNotificationSink, NotificationSink
from stageflow.utils.time import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class DeadlineNotice:
    type: str
    priority: str
    days: int
    title: str
    message: str


def deadline_notice(task: Any, now: datetime, warning_days: Optional[int] = None) -> Optional[DeadlineNotice]:
    """
    Classify a task's deadline.

    Days are whole 24h periods between now and the due date, truncated.
    Overdue tasks are critical; tasks due within ``warning_days`` get a warning
    (high on the due day, medium before).
    """
    if warning_days is None:
        warning_days = settings.DEADLINE_WARNING_DAYS
    if task.due_date is None or task.status == TaskStatus.COMPLETED:
        return None

    due = as_utc(task.due_date)
    now = as_utc(now)
    days = int((due - now) / timedelta(days=1))

    if now > due:
        return DeadlineNotice(
            type=NotificationType.DEADLINE_OVERDUE,
            priority=Priority.CRITICAL,
            days=abs(days),
            title="Task overdue",
            message=f'The task "{task.title}" is {abs(days)} day(s) overdue',
        )

    if 0 <= days <= warning_days:
        return DeadlineNotice(
            type=NotificationType.DEADLINE_WARNING,
            priority=Priority.HIGH if days == 0 else Priority.MEDIUM,
            days=days,
            title="Deadline approaching",
            message=f'The task "{task.title}" is due in {days} day(s)',
        )

    return None


class DeadlineScanService:
    """Emit deadline notifications for every assignee of every open task."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        store: Optional[WorkflowStore] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store or SqlWorkflowStore(db)
        self.notifier = notifier or DatabaseNotificationSink(self.store)

    async def scan(self, now: Optional[datetime] = None) -> int:
        """Run one pass. Returns the number of notifications emitted."""
        now = now or utc_now()
        tasks = await self.store.list_open_tasks_with_due_date()
        emitted = 0
        project_names = {}

        for task in tasks:
            notice = deadline_notice(task, now)
            if notice is None:
                continue

            for user_id in task.assignee_ids:
                if await self.store.has_notification(user_id, task.id, NotificationType.DEADLINE_TYPES):
                    continue
                if task.stage_id not in project_names:
                    project_names[task.stage_id] = await self._project_name(task.stage_id)
                await self.notifier.notify(
                    NotificationMessage(
                        recipient_user_id=user_id,
                        type=notice.type,
                        title=notice.title,
                        message=notice.message,
                        related_task_id=task.id,
                        priority=notice.priority,
                        project_name=project_names[task.stage_id],
                    )
                )
                emitted += 1

        if emitted:
            logger.info("Deadline scan emitted %s notification(s)", emitted)
        return emitted

    async def _project_name(self, stage_id) -> Optional[str]:
        stage = await self.store.get_stage(stage_id)
        if stage is None:
            return None
        project = await self.store.get_project(stage.project_id)
        return project.name if project else None
