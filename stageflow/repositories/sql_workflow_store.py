"""
SQLAlchemy implementation of the WorkflowStore interface.

Every call is wrapped so driver/ORM failures surface as PersistenceError.
Snapshot loads are read-only and retried; writes never are.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.config import settings
from stageflow.errors import PersistenceError
from stageflow.models.notification import Notification
from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.models.task import Task
from stageflow.models.task_comment import TaskComment
from stageflow.models.task_status_history import TaskStatusHistory
from stageflow.repositories.comment_repository import TaskCommentRepository
from stageflow.repositories.history_repository import TaskStatusHistoryRepository
from stageflow.repositories.notification_repository import NotificationRepository
from stageflow.repositories.project_repository import ProjectRepository
from stageflow.repositories.stage_repository import StageRepository
from stageflow.repositories.task_repository import TaskRepository
from stageflow.repositories.workflow_store import assemble_snapshot
from stageflow.schemas.project import ProjectRead

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SqlWorkflowStore:
    """WorkflowStore backed by one AsyncSession (one request transaction)."""

    def __init__(
        self,
        db: AsyncSession,
        read_attempts: Optional[int] = None,
        read_delay: Optional[float] = None,
    ):
        self.db = db
        self.projects = ProjectRepository(db)
        self.stages = StageRepository(db)
        self.tasks = TaskRepository(db)
        self.history = TaskStatusHistoryRepository(db)
        self.comments = TaskCommentRepository(db)
        self.notifications = NotificationRepository(db)
        self.read_attempts = max(1, read_attempts or settings.READ_RETRY_ATTEMPTS)
        self.read_delay = settings.READ_RETRY_DELAY_SECONDS if read_delay is None else read_delay

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        try:
            return await func()
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed: %s", operation, exc)
            raise PersistenceError(operation, str(exc)) from exc

    async def get_project(self, project_id: UUID) -> Optional[Project]:
        return await self._call("get_project", lambda: self.projects.get_by_id(project_id))

    async def get_stage(self, stage_id: UUID) -> Optional[Stage]:
        return await self._call("get_stage", lambda: self.stages.get_by_id(stage_id))

    async def get_task(self, task_id: UUID) -> Optional[Task]:
        return await self._call("get_task", lambda: self.tasks.get_by_id(task_id))

    async def list_projects(self, project_ids: Optional[Sequence[UUID]] = None) -> List[Project]:
        return await self._call("list_projects", lambda: self.projects.list(project_ids))

    async def list_projects_visible_to(self, user_id: str) -> List[Project]:
        return await self._call("list_projects_visible_to", lambda: self.projects.list_visible_to(user_id))

    async def list_project_stages(self, project_id: UUID) -> List[Stage]:
        return await self._call("list_project_stages", lambda: self.stages.list_for_project(project_id))

    async def list_stage_tasks(self, stage_id: UUID) -> List[Task]:
        return await self._call("list_stage_tasks", lambda: self.tasks.list_for_stage(stage_id))

    async def list_project_tasks(self, project_id: UUID) -> List[Task]:
        return await self._call("list_project_tasks", lambda: self.tasks.list_for_project(project_id))

    async def list_dependent_tasks(self, task_id: UUID) -> List[Task]:
        return await self._call("list_dependent_tasks", lambda: self.tasks.list_dependents(task_id))

    async def list_tasks_assigned_to(self, user_id: str) -> List[Task]:
        return await self._call("list_tasks_assigned_to", lambda: self.tasks.list_assigned_to(user_id))

    async def list_open_tasks_with_due_date(self) -> List[Task]:
        return await self._call("list_open_tasks_with_due_date", self.tasks.list_open_with_due_date)

    async def list_history(self, task_id: UUID) -> List[TaskStatusHistory]:
        return await self._call("list_history", lambda: self.history.list_for_task(task_id))

    async def find_history_by_operation(self, operation_id: str) -> Optional[TaskStatusHistory]:
        return await self._call(
            "find_history_by_operation",
            lambda: self.history.get_by_operation_id(operation_id),
        )

    async def list_comments(self, task_id: UUID) -> List[TaskComment]:
        return await self._call("list_comments", lambda: self.comments.list_for_task(task_id))

    async def has_notification(self, user_id: str, task_id: UUID, types: Sequence[str]) -> bool:
        return await self._call(
            "has_notification",
            lambda: self.notifications.exists_for(user_id, task_id, types),
        )

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        return await self._call("get_notification", lambda: self.notifications.get_by_id(notification_id))

    async def list_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        return await self._call(
            "list_notifications",
            lambda: self.notifications.list_for_user(user_id, unread_only=unread_only),
        )

    async def count_unread_notifications(self, user_id: str) -> int:
        return await self._call("count_unread_notifications", lambda: self.notifications.count_unread(user_id))

    async def mark_all_notifications_read(self, user_id: str) -> int:
        return await self._call("mark_all_notifications_read", lambda: self.notifications.mark_all_read(user_id))

    async def add(self, entity: Any) -> Any:
        async def _add():
            self.db.add(entity)
            await self.db.flush()
            return entity

        return await self._call(f"add_{type(entity).__name__}", _add)

    async def add_isolated(self, entity: Any) -> Any:
        """
        Insert a row inside a savepoint.

        If the insert fails only the savepoint is rolled back, so the caller's
        transaction and the changes already flushed in it stay usable.
        """
        async def _add():
            async with self.db.begin_nested():
                self.db.add(entity)
                await self.db.flush()
            return entity

        return await self._call(f"add_isolated_{type(entity).__name__}", _add)

    async def delete(self, entity: Any) -> None:
        async def _delete():
            await self.db.delete(entity)
            await self.db.flush()

        await self._call(f"delete_{type(entity).__name__}", _delete)

    async def flush(self) -> None:
        await self._call("flush", self.db.flush)

    async def load_snapshot(self, project_ids: Optional[Sequence[UUID]] = None) -> List[ProjectRead]:
        """
        Read project trees for the approval queue and task lists.

        Retried up to READ_RETRY_ATTEMPTS times; the session is rolled back
        between attempts, so only call this on read-only paths.
        """
        last_error: Optional[SQLAlchemyError] = None

        for attempt in range(1, self.read_attempts + 1):
            try:
                projects = await self.projects.list(project_ids)
                ids = [p.id for p in projects]
                stages = await self.stages.list_for_projects(ids)
                tasks = await self.tasks.list_for_projects(ids)
                return assemble_snapshot(projects, stages, tasks)
            except SQLAlchemyError as exc:
                last_error = exc
                logger.warning(
                    "Snapshot load failed (attempt %s/%s): %s",
                    attempt,
                    self.read_attempts,
                    exc,
                )
                await self.db.rollback()
                if attempt < self.read_attempts:
                    await asyncio.sleep(self.read_delay)

        raise PersistenceError("load_snapshot", str(last_error))
