"""
Task business logic service.

Creating, editing and deleting tasks, plus their comments and history.
Status changes are not made here; see task_workflow_service.
"""

import logging
import uuid
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.permissions import Permissions, has_capability
from stageflow.core.statuses import NotificationType, TaskStatus
from stageflow.errors import raise_app_error
from stageflow.models.stage import Stage
from stageflow.models.task import Task
from stageflow.models.task_comment import TaskComment
from stageflow.models.task_status_history import TaskStatusHistory
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.comment import CommentCreate, CommentRead, CommentThread
from stageflow.schemas.notification import NotificationMessage
from stageflow.schemas.task import TaskCreate, TaskHistoryRead, TaskRead, TaskUpdate, UserTaskRead
from stageflow.services.comment_threads import build_comment_threads
from stageflow.services.notification_service import DatabaseNotificationSink, NotificationSink
from stageflow.services.task_state_machine import can_work_on
from stageflow.services.task_workflow_service import TaskWorkflowService, replace_assignees
from stageflow.utils.time import utc_now

logger = logging.getLogger(__name__)

# Columns a client may not null out; an explicit null is ignored
NON_NULLABLE_FIELDS = {"title", "priority", "requires_approval", "assigned_to"}

# Statuses in which the approval flag is part of the path already taken
APPROVAL_FLAG_LOCKED = {TaskStatus.IN_PROGRESS, TaskStatus.WAITING_APPROVAL}


class TaskService:
    """Service for task business logic."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        store: Optional[WorkflowStore] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store or SqlWorkflowStore(db)
        self.notifier = notifier or DatabaseNotificationSink(self.store)
        self.workflow = TaskWorkflowService(store=self.store, notifier=self.notifier)

    async def get_task(self, task_id: UUID) -> TaskRead:
        """Get a task by ID."""
        return TaskRead.model_validate(await self._get_task_or_404(task_id))

    async def create_task(self, stage_id: UUID, data: TaskCreate, actor) -> TaskRead:
        """Create a task in a stage, then recompute the stage and its project."""
        stage = await self.store.get_stage(stage_id)
        if stage is None:
            raise_app_error(status.HTTP_404_NOT_FOUND, "stage_not_found", f"Stage {stage_id} not found")

        task = await self.build_task(stage, data, actor)
        await self.workflow.refresh_stage(stage.id)
        return TaskRead.model_validate(task)

    async def build_task(self, stage: Stage, data: TaskCreate, actor, project_name: Optional[str] = None) -> Task:
        """
        Persist a new pending task with its first history entry and notify
        its assignees. Does not recompute the stage.
        """
        if data.parent_task_id is not None:
            await self._check_predecessor(None, data.parent_task_id)

        task = Task(
            id=uuid.uuid4(),
            stage_id=stage.id,
            title=data.title,
            description=data.description,
            status=TaskStatus.PENDING,
            priority=data.priority,
            created_by=actor.id,
            start_date=data.start_date,
            due_date=data.due_date,
            requires_approval=data.requires_approval,
            parent_task_id=data.parent_task_id,
        )
        replace_assignees(task, data.assigned_to)
        await self.store.add(task)
        await self.store.add(
            TaskStatusHistory(
                id=uuid.uuid4(),
                task_id=task.id,
                status=TaskStatus.PENDING,
                user_id=actor.id,
                user_name=actor.display_name,
                timestamp=utc_now(),
            )
        )
        logger.info("Task %s created in stage %s by %s", task.id, stage.id, actor.id)

        if project_name is None:
            project = await self.store.get_project(stage.project_id)
            project_name = project.name if project else None
        await self._notify_assigned(task, task.assignee_ids, actor, project_name)
        return task

    async def update_task(self, task_id: UUID, data: TaskUpdate, actor) -> TaskRead:
        """Update a task's editable fields. Status cannot be changed here."""
        task = await self._get_task_or_404(task_id)
        if task.created_by != actor.id and not can_work_on(task, actor):
            raise_app_error(
                status.HTTP_403_FORBIDDEN,
                "forbidden",
                "Only the task's creator, its assignees or a manager can edit it",
                {"required_permission": Permissions.MANAGE_PROJECTS},
            )

        update_data = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in NON_NULLABLE_FIELDS
        }
        assigned_to = update_data.pop("assigned_to", None)

        flag = update_data.get("requires_approval")
        if flag is not None and flag != task.requires_approval and task.status in APPROVAL_FLAG_LOCKED:
            raise_app_error(
                status.HTTP_409_CONFLICT,
                "approval_flag_locked",
                f"requires_approval cannot change while the task is {task.status}",
                {"status": task.status},
            )

        if "parent_task_id" in update_data and update_data["parent_task_id"] is not None:
            await self._check_predecessor(task.id, update_data["parent_task_id"])

        for field, value in update_data.items():
            setattr(task, field, value)

        added: List[str] = []
        if assigned_to is not None:
            added = replace_assignees(task, assigned_to)

        await self.store.flush()

        if added:
            project = await self.workflow.project_for_stage(task.stage_id)
            await self._notify_assigned(task, added, actor, project.name if project else None)

        return TaskRead.model_validate(task)

    async def delete_task(self, task_id: UUID, actor) -> None:
        """
        Delete a task.

        Tasks that depended on it lose their predecessor link. The stage and
        project are recomputed afterwards.
        """
        task = await self._get_task_or_404(task_id)
        if task.created_by != actor.id and not has_capability(actor, Permissions.MANAGE_PROJECTS):
            raise_app_error(status.HTTP_403_FORBIDDEN, "forbidden", "Only the task creator or a manager can delete it")

        for dependent in await self.store.list_dependent_tasks(task.id):
            dependent.parent_task_id = None
            logger.info("Task %s no longer depends on deleted task %s", dependent.id, task.id)

        stage_id = task.stage_id
        await self.store.delete(task)
        await self.workflow.refresh_stage(stage_id)
        logger.info("Task %s deleted by %s", task_id, actor.id)

    async def list_tasks_for(self, actor) -> List[UserTaskRead]:
        """Tasks assigned to the actor, with their project, stage and predecessor resolved."""
        tasks = await self.store.list_tasks_assigned_to(actor.id)
        stages: Dict[UUID, Optional[Stage]] = {}
        project_names: Dict[UUID, Optional[str]] = {}
        result: List[UserTaskRead] = []

        for task in tasks:
            if task.stage_id not in stages:
                stages[task.stage_id] = await self.store.get_stage(task.stage_id)
            stage = stages[task.stage_id]
            if stage is None:
                logger.warning("Task %s points at missing stage %s", task.id, task.stage_id)
                continue

            if stage.project_id not in project_names:
                project = await self.store.get_project(stage.project_id)
                project_names[stage.project_id] = project.name if project else None
            project_name = project_names[stage.project_id]
            if project_name is None:
                logger.warning("Stage %s points at missing project %s", stage.id, stage.project_id)
                continue

            parent_title = None
            if task.parent_task_id is not None:
                parent = await self.store.get_task(task.parent_task_id)
                parent_title = parent.title if parent else None

            result.append(
                UserTaskRead(
                    **TaskRead.model_validate(task).model_dump(),
                    project_id=stage.project_id,
                    project_name=project_name,
                    stage_name=stage.name,
                    parent_task_title=parent_title,
                )
            )
        return result

    async def add_comment(self, task_id: UUID, data: CommentCreate, actor) -> CommentRead:
        """Add a comment (or a reply) to a task; mentioned users are notified."""
        task = await self._get_task_or_404(task_id)

        if data.parent_id is not None:
            siblings = await self.store.list_comments(task.id)
            if not any(c.id == data.parent_id for c in siblings):
                raise_app_error(
                    status.HTTP_404_NOT_FOUND,
                    "comment_not_found",
                    f"Comment {data.parent_id} not found on this task",
                )

        comment = TaskComment(
            id=uuid.uuid4(),
            task_id=task.id,
            content=data.content,
            author_id=actor.id,
            parent_id=data.parent_id,
            mentioned_user_id=data.mentioned_user_id,
            attachment_url=data.attachment_url,
        )
        await self.store.add(comment)

        if data.mentioned_user_id and data.mentioned_user_id != actor.id:
            project = await self.workflow.project_for_stage(task.stage_id)
            await self.notifier.notify(
                NotificationMessage(
                    recipient_user_id=data.mentioned_user_id,
                    type=NotificationType.COMMENT_MENTION,
                    title="You were mentioned",
                    message=f'{actor.display_name} mentioned you on the task "{task.title}"',
                    related_task_id=task.id,
                    priority=task.priority,
                    project_name=project.name if project else None,
                )
            )

        return CommentRead.model_validate(comment)

    async def list_comment_threads(self, task_id: UUID) -> List[CommentThread]:
        task = await self._get_task_or_404(task_id)
        return build_comment_threads(await self.store.list_comments(task.id))

    async def list_history(self, task_id: UUID) -> List[TaskHistoryRead]:
        task = await self._get_task_or_404(task_id)
        return [TaskHistoryRead.model_validate(h) for h in await self.store.list_history(task.id)]

    async def _get_task_or_404(self, task_id: UUID) -> Task:
        task = await self.store.get_task(task_id)
        if task is None:
            raise_app_error(status.HTTP_404_NOT_FOUND, "task_not_found", f"Task {task_id} not found")
        return task

    async def _check_predecessor(self, task_id: Optional[UUID], parent_id: UUID) -> None:
        """The predecessor must exist and must not lead back to the task itself."""
        if task_id is not None and parent_id == task_id:
            raise_app_error(status.HTTP_409_CONFLICT, "invalid_reference", "A task cannot depend on itself")

        parent = await self.store.get_task(parent_id)
        if parent is None:
            raise_app_error(
                status.HTTP_409_CONFLICT,
                "invalid_reference",
                f"Predecessor task {parent_id} not found",
                {"parent_task_id": str(parent_id)},
            )

        seen = {parent.id}
        while task_id is not None and parent.parent_task_id is not None:
            if parent.parent_task_id == task_id:
                raise_app_error(
                    status.HTTP_409_CONFLICT,
                    "invalid_reference",
                    "This link would create a dependency cycle",
                    {"parent_task_id": str(parent_id)},
                )
            if parent.parent_task_id in seen:
                break
            seen.add(parent.parent_task_id)
            parent = await self.store.get_task(parent.parent_task_id)
            if parent is None:
                break

    async def _notify_assigned(self, task: Task, user_ids: List[str], actor, project_name: Optional[str]) -> None:
        for user_id in user_ids:
            await self.notifier.notify(
                NotificationMessage(
                    recipient_user_id=user_id,
                    type=NotificationType.TASK_ASSIGNED,
                    title="New task assigned",
                    message=f'{actor.display_name} assigned you the task "{task.title}"',
                    related_task_id=task.id,
                    priority=task.priority,
                    project_name=project_name,
                )
            )
