"""
Task workflow service.

Every task status change goes through here. A change is validated, the
dependency gate is checked against a fresh read of the predecessor, the task
is updated and a history entry appended, then the owning stage and project
are recomputed. All of it happens in the caller's transaction; notifications
are handed to the sink once the cascade is done.

Business-rule refusals come back as TransitionOutcome.block_reason. Storage
failures raise PersistenceError.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.permissions import Permissions, has_capability
from stageflow.core.statuses import NotificationType, ProjectStatus, StageStatus, TaskStatus
from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.models.task import Task, TaskAssignee
from stageflow.models.task_comment import TaskComment
from stageflow.models.task_status_history import TaskStatusHistory
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.approval import ApprovalItem
from stageflow.schemas.notification import NotificationMessage
from stageflow.schemas.task import normalize_assignees
from stageflow.schemas.workflow import BlockReason, TransitionOutcome
from stageflow.services.approval_queue import list_pending_approvals
from stageflow.services.dependency_resolver import can_start
from stageflow.services.notification_service import DatabaseNotificationSink, NotificationSink
from stageflow.services.project_aggregator import recompute_project
from stageflow.services.stage_aggregator import recompute_stage
from stageflow.services.task_state_machine import BlockCode, apply_transition, can_work_on, validate_transition
from stageflow.utils.time import utc_now

logger = logging.getLogger(__name__)


def replace_assignees(task: Task, user_ids: Iterable[str]) -> List[str]:
    """
    Make the task's assignee set equal to ``user_ids``.

    Existing rows for users that stay are kept. Returns the ids that were
    newly added.
    """
    wanted = normalize_assignees(list(user_ids))
    for assignee in list(task.assignees):
        if assignee.user_id not in wanted:
            task.assignees.remove(assignee)

    current = {a.user_id for a in task.assignees}
    added = []
    for user_id in wanted:
        if user_id not in current:
            task.assignees.append(TaskAssignee(id=uuid.uuid4(), user_id=user_id))
            added.append(user_id)
    return added


def _status_messages(task: Task, previous: str, target: str) -> List[Tuple[str, str, str]]:
    """
    Notification type, title and text for each message a status change sends.

    Every change sends task_status_changed; approvals and rejections add
    their own typed message.
    """
    messages = [
        (
            NotificationType.TASK_STATUS_CHANGED,
            "Task status updated",
            f'The task "{task.title}" moved from {previous} to {target}',
        )
    ]
    if target == TaskStatus.APPROVED:
        messages.append((NotificationType.TASK_APPROVED, "Task approved", f'The task "{task.title}" was approved'))
    elif target == TaskStatus.REJECTED:
        messages.append((NotificationType.TASK_REJECTED, "Task rejected", f'The task "{task.title}" was rejected'))
    return messages


class TaskWorkflowService:
    """Status transitions for tasks, stage sign-off and project close."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        store: Optional[WorkflowStore] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store or SqlWorkflowStore(db)
        self.notifier = notifier or DatabaseNotificationSink(self.store)

    # ------------------------------------------------------------------
    # Task transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        task_id: UUID,
        target_status: str,
        actor,
        comment: Optional[str] = None,
        operation_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        Move a task to ``target_status``.

        A target equal to the current status, or an operation_id that was
        already applied, is accepted without doing anything (applied=False).
        """
        task = await self.store.get_task(task_id)
        if task is None:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.TASK_NOT_FOUND,
                    message=f"Task {task_id} not found",
                    details={"task_id": str(task_id)},
                ),
                task_id=task_id,
            )

        if operation_id:
            replayed = await self.store.find_history_by_operation(operation_id)
            if replayed is not None and replayed.task_id != task.id:
                logger.warning(
                    "Operation %s was already used on task %s, refusing it for task %s",
                    operation_id,
                    replayed.task_id,
                    task.id,
                )
                return TransitionOutcome.blocked(
                    BlockReason(
                        code=BlockCode.OPERATION_CONFLICT,
                        message="This operation id was already used for another task",
                        details={"operation_id": operation_id, "task_id": str(replayed.task_id)},
                    ),
                    task_id=task.id,
                    task_status=task.status,
                    stage_id=task.stage_id,
                )
            if replayed is not None:
                logger.info("Operation %s already applied to task %s", operation_id, replayed.task_id)
                return await self._unchanged(task)

        if target_status == task.status:
            return await self._unchanged(task)

        reason = validate_transition(task, target_status, actor, comment)
        if reason is None and target_status == TaskStatus.IN_PROGRESS:
            reason = await self._check_dependency(task)
        if reason is not None:
            logger.info(
                "Task %s transition %s -> %s blocked: %s",
                task.id,
                task.status,
                target_status,
                reason.code,
            )
            return TransitionOutcome.blocked(
                reason,
                task_id=task.id,
                task_status=task.status,
                stage_id=task.stage_id,
            )

        return await self._apply(task, target_status, actor, comment, operation_id)

    async def start_task(self, task_id: UUID, actor, operation_id: Optional[str] = None) -> TransitionOutcome:
        return await self.transition(task_id, TaskStatus.IN_PROGRESS, actor, operation_id=operation_id)

    async def send_for_approval(self, task_id: UUID, actor, operation_id: Optional[str] = None) -> TransitionOutcome:
        return await self.transition(task_id, TaskStatus.WAITING_APPROVAL, actor, operation_id=operation_id)

    async def complete_task(self, task_id: UUID, actor, operation_id: Optional[str] = None) -> TransitionOutcome:
        return await self.transition(task_id, TaskStatus.COMPLETED, actor, operation_id=operation_id)

    async def reopen_task(self, task_id: UUID, actor, operation_id: Optional[str] = None) -> TransitionOutcome:
        """Send a completed task back to in-progress."""
        task = await self.store.get_task(task_id)
        if task is not None and task.status != TaskStatus.COMPLETED:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.INVALID_TRANSITION,
                    message="Only completed tasks can be reopened",
                    details={"from": task.status, "to": TaskStatus.IN_PROGRESS},
                ),
                task_id=task.id,
                task_status=task.status,
                stage_id=task.stage_id,
            )
        return await self.transition(task_id, TaskStatus.IN_PROGRESS, actor, operation_id=operation_id)

    async def approve_task(
        self,
        task_id: UUID,
        actor,
        comment: Optional[str] = None,
        operation_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """Approve a task waiting for approval, optionally recording a comment."""
        return await self.transition(task_id, TaskStatus.APPROVED, actor, comment=comment, operation_id=operation_id)

    async def reject_task(
        self,
        task_id: UUID,
        actor,
        reason: str,
        operation_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """Reject a task waiting for approval. The reason is mandatory."""
        return await self.transition(task_id, TaskStatus.REJECTED, actor, comment=reason, operation_id=operation_id)

    async def transfer_task(
        self,
        task_id: UUID,
        new_assignees: Sequence[str],
        actor,
        reason: str,
    ) -> TransitionOutcome:
        """
        Hand a task to other people.

        The status does not change and no history entry is written; the
        transfer is recorded as a comment and each new assignee is notified.
        """
        task = await self.store.get_task(task_id)
        if task is None:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.TASK_NOT_FOUND,
                    message=f"Task {task_id} not found",
                    details={"task_id": str(task_id)},
                ),
                task_id=task_id,
            )

        if not can_work_on(task, actor):
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.FORBIDDEN,
                    message="Only the task's assignees or a manager can transfer it",
                    details={"required_permission": Permissions.MANAGE_PROJECTS},
                ),
                task_id=task.id,
                task_status=task.status,
                stage_id=task.stage_id,
            )

        assignees = normalize_assignees(new_assignees)
        if not assignees:
            return TransitionOutcome.blocked(
                BlockReason(code=BlockCode.ASSIGNEE_REQUIRED, message="Choose at least one person to transfer the task to"),
                task_id=task.id,
                task_status=task.status,
                stage_id=task.stage_id,
            )
        if not (reason or "").strip():
            return TransitionOutcome.blocked(
                BlockReason(code=BlockCode.COMMENT_REQUIRED, message="A reason is required to transfer a task"),
                task_id=task.id,
                task_status=task.status,
                stage_id=task.stage_id,
            )

        replace_assignees(task, assignees)
        await self.store.add(
            TaskComment(
                id=uuid.uuid4(),
                task_id=task.id,
                content=f"Task transferred by {actor.display_name}. Reason: {reason.strip()}",
                author_id=actor.id,
            )
        )
        await self.store.flush()

        project = await self.project_for_stage(task.stage_id)
        messages = [
            NotificationMessage(
                recipient_user_id=user_id,
                type=NotificationType.TASK_TRANSFERRED,
                title="Task transferred to you",
                message=f'{actor.display_name} transferred the task "{task.title}" to you. Reason: {reason.strip()}',
                related_task_id=task.id,
                priority=task.priority,
                project_name=project.name if project else None,
            )
            for user_id in assignees
        ]
        await self._dispatch(messages)
        logger.info("Task %s transferred by %s to %s", task.id, actor.id, ", ".join(assignees))

        return TransitionOutcome(
            ok=True,
            applied=True,
            task_id=task.id,
            task_status=task.status,
            stage_id=task.stage_id,
            project_id=project.id if project else None,
            project_status=project.status if project else None,
            notifications=messages,
        )

    # ------------------------------------------------------------------
    # Stage and project commands
    # ------------------------------------------------------------------

    async def approve_stage(self, stage_id: UUID, actor) -> TransitionOutcome:
        """
        Sign off an approval stage.

        The stage becomes approved, and completed straight away if all of its
        tasks are completed. Calling it again changes nothing.
        """
        if not has_capability(actor, Permissions.APPROVE):
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.FORBIDDEN,
                    message="Only approvers can approve stages",
                    details={"required_permission": Permissions.APPROVE},
                ),
                stage_id=stage_id,
            )

        stage = await self.store.get_stage(stage_id)
        if stage is None:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.STAGE_NOT_FOUND,
                    message=f"Stage {stage_id} not found",
                    details={"stage_id": str(stage_id)},
                ),
                stage_id=stage_id,
            )
        if not stage.requires_approval:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.APPROVAL_NOT_REQUIRED,
                    message="This stage does not require approval",
                    details={"stage_id": str(stage.id)},
                ),
                stage_id=stage.id,
                stage_status=stage.status,
            )

        previous = stage.status
        tasks = await self.store.list_stage_tasks(stage.id)
        stage.status = StageStatus.APPROVED
        if tasks and all(t.status == TaskStatus.COMPLETED for t in tasks):
            stage.status = StageStatus.COMPLETED

        project = await self.refresh_project(stage.project_id)
        await self.store.flush()
        logger.info("Stage %s approved by %s: %s -> %s", stage.id, actor.id, previous, stage.status)

        return TransitionOutcome(
            ok=True,
            applied=stage.status != previous,
            stage_id=stage.id,
            stage_status=stage.status,
            project_id=stage.project_id,
            project_status=project.status if project else None,
        )

    async def close_project(self, project_id: UUID, actor) -> TransitionOutcome:
        """
        Force a project closed.

        Every open task is completed (with a history entry), every stage is
        completed and the project becomes closed. Closed projects are never
        recomputed afterwards.
        """
        if not has_capability(actor, Permissions.CLOSE_PROJECT):
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.FORBIDDEN,
                    message="Only admins and managers can close projects",
                    details={"required_permission": Permissions.CLOSE_PROJECT},
                ),
                project_id=project_id,
            )

        project = await self.store.get_project(project_id)
        if project is None:
            return TransitionOutcome.blocked(
                BlockReason(
                    code=BlockCode.PROJECT_NOT_FOUND,
                    message=f"Project {project_id} not found",
                    details={"project_id": str(project_id)},
                ),
                project_id=project_id,
            )
        if project.status == ProjectStatus.CLOSED:
            return TransitionOutcome(ok=True, applied=False, project_id=project.id, project_status=project.status)

        now = utc_now()
        completed_ids: List[UUID] = []
        for task in await self.store.list_project_tasks(project.id):
            if task.status == TaskStatus.COMPLETED:
                continue
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
            await self.store.add(self._history_entry(task, actor, now))
            completed_ids.append(task.id)

        for stage in await self.store.list_project_stages(project.id):
            stage.status = StageStatus.COMPLETED

        project.status = ProjectStatus.CLOSED
        await self.store.flush()
        logger.info("Project %s closed by %s (%s task(s) force-completed)", project.id, actor.id, len(completed_ids))

        return TransitionOutcome(
            ok=True,
            applied=True,
            project_id=project.id,
            project_status=project.status,
            affected_task_ids=completed_ids,
        )

    async def list_pending_approvals(self, actor) -> List[ApprovalItem]:
        """The approval queue, rebuilt from a fresh snapshot."""
        if not has_capability(actor, Permissions.APPROVE):
            return []
        projects = await self.store.load_snapshot()
        return list_pending_approvals(projects, actor)

    # ------------------------------------------------------------------
    # Cascade
    # ------------------------------------------------------------------

    async def refresh_stage(self, stage_id: UUID) -> Tuple[Optional[Stage], Optional[Project]]:
        """Recompute a stage from its tasks, then its project. Missing rows are skipped."""
        stage = await self.store.get_stage(stage_id)
        if stage is None:
            logger.warning("Stage %s not found; skipping stage and project recompute", stage_id)
            return None, None

        tasks = await self.store.list_stage_tasks(stage.id)
        previous = stage.status
        recompute_stage(stage, tasks)
        if stage.status != previous:
            logger.info("Stage %s status %s -> %s", stage.id, previous, stage.status)

        project = await self.refresh_project(stage.project_id)
        await self.store.flush()
        return stage, project

    async def refresh_project(self, project_id: UUID) -> Optional[Project]:
        project = await self.store.get_project(project_id)
        if project is None:
            logger.warning("Project %s not found; skipping project recompute", project_id)
            return None

        stages = await self.store.list_project_stages(project.id)
        tasks = await self.store.list_project_tasks(project.id)
        previous = project.status
        recompute_project(project, stages, tasks)
        if project.status != previous:
            logger.info("Project %s status %s -> %s", project.id, previous, project.status)
        return project

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_dependency(self, task: Task) -> Optional[BlockReason]:
        if task.parent_task_id is None:
            return None
        predecessor = await self.store.get_task(task.parent_task_id)
        lookup = {predecessor.id: predecessor} if predecessor is not None else {}
        return can_start(task, lookup)

    async def _apply(
        self,
        task: Task,
        target: str,
        actor,
        comment: Optional[str],
        operation_id: Optional[str],
    ) -> TransitionOutcome:
        previous = task.status
        now = utc_now()

        apply_transition(task, target, actor.id, now)
        await self.store.add(self._history_entry(task, actor, now, operation_id))

        text = (comment or "").strip()
        if target == TaskStatus.REJECTED:
            await self._add_comment(task, actor, f"Rejected: {text}")
        elif target == TaskStatus.APPROVED and text:
            await self._add_comment(task, actor, f"Approved: {text}")

        stage, project = await self.refresh_stage(task.stage_id)
        logger.info("Task %s %s -> %s by %s", task.id, previous, target, actor.id)

        messages = [
            NotificationMessage(
                recipient_user_id=user_id,
                type=kind,
                title=title,
                message=message,
                related_task_id=task.id,
                priority=task.priority,
                project_name=project.name if project else None,
            )
            for kind, title, message in _status_messages(task, previous, target)
            for user_id in normalize_assignees(task.assignee_ids)
        ]
        await self._dispatch(messages)

        return TransitionOutcome(
            ok=True,
            applied=True,
            task_id=task.id,
            task_status=task.status,
            stage_id=task.stage_id,
            stage_status=stage.status if stage else None,
            project_id=project.id if project else None,
            project_status=project.status if project else None,
            notifications=messages,
        )

    async def _unchanged(self, task: Task) -> TransitionOutcome:
        stage = await self.store.get_stage(task.stage_id)
        project = await self.store.get_project(stage.project_id) if stage else None
        return TransitionOutcome(
            ok=True,
            applied=False,
            task_id=task.id,
            task_status=task.status,
            stage_id=task.stage_id,
            stage_status=stage.status if stage else None,
            project_id=project.id if project else None,
            project_status=project.status if project else None,
        )

    async def project_for_stage(self, stage_id: UUID) -> Optional[Project]:
        stage = await self.store.get_stage(stage_id)
        if stage is None:
            logger.warning("Stage %s not found", stage_id)
            return None
        return await self.store.get_project(stage.project_id)

    async def _add_comment(self, task: Task, actor, content: str) -> None:
        await self.store.add(
            TaskComment(
                id=uuid.uuid4(),
                task_id=task.id,
                content=content,
                author_id=actor.id,
            )
        )

    async def _dispatch(self, messages: Sequence[NotificationMessage]) -> None:
        for message in messages:
            await self.notifier.notify(message)

    @staticmethod
    def _history_entry(task: Task, actor, now, operation_id: Optional[str] = None) -> TaskStatusHistory:
        return TaskStatusHistory(
            id=uuid.uuid4(),
            task_id=task.id,
            status=task.status,
            user_id=actor.id,
            user_name=actor.display_name,
            timestamp=now,
            operation_id=operation_id,
        )
