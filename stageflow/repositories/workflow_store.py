"""
Storage interface used by the workflow services.

The services never talk to SQLAlchemy directly; they go through a
WorkflowStore. SqlWorkflowStore is the production implementation, tests use an
in-memory one.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence
from uuid import UUID

from stageflow.models.notification import Notification
from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.models.task import Task
from stageflow.models.task_comment import TaskComment
from stageflow.models.task_status_history import TaskStatusHistory
from stageflow.schemas.project import ProjectRead
from stageflow.schemas.stage import StageRead
from stageflow.schemas.task import TaskRead


class WorkflowStore(Protocol):
    """Everything the task/stage/project workflow needs from persistence."""

    async def get_project(self, project_id: UUID) -> Optional[Project]: ...

    async def get_stage(self, stage_id: UUID) -> Optional[Stage]: ...

    async def get_task(self, task_id: UUID) -> Optional[Task]: ...

    async def list_projects(self, project_ids: Optional[Sequence[UUID]] = None) -> List[Project]: ...

    async def list_projects_visible_to(self, user_id: str) -> List[Project]: ...

    async def list_project_stages(self, project_id: UUID) -> List[Stage]: ...

    async def list_stage_tasks(self, stage_id: UUID) -> List[Task]: ...

    async def list_project_tasks(self, project_id: UUID) -> List[Task]: ...

    async def list_dependent_tasks(self, task_id: UUID) -> List[Task]: ...

    async def list_tasks_assigned_to(self, user_id: str) -> List[Task]: ...

    async def list_open_tasks_with_due_date(self) -> List[Task]: ...

    async def list_history(self, task_id: UUID) -> List[TaskStatusHistory]: ...

    async def find_history_by_operation(self, operation_id: str) -> Optional[TaskStatusHistory]: ...

    async def list_comments(self, task_id: UUID) -> List[TaskComment]: ...

    async def has_notification(self, user_id: str, task_id: UUID, types: Sequence[str]) -> bool: ...

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]: ...

    async def list_notifications(self, user_id: str, unread_only: bool = False) -> List[Notification]: ...

    async def count_unread_notifications(self, user_id: str) -> int: ...

    async def mark_all_notifications_read(self, user_id: str) -> int: ...

    async def add(self, entity: Any) -> Any: ...

    async def add_isolated(self, entity: Any) -> Any: ...

    async def delete(self, entity: Any) -> None: ...

    async def flush(self) -> None: ...

    async def load_snapshot(self, project_ids: Optional[Sequence[UUID]] = None) -> List[ProjectRead]: ...


def assemble_snapshot(
    projects: Sequence[Project],
    stages: Sequence[Stage],
    tasks: Sequence[Task],
) -> List[ProjectRead]:
    """
    Build read-only project trees from flat rows.

    Stages keep the order they were given in (order_index), tasks are sorted by
    creation time inside their stage.
    """
    tasks_by_stage: Dict[UUID, List[TaskRead]] = {}
    for task in sorted(tasks, key=lambda t: t.created_at):
        tasks_by_stage.setdefault(task.stage_id, []).append(TaskRead.model_validate(task))

    stages_by_project: Dict[UUID, List[StageRead]] = {}
    for stage in sorted(stages, key=lambda s: (s.order_index, s.created_at)):
        stages_by_project.setdefault(stage.project_id, []).append(
            StageRead(
                id=stage.id,
                created_at=stage.created_at,
                updated_at=stage.updated_at,
                project_id=stage.project_id,
                name=stage.name,
                description=stage.description,
                order_index=stage.order_index,
                requires_approval=stage.requires_approval,
                status=stage.status,
                tasks=tasks_by_stage.get(stage.id, []),
            )
        )

    return [
        ProjectRead(
            id=project.id,
            created_at=project.created_at,
            updated_at=project.updated_at,
            name=project.name,
            description=project.description,
            status=project.status,
            priority=project.priority,
            created_by=project.created_by,
            stages=stages_by_project.get(project.id, []),
        )
        for project in projects
    ]
