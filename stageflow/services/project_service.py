"""
Project business logic service.

Creates projects with their stage/task tree, edits and deletes projects and
stages, and answers which projects a user can see. Project status is never
written here directly; it follows from the stages and tasks.
"""

import logging
import uuid
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.core.permissions import Permissions, has_capability
from stageflow.core.statuses import ProjectStatus, StageStatus
from stageflow.errors import raise_app_error
from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore, assemble_snapshot
from stageflow.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from stageflow.schemas.stage import StageCreate, StageRead, StageUpdate
from stageflow.services.notification_service import DatabaseNotificationSink, NotificationSink
from stageflow.services.task_service import TaskService
from stageflow.services.task_workflow_service import TaskWorkflowService

logger = logging.getLogger(__name__)


class ProjectService:
    """Service for project and stage management."""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        store: Optional[WorkflowStore] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.store = store or SqlWorkflowStore(db)
        self.notifier = notifier or DatabaseNotificationSink(self.store)
        self.tasks = TaskService(store=self.store, notifier=self.notifier)
        self.workflow = TaskWorkflowService(store=self.store, notifier=self.notifier)

    async def create_project(self, data: ProjectCreate, actor) -> ProjectRead:
        """Create a project together with its stages and their tasks."""
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can create projects")

        project = Project(
            id=uuid.uuid4(),
            name=data.name,
            description=data.description,
            status=ProjectStatus.PLANNING,
            priority=data.priority,
            created_by=actor.id,
        )
        await self.store.add(project)

        for position, stage_data in enumerate(data.stages):
            await self._create_stage(project, stage_data, actor, default_order=position)

        await self.workflow.refresh_project(project.id)
        logger.info("Project %s created by %s with %s stage(s)", project.id, actor.id, len(data.stages))
        return await self._tree(project)

    async def get_project(self, project_id: UUID, actor) -> ProjectRead:
        """A project tree, if the actor may see it."""
        project = await self._get_project_or_404(project_id)
        if not has_capability(actor, Permissions.VIEW_ALL_PROJECTS):
            visible = {p.id for p in await self.store.list_projects_visible_to(actor.id)}
            if project.id not in visible:
                raise_app_error(status.HTTP_403_FORBIDDEN, "forbidden", "You do not have access to this project")

        snapshot = await self.store.load_snapshot([project.id])
        return snapshot[0]

    async def list_projects_for(self, actor) -> List[ProjectRead]:
        """
        Projects visible to the actor.

        Admins and managers see all of them; everybody else sees the ones they
        created or have a task in.
        """
        if has_capability(actor, Permissions.VIEW_ALL_PROJECTS):
            return await self.store.load_snapshot()

        ids = [p.id for p in await self.store.list_projects_visible_to(actor.id)]
        if not ids:
            return []
        return await self.store.load_snapshot(ids)

    async def update_project(self, project_id: UUID, data: ProjectUpdate, actor) -> ProjectRead:
        """Update name, description and priority."""
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can edit projects")
        project = await self._get_project_or_404(project_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(project, field, value)

        await self.store.flush()
        return await self._tree(project)

    async def delete_project(self, project_id: UUID, actor) -> None:
        """Delete a project with its stages, tasks, comments and history."""
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can delete projects")
        project = await self._get_project_or_404(project_id)
        await self.store.delete(project)
        logger.info("Project %s deleted by %s", project_id, actor.id)

    async def add_stage(self, project_id: UUID, data: StageCreate, actor) -> StageRead:
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can add stages")
        project = await self._get_project_or_404(project_id)

        existing = await self.store.list_project_stages(project.id)
        stage = await self._create_stage(project, data, actor, default_order=len(existing))
        await self.workflow.refresh_stage(stage.id)
        return await self._stage_read(stage)

    async def update_stage(self, stage_id: UUID, data: StageUpdate, actor) -> StageRead:
        """Update a stage, then recompute it since requires_approval may have changed."""
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can edit stages")
        stage = await self._get_stage_or_404(stage_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(stage, field, value)

        await self.workflow.refresh_stage(stage.id)
        return await self._stage_read(stage)

    async def delete_stage(self, stage_id: UUID, actor) -> None:
        self._require(actor, Permissions.MANAGE_PROJECTS, "Only admins and managers can delete stages")
        stage = await self._get_stage_or_404(stage_id)
        project_id = stage.project_id
        await self.store.delete(stage)
        await self.workflow.refresh_project(project_id)
        await self.store.flush()
        logger.info("Stage %s deleted by %s", stage_id, actor.id)

    async def _create_stage(self, project: Project, data: StageCreate, actor, default_order: int) -> Stage:
        order_index = data.order_index if "order_index" in data.model_fields_set else default_order
        stage = Stage(
            id=uuid.uuid4(),
            project_id=project.id,
            name=data.name,
            description=data.description,
            order_index=order_index,
            requires_approval=data.requires_approval,
            status=StageStatus.PENDING,
        )
        await self.store.add(stage)

        for task_data in data.tasks:
            await self.tasks.build_task(stage, task_data, actor, project_name=project.name)
        return stage

    async def _tree(self, project: Project) -> ProjectRead:
        stages = await self.store.list_project_stages(project.id)
        tasks = await self.store.list_project_tasks(project.id)
        return assemble_snapshot([project], stages, tasks)[0]

    async def _stage_read(self, stage: Stage) -> StageRead:
        project = await self._get_project_or_404(stage.project_id)
        tree = await self._tree(project)
        for item in tree.stages:
            if item.id == stage.id:
                return item
        raise_app_error(status.HTTP_404_NOT_FOUND, "stage_not_found", f"Stage {stage.id} not found")

    async def _get_project_or_404(self, project_id: UUID) -> Project:
        project = await self.store.get_project(project_id)
        if project is None:
            raise_app_error(status.HTTP_404_NOT_FOUND, "project_not_found", f"Project {project_id} not found")
        return project

    async def _get_stage_or_404(self, stage_id: UUID) -> Stage:
        stage = await self.store.get_stage(stage_id)
        if stage is None:
            raise_app_error(status.HTTP_404_NOT_FOUND, "stage_not_found", f"Stage {stage_id} not found")
        return stage

    @staticmethod
    def _require(actor, permission: str, message: str) -> None:
        if not has_capability(actor, permission):
            raise_app_error(
                status.HTTP_403_FORBIDDEN,
                "forbidden",
                message,
                {"required_permission": permission},
            )
