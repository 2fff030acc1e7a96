"""
Project router - projects, their stages and project close.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from stageflow.core.dependencies import get_actor, get_store
from stageflow.errors import raise_for_block
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor
from stageflow.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from stageflow.schemas.stage import StageCreate, StageRead
from stageflow.schemas.workflow import TransitionOutcome
from stageflow.services.project_service import ProjectService
from stageflow.services.task_workflow_service import TaskWorkflowService

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("", response_model=List[ProjectRead])
async def list_projects(
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Projects visible to the caller, with their stages and tasks."""
    return await ProjectService(store=store).list_projects_for(actor)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Create a project with its stages and tasks."""
    return await ProjectService(store=store).create_project(data, actor)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
    project_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return await ProjectService(store=store).get_project(project_id, actor)


@router.put("/{project_id}", response_model=ProjectRead)
async def update_project(
    project_id: UUID,
    data: ProjectUpdate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Update name, description or priority. Status is derived and not editable."""
    return await ProjectService(store=store).update_project(project_id, data, actor)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    await ProjectService(store=store).delete_project(project_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/close", response_model=TransitionOutcome)
async def close_project(
    project_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Complete every open task and stage and close the project."""
    outcome = await TaskWorkflowService(store=store).close_project(project_id, actor)
    if not outcome.ok:
        raise_for_block(outcome.block_reason)
    return outcome


@router.post("/{project_id}/stages", response_model=StageRead, status_code=status.HTTP_201_CREATED)
async def add_stage(
    project_id: UUID,
    data: StageCreate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return await ProjectService(store=store).add_stage(project_id, data, actor)
