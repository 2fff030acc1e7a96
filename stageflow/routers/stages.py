"""
Stage router - stage edits, stage sign-off and task creation.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from stageflow.core.dependencies import get_actor, get_store
from stageflow.errors import raise_for_block
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor
from stageflow.schemas.stage import StageRead, StageUpdate
from stageflow.schemas.task import TaskCreate, TaskRead
from stageflow.schemas.workflow import TransitionOutcome
from stageflow.services.project_service import ProjectService
from stageflow.services.task_service import TaskService
from stageflow.services.task_workflow_service import TaskWorkflowService

router = APIRouter(prefix="/stages", tags=["stages"])


@router.put("/{stage_id}", response_model=StageRead)
async def update_stage(
    stage_id: UUID,
    data: StageUpdate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return await ProjectService(store=store).update_stage(stage_id, data, actor)


@router.delete("/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stage(
    stage_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    await ProjectService(store=store).delete_stage(stage_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{stage_id}/approve", response_model=TransitionOutcome)
async def approve_stage(
    stage_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Sign off a stage that requires approval."""
    outcome = await TaskWorkflowService(store=store).approve_stage(stage_id, actor)
    if not outcome.ok:
        raise_for_block(outcome.block_reason)
    return outcome


@router.post("/{stage_id}/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    stage_id: UUID,
    data: TaskCreate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Create a task in a stage."""
    return await TaskService(store=store).create_task(stage_id, data, actor)
