"""
Task router - task edits, status transitions, comments and history.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from stageflow.core.dependencies import get_actor, get_store
from stageflow.errors import raise_for_block
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor
from stageflow.schemas.comment import CommentCreate, CommentRead, CommentThread
from stageflow.schemas.task import (
    TaskHistoryRead,
    TaskRead,
    TaskUpdate,
    TransferTaskRequest,
    UserTaskRead,
)
from stageflow.schemas.workflow import (
    ApproveTaskRequest,
    RejectTaskRequest,
    TransitionOutcome,
    TransitionRequest,
)
from stageflow.services.task_service import TaskService
from stageflow.services.task_workflow_service import TaskWorkflowService

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _checked(outcome: TransitionOutcome) -> TransitionOutcome:
    if not outcome.ok:
        raise_for_block(outcome.block_reason)
    return outcome


@router.get("/mine", response_model=List[UserTaskRead])
async def list_my_tasks(
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Tasks assigned to the caller."""
    return await TaskService(store=store).list_tasks_for(actor)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Get a task by ID."""
    return await TaskService(store=store).get_task(task_id)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: UUID,
    data: TaskUpdate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Update a task. Use /transition to change its status."""
    return await TaskService(store=store).update_task(task_id, data, actor)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    await TaskService(store=store).delete_task(task_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{task_id}/transition", response_model=TransitionOutcome)
async def transition_task(
    task_id: UUID,
    data: TransitionRequest,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """
    Move a task to another status.

    Refused transitions return 404/403/409 with the block reason code.
    """
    outcome = await TaskWorkflowService(store=store).transition(
        task_id,
        data.status,
        actor,
        comment=data.comment,
        operation_id=data.operation_id,
    )
    return _checked(outcome)


@router.post("/{task_id}/approve", response_model=TransitionOutcome)
async def approve_task(
    task_id: UUID,
    data: ApproveTaskRequest,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    outcome = await TaskWorkflowService(store=store).approve_task(
        task_id,
        actor,
        comment=data.comment,
        operation_id=data.operation_id,
    )
    return _checked(outcome)


@router.post("/{task_id}/reject", response_model=TransitionOutcome)
async def reject_task(
    task_id: UUID,
    data: RejectTaskRequest,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    outcome = await TaskWorkflowService(store=store).reject_task(
        task_id,
        actor,
        data.reason,
        operation_id=data.operation_id,
    )
    return _checked(outcome)


@router.post("/{task_id}/transfer", response_model=TransitionOutcome)
async def transfer_task(
    task_id: UUID,
    data: TransferTaskRequest,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    outcome = await TaskWorkflowService(store=store).transfer_task(
        task_id,
        data.assigned_to,
        actor,
        data.reason,
    )
    return _checked(outcome)


@router.get("/{task_id}/comments", response_model=List[CommentThread])
async def list_comments(
    task_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Comments of a task, replies nested under their parent."""
    return await TaskService(store=store).list_comment_threads(task_id)


@router.post("/{task_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: UUID,
    data: CommentCreate,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return await TaskService(store=store).add_comment(task_id, data, actor)


@router.get("/{task_id}/history", response_model=List[TaskHistoryRead])
async def list_history(
    task_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return await TaskService(store=store).list_history(task_id)
