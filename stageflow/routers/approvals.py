"""Approval queue router."""

from typing import List

from fastapi import APIRouter, Depends

from stageflow.core.dependencies import get_actor, get_store
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor
from stageflow.schemas.approval import ApprovalItem
from stageflow.services.task_workflow_service import TaskWorkflowService

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("", response_model=List[ApprovalItem])
async def list_pending_approvals(
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """
    Stages and tasks waiting on an approver.

    Empty for callers without the approve capability.
    """
    return await TaskWorkflowService(store=store).list_pending_approvals(actor)
