"""
Workflow result schemas.

Business-rule rejections travel as BlockReason values inside an outcome;
they are never raised.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from stageflow.schemas.notification import NotificationMessage


class BlockReason(BaseModel):
    """A typed, user-displayable explanation for a refused operation."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class TransitionOutcome(BaseModel):
    """
    Result of a workflow command (task transition, stage approval, project close).

    ``applied`` is False for accepted no-ops (already in the requested state,
    or a replayed operation_id). The stage/project fields carry the derived
    statuses after the cascade so callers do not need to re-fetch.
    """

    ok: bool
    applied: bool = False
    task_id: Optional[UUID] = None
    task_status: Optional[str] = None
    stage_id: Optional[UUID] = None
    stage_status: Optional[str] = None
    project_id: Optional[UUID] = None
    project_status: Optional[str] = None
    affected_task_ids: List[UUID] = Field(default_factory=list)
    block_reason: Optional[BlockReason] = None
    notifications: List[NotificationMessage] = Field(default_factory=list)

    @classmethod
    def blocked(cls, reason: BlockReason, **kwargs) -> "TransitionOutcome":
        return cls(ok=False, applied=False, block_reason=reason, **kwargs)


class TransitionRequest(BaseModel):
    """Body of POST /tasks/{id}/transition."""

    status: str
    comment: Optional[str] = None
    operation_id: Optional[str] = Field(None, max_length=100)


class ApproveTaskRequest(BaseModel):
    comment: Optional[str] = None
    operation_id: Optional[str] = Field(None, max_length=100)


class RejectTaskRequest(BaseModel):
    reason: str = ""
    operation_id: Optional[str] = Field(None, max_length=100)
