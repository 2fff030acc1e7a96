"""
Schemas package.

Import all schemas here for easy access.
"""

from stageflow.schemas.actor import Actor
from stageflow.schemas.approval import ApprovalItem
from stageflow.schemas.comment import CommentCreate, CommentRead, CommentThread
from stageflow.schemas.health import HealthReport
from stageflow.schemas.notification import NotificationMessage, NotificationRead
from stageflow.schemas.project import ProjectCreate, ProjectRead, ProjectUpdate
from stageflow.schemas.stage import StageCreate, StageRead, StageUpdate
from stageflow.schemas.task import (
    TaskCreate,
    TaskHistoryRead,
    TaskRead,
    TaskUpdate,
    TransferTaskRequest,
    UserTaskRead,
)
from stageflow.schemas.workflow import (
    ApproveTaskRequest,
    BlockReason,
    RejectTaskRequest,
    TransitionRequest,
    TransitionOutcome,
)

__all__ = [
    "Actor",
    "ApprovalItem",
    "CommentCreate",
    "CommentRead",
    "CommentThread",
    "HealthReport",
    "NotificationMessage",
    "NotificationRead",
    "ProjectCreate",
    "ProjectRead",
    "ProjectUpdate",
    "StageCreate",
    "StageRead",
    "StageUpdate",
    "TaskCreate",
    "TaskHistoryRead",
    "TaskRead",
    "TaskUpdate",
    "TransferTaskRequest",
    "UserTaskRead",
    "ApproveTaskRequest",
    "BlockReason",
    "RejectTaskRequest",
    "TransitionRequest",
    "TransitionOutcome",
]
