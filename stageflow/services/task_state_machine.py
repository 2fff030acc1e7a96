"""
Task status rules.

Pure functions: which edges exist, who may take them, and what a transition
does to the task's own fields. Persistence, history and the stage/project
cascade live in task_workflow_service.
"""

from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional

from stageflow.core.permissions import Permissions, has_capability
from stageflow.core.statuses import TaskStatus
from stageflow.schemas.workflow import BlockReason


class BlockCode:
    """Codes carried by BlockReason."""
    TASK_NOT_FOUND = "task_not_found"
    STAGE_NOT_FOUND = "stage_not_found"
    PROJECT_NOT_FOUND = "project_not_found"
    INVALID_STATUS = "invalid_status"
    INVALID_TRANSITION = "invalid_transition"
    APPROVAL_REQUIRED = "approval_required"
    APPROVAL_NOT_REQUIRED = "approval_not_required"
    FORBIDDEN = "forbidden"
    COMMENT_REQUIRED = "comment_required"
    DEPENDENCY_NOT_COMPLETED = "dependency_not_completed"
    INVALID_REFERENCE = "invalid_reference"
    ASSIGNEE_REQUIRED = "assignee_required"
    OPERATION_CONFLICT = "operation_conflict"

    NOT_FOUND = [TASK_NOT_FOUND, STAGE_NOT_FOUND, PROJECT_NOT_FOUND]


# from -> allowed targets. Rejected is terminal.
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.WAITING_APPROVAL, TaskStatus.COMPLETED}),
    TaskStatus.WAITING_APPROVAL: frozenset({TaskStatus.APPROVED, TaskStatus.REJECTED}),
    TaskStatus.APPROVED: frozenset({TaskStatus.COMPLETED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.REJECTED: frozenset(),
}

APPROVER_TARGETS = frozenset({TaskStatus.APPROVED, TaskStatus.REJECTED})


def can_work_on(task: Any, actor: Any) -> bool:
    """Assignees and project managers may move a task along or hand it over."""
    if actor is None:
        return False
    if actor.id in task.assignee_ids:
        return True
    return has_capability(actor, Permissions.MANAGE_PROJECTS)


def validate_transition(
    task: Any,
    target: str,
    actor: Any,
    comment: Optional[str] = None,
) -> Optional[BlockReason]:
    """
    Check a requested transition against the edge table.

    The dependency gate is not checked here because it needs a fresh read of
    the predecessor; see dependency_resolver.can_start.

    Returns:
        None if the edge may be taken, otherwise the reason it may not.
    """
    if target not in TaskStatus.ALL:
        return BlockReason(
            code=BlockCode.INVALID_STATUS,
            message=f"Unknown task status: {target}",
            details={"status": target},
        )

    current = task.status
    if target not in TRANSITIONS.get(current, frozenset()):
        return BlockReason(
            code=BlockCode.INVALID_TRANSITION,
            message=f"A task cannot move from {current} to {target}",
            details={"from": current, "to": target},
        )

    if current == TaskStatus.IN_PROGRESS:
        if target == TaskStatus.COMPLETED and task.requires_approval:
            return BlockReason(
                code=BlockCode.APPROVAL_REQUIRED,
                message="This task requires approval; send it for approval before completing it",
                details={"task_id": str(task.id)},
            )
        if target == TaskStatus.WAITING_APPROVAL and not task.requires_approval:
            return BlockReason(
                code=BlockCode.APPROVAL_NOT_REQUIRED,
                message="This task does not require approval; complete it directly",
                details={"task_id": str(task.id)},
            )

    if target in APPROVER_TARGETS:
        if not has_capability(actor, Permissions.APPROVE):
            return BlockReason(
                code=BlockCode.FORBIDDEN,
                message="Only approvers can approve or reject tasks",
                details={"required_permission": Permissions.APPROVE},
            )
        if target == TaskStatus.REJECTED and not (comment or "").strip():
            return BlockReason(
                code=BlockCode.COMMENT_REQUIRED,
                message="A reason is required to reject a task",
                details={"task_id": str(task.id)},
            )
    elif not can_work_on(task, actor):
        return BlockReason(
            code=BlockCode.FORBIDDEN,
            message="Only the task's assignees or a manager can change its status",
            details={"required_permission": Permissions.MANAGE_PROJECTS},
        )

    return None


def apply_transition(task: Any, target: str, actor_id: str, now: datetime) -> None:
    """Write the new status and its timestamps onto the task."""
    previous = task.status
    task.status = target

    if target == TaskStatus.COMPLETED:
        task.completed_at = now
    elif previous == TaskStatus.COMPLETED:
        task.completed_at = None

    if target == TaskStatus.APPROVED:
        task.approved_by = actor_id
        task.approved_at = now
