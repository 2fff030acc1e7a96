"""
Stage status derivation.

A stage's status follows from its tasks. Approval stages stop at
waiting-approval until an approver signs them off.
"""

from typing import Any, Iterable, Sequence

from stageflow.core.statuses import StageStatus, TaskStatus


def derive_stage_status(current: str, requires_approval: bool, task_statuses: Iterable[str]) -> str:
    """
    Return the status a stage should have given its tasks' statuses.

    A stage with no tasks never advances on its own.
    """
    statuses = list(task_statuses)
    if not statuses:
        return current

    if requires_approval:
        all_completed = all(s == TaskStatus.COMPLETED for s in statuses)
        any_waiting = any(s == TaskStatus.WAITING_APPROVAL for s in statuses)
        if current == StageStatus.PENDING and all_completed and not any_waiting:
            return StageStatus.WAITING_APPROVAL

        all_approved = all(s == TaskStatus.APPROVED for s in statuses)
        if all_approved:
            return StageStatus.WAITING_APPROVAL

        return current

    if all(s == TaskStatus.COMPLETED for s in statuses):
        return StageStatus.COMPLETED

    return current


def recompute_stage(stage: Any, tasks: Sequence[Any]) -> str:
    """Apply derive_stage_status to a stage row and return the new status."""
    status = derive_stage_status(
        stage.status,
        stage.requires_approval,
        [t.status for t in tasks],
    )
    stage.status = status
    return status
