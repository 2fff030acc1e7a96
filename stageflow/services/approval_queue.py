"""
Approval queue builder.

Rebuilt from a fresh snapshot on every read; nothing is cached between calls.
"""

from typing import List, Sequence

from stageflow.core.permissions import Permissions, has_capability
from stageflow.core.statuses import StageStatus, TaskStatus
from stageflow.schemas.approval import ApprovalItem
from stageflow.schemas.project import ProjectRead
from stageflow.schemas.stage import StageRead


def stage_awaits_signoff(stage: StageRead) -> bool:
    """True when an approval stage is ready for (or already waiting on) an approver."""
    if not stage.requires_approval:
        return False
    if stage.status == StageStatus.WAITING_APPROVAL:
        return True
    if stage.status != StageStatus.PENDING or not stage.tasks:
        return False
    statuses = [t.status for t in stage.tasks]
    return (
        all(s == TaskStatus.COMPLETED for s in statuses)
        and not any(s == TaskStatus.WAITING_APPROVAL for s in statuses)
    )


def list_pending_approvals(projects: Sequence[ProjectRead], actor) -> List[ApprovalItem]:
    """
    Everything the actor could approve right now: stages awaiting sign-off
    first within each stage, then that stage's tasks waiting for approval.

    Actors without the approve capability get an empty list.
    """
    if not has_capability(actor, Permissions.APPROVE):
        return []

    items: List[ApprovalItem] = []
    for project in projects:
        context = {
            "project_id": project.id,
            "project_name": project.name,
            "project_description": project.description,
        }
        for stage in project.stages:
            stage_context = dict(
                context,
                stage_id=stage.id,
                stage_name=stage.name,
                stage_description=stage.description,
                stage_status=stage.status,
            )
            if stage_awaits_signoff(stage):
                items.append(
                    ApprovalItem(
                        kind="stage",
                        id=stage.id,
                        name=stage.name,
                        description=stage.description,
                        status=stage.status,
                        **stage_context,
                    )
                )
            for task in stage.tasks:
                if task.status != TaskStatus.WAITING_APPROVAL:
                    continue
                items.append(
                    ApprovalItem(
                        kind="task",
                        id=task.id,
                        name=task.title,
                        description=task.description,
                        status=task.status,
                        priority=task.priority,
                        assignee_ids=list(task.assignee_ids),
                        due_date=task.due_date,
                        requires_approval=task.requires_approval,
                        **stage_context,
                    )
                )
    return items
