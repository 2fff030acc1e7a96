"""
Project status derivation.

Closed projects are frozen. Otherwise any running task puts the project in
progress and a fully completed set of stages completes it; nothing sends a
project back to planning.
"""

from typing import Any, Iterable, Sequence

from stageflow.core.statuses import ProjectStatus, StageStatus, TaskStatus


def derive_project_status(current: str, stage_statuses: Iterable[str], task_statuses: Iterable[str]) -> str:
    if current == ProjectStatus.CLOSED:
        return current

    if any(s == TaskStatus.IN_PROGRESS for s in task_statuses):
        return ProjectStatus.IN_PROGRESS

    stages = list(stage_statuses)
    if stages and all(s == StageStatus.COMPLETED for s in stages):
        return ProjectStatus.COMPLETED

    return current


def recompute_project(project: Any, stages: Sequence[Any], tasks: Sequence[Any]) -> str:
    """Apply derive_project_status to a project row and return the new status."""
    status = derive_project_status(
        project.status,
        [s.status for s in stages],
        [t.status for t in tasks],
    )
    project.status = status
    return status
