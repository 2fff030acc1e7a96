"""
Dependency gate for starting tasks.

A task with a parent_task_id may only move to in-progress once that
predecessor is completed. A predecessor that no longer exists does not block.
"""

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from stageflow.core.statuses import TaskStatus
from stageflow.schemas.workflow import BlockReason

logger = logging.getLogger(__name__)

DEPENDENCY_NOT_COMPLETED = "dependency_not_completed"


def can_start(task: Any, predecessor_lookup: Mapping[UUID, Any]) -> Optional[BlockReason]:
    """
    Decide whether ``task`` may start.

    Args:
        task: Task (ORM row or TaskRead) being started
        predecessor_lookup: Mapping of task id -> task, read fresh by the caller

    Returns:
        None when the task may start, otherwise a BlockReason naming the
        predecessor that is still open.
    """
    parent_id = getattr(task, "parent_task_id", None)
    if parent_id is None:
        return None

    predecessor = predecessor_lookup.get(parent_id)
    if predecessor is None:
        logger.warning(
            "Task %s references missing predecessor %s; not blocking",
            getattr(task, "id", None),
            parent_id,
        )
        return None

    if predecessor.status == TaskStatus.COMPLETED:
        return None

    label = predecessor.title or str(predecessor.id)
    return BlockReason(
        code=DEPENDENCY_NOT_COMPLETED,
        message=f"This task can only start after the linked task is completed: {label}",
        details={
            "predecessor_id": str(predecessor.id),
            "predecessor_title": predecessor.title,
            "predecessor_status": predecessor.status,
        },
    )
