"""
Models package.

Import all models here so they are registered with SQLAlchemy.
"""

from stageflow.models.project import Project
from stageflow.models.stage import Stage
from stageflow.models.task import Task, TaskAssignee
from stageflow.models.task_status_history import TaskStatusHistory
from stageflow.models.task_comment import TaskComment
from stageflow.models.notification import Notification

__all__ = [
    "Project",
    "Stage",
    "Task",
    "TaskAssignee",
    "TaskStatusHistory",
    "TaskComment",
    "Notification",
]
