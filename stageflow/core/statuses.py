"""
Status and priority vocabularies for projects, stages and tasks.

Values are stored as plain strings in the database, so these classes only
group the allowed values (same shape as the role constants in
stageflow.core.permissions).
"""


class TaskStatus:
    """Lifecycle states of a task."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    WAITING_APPROVAL = "waiting-approval"
    APPROVED = "approved"
    COMPLETED = "completed"
    REJECTED = "rejected"

    ALL = [PENDING, IN_PROGRESS, WAITING_APPROVAL, APPROVED, COMPLETED, REJECTED]


class StageStatus:
    """Lifecycle states of a stage."""
    PENDING = "pending"
    WAITING_APPROVAL = "waiting-approval"
    APPROVED = "approved"
    COMPLETED = "completed"

    ALL = [PENDING, WAITING_APPROVAL, APPROVED, COMPLETED]


class ProjectStatus:
    """Lifecycle states of a project."""
    PLANNING = "planning"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CLOSED = "closed"

    ALL = [PLANNING, IN_PROGRESS, COMPLETED, ON_HOLD, CLOSED]


class Priority:
    """Priority levels shared by projects, tasks and notifications."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    ALL = [LOW, MEDIUM, HIGH, CRITICAL]


class NotificationType:
    """Kinds of notification records the workflow produces."""
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_APPROVED = "task_approved"
    TASK_REJECTED = "task_rejected"
    TASK_TRANSFERRED = "task_transferred"
    TASK_ASSIGNED = "task_assigned"
    COMMENT_MENTION = "comment_mention"
    DEADLINE_WARNING = "deadline_warning"
    DEADLINE_OVERDUE = "deadline_overdue"

    DEADLINE_TYPES = [DEADLINE_WARNING, DEADLINE_OVERDUE]
