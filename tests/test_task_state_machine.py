"""Edge table and field updates of the task status machine."""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from conftest import APPROVER, MANAGER, OTHER, WORKER
from stageflow.core.statuses import TaskStatus
from stageflow.services.task_state_machine import TRANSITIONS, apply_transition, validate_transition

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _task(status, requires_approval=False, **extra):
    fields = dict(
        id=uuid.uuid4(),
        status=status,
        requires_approval=requires_approval,
        completed_at=None,
        approved_by=None,
        approved_at=None,
        assignee_ids=[WORKER.id],
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target,requires_approval,actor",
    [
        (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, False, WORKER),
        (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, False, WORKER),
        (TaskStatus.IN_PROGRESS, TaskStatus.WAITING_APPROVAL, True, WORKER),
        (TaskStatus.WAITING_APPROVAL, TaskStatus.APPROVED, True, APPROVER),
        (TaskStatus.WAITING_APPROVAL, TaskStatus.APPROVED, True, MANAGER),
        (TaskStatus.APPROVED, TaskStatus.COMPLETED, True, WORKER),
        (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, False, WORKER),
    ],
)
def test_allowed_edges(current, target, requires_approval, actor):
    task = _task(current, requires_approval)
    assert validate_transition(task, target, actor) is None


@pytest.mark.unit
def test_rejected_is_terminal():
    assert TRANSITIONS[TaskStatus.REJECTED] == frozenset()
    for target in TaskStatus.ALL:
        if target == TaskStatus.REJECTED:
            continue
        reason = validate_transition(_task(TaskStatus.REJECTED), target, APPROVER)
        assert reason.code == "invalid_transition"


@pytest.mark.unit
def test_unknown_status_is_refused():
    reason = validate_transition(_task(TaskStatus.PENDING), "archived", WORKER)
    assert reason.code == "invalid_status"


@pytest.mark.unit
def test_missing_edge_is_refused():
    reason = validate_transition(_task(TaskStatus.PENDING), TaskStatus.COMPLETED, WORKER)
    assert reason.code == "invalid_transition"
    assert reason.details == {"from": TaskStatus.PENDING, "to": TaskStatus.COMPLETED}


@pytest.mark.unit
def test_approval_task_cannot_skip_to_completed():
    reason = validate_transition(_task(TaskStatus.IN_PROGRESS, requires_approval=True), TaskStatus.COMPLETED, WORKER)
    assert reason.code == "approval_required"


@pytest.mark.unit
def test_plain_task_cannot_be_sent_for_approval():
    reason = validate_transition(_task(TaskStatus.IN_PROGRESS), TaskStatus.WAITING_APPROVAL, WORKER)
    assert reason.code == "approval_not_required"


@pytest.mark.unit
@pytest.mark.parametrize("target", [TaskStatus.APPROVED, TaskStatus.REJECTED])
def test_only_approvers_decide(target):
    reason = validate_transition(_task(TaskStatus.WAITING_APPROVAL, True), target, WORKER, comment="looks fine")
    assert reason.code == "forbidden"


@pytest.mark.unit
@pytest.mark.parametrize("comment", [None, "", "   "])
def test_reject_needs_a_comment(comment):
    reason = validate_transition(_task(TaskStatus.WAITING_APPROVAL, True), TaskStatus.REJECTED, APPROVER, comment)
    assert reason.code == "comment_required"


@pytest.mark.unit
def test_completing_stamps_completed_at():
    task = _task(TaskStatus.IN_PROGRESS)
    apply_transition(task, TaskStatus.COMPLETED, WORKER.id, NOW)

    assert task.status == TaskStatus.COMPLETED
    assert task.completed_at == NOW


@pytest.mark.unit
def test_reopening_clears_completed_at():
    task = _task(TaskStatus.COMPLETED, completed_at=NOW)
    apply_transition(task, TaskStatus.IN_PROGRESS, WORKER.id, NOW)

    assert task.status == TaskStatus.IN_PROGRESS
    assert task.completed_at is None


@pytest.mark.unit
def test_approving_records_the_approver():
    task = _task(TaskStatus.WAITING_APPROVAL, True)
    apply_transition(task, TaskStatus.APPROVED, APPROVER.id, NOW)

    assert task.approved_by == APPROVER.id
    assert task.approved_at == NOW
    assert task.completed_at is None


@pytest.mark.unit
@pytest.mark.parametrize(
    "current,target",
    [
        (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
        (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
        (TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS),
    ],
)
def test_only_assignees_or_managers_move_a_task(current, target):
    task = _task(current)

    reason = validate_transition(task, target, OTHER)
    assert reason.code == "forbidden"
    assert reason.details == {"required_permission": "manage_projects"}

    assert validate_transition(task, target, MANAGER) is None
    assert validate_transition(task, target, WORKER) is None


@pytest.mark.unit
def test_approvers_decide_without_being_assigned():
    task = _task(TaskStatus.WAITING_APPROVAL, True, assignee_ids=[OTHER.id])
    assert validate_transition(task, TaskStatus.APPROVED, APPROVER) is None
