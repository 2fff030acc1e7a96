"""Approval queue contents."""

import asyncio

import pytest

from conftest import APPROVER, MANAGER, WORKER
from stageflow.core.statuses import StageStatus, TaskStatus
from stageflow.services.approval_queue import list_pending_approvals, stage_awaits_signoff


def _snapshot(store):
    return asyncio.run(store.load_snapshot())


@pytest.mark.unit
def test_non_approvers_get_an_empty_queue(store, factory):
    project = factory.project()
    stage = factory.stage(project, requires_approval=True)
    factory.task(stage, status=TaskStatus.WAITING_APPROVAL, requires_approval=True)

    assert list_pending_approvals(_snapshot(store), WORKER) == []


@pytest.mark.unit
def test_waiting_tasks_are_listed_with_context(store, factory):
    project = factory.project(name="Launch")
    stage = factory.stage(project, name="Review")
    task = factory.task(stage, title="Legal check", status=TaskStatus.WAITING_APPROVAL, requires_approval=True)
    factory.task(stage, title="Draft", status=TaskStatus.IN_PROGRESS)

    items = list_pending_approvals(_snapshot(store), APPROVER)

    assert len(items) == 1
    item = items[0]
    assert item.kind == "task"
    assert item.id == task.id
    assert item.name == "Legal check"
    assert item.project_name == "Launch"
    assert item.stage_name == "Review"
    assert item.assignee_ids == [WORKER.id]


@pytest.mark.unit
def test_stage_with_all_tasks_completed_awaits_signoff(store, factory):
    project = factory.project()
    stage = factory.stage(project, name="QA", requires_approval=True)
    factory.task(stage, status=TaskStatus.COMPLETED)
    factory.task(stage, status=TaskStatus.COMPLETED)

    items = list_pending_approvals(_snapshot(store), MANAGER)

    assert [(i.kind, i.id) for i in items] == [("stage", stage.id)]


@pytest.mark.unit
def test_waiting_stage_is_listed_even_without_tasks(store, factory):
    project = factory.project()
    stage = factory.stage(project, requires_approval=True, status=StageStatus.WAITING_APPROVAL)

    items = list_pending_approvals(_snapshot(store), APPROVER)

    assert [i.id for i in items] == [stage.id]


@pytest.mark.unit
def test_stages_not_ready_are_left_out(store, factory):
    project = factory.project()
    plain = factory.stage(project, name="Plain", requires_approval=False)
    factory.task(plain, status=TaskStatus.COMPLETED)
    open_stage = factory.stage(project, name="Open", requires_approval=True)
    factory.task(open_stage, status=TaskStatus.COMPLETED)
    factory.task(open_stage, status=TaskStatus.IN_PROGRESS)
    empty = factory.stage(project, name="Empty", requires_approval=True)
    done = factory.stage(project, name="Done", requires_approval=True, status=StageStatus.COMPLETED)
    factory.task(done, status=TaskStatus.COMPLETED)

    snapshot = _snapshot(store)
    assert list_pending_approvals(snapshot, APPROVER) == []
    stages = {s.name: s for s in snapshot[0].stages}
    assert not stage_awaits_signoff(stages["Empty"])
    assert empty.id == stages["Empty"].id


@pytest.mark.unit
def test_queue_reflects_current_state_on_every_read(store, factory):
    project = factory.project()
    stage = factory.stage(project)
    task = factory.task(stage, status=TaskStatus.WAITING_APPROVAL, requires_approval=True)

    assert len(list_pending_approvals(_snapshot(store), APPROVER)) == 1

    task.status = TaskStatus.APPROVED

    assert list_pending_approvals(_snapshot(store), APPROVER) == []
