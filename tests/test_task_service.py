"""Task creation, editing, deletion, comments and history."""

import asyncio
import uuid
from datetime import datetime, timezone

import pytest

from conftest import ADMIN, MANAGER, OTHER, WORKER
from stageflow.core.statuses import NotificationType, ProjectStatus, StageStatus, TaskStatus
from stageflow.errors import AppError
from stageflow.schemas.comment import CommentCreate
from stageflow.schemas.task import TaskCreate, TaskUpdate
from stageflow.services.task_service import TaskService


@pytest.fixture()
def service(store, notifier):
    return TaskService(store=store, notifier=notifier)


@pytest.mark.unit
def test_create_task_records_history_and_notifies(store, factory, notifier, service):
    project = factory.project(name="Launch")
    stage = factory.stage(project)

    task = asyncio.run(
        service.create_task(
            stage.id,
            TaskCreate(title="Write copy", assigned_to=[WORKER.id, "", WORKER.id], priority="high"),
            MANAGER,
        )
    )

    assert task.status == TaskStatus.PENDING
    assert task.assignee_ids == [WORKER.id]
    assert task.created_by == MANAGER.id
    assert [(h.task_id, h.status, h.user_id) for h in store.history] == [(task.id, TaskStatus.PENDING, MANAGER.id)]
    messages = notifier.of_type(NotificationType.TASK_ASSIGNED)
    assert [(m.recipient_user_id, m.project_name, m.priority) for m in messages] == [(WORKER.id, "Launch", "high")]


@pytest.mark.unit
def test_new_task_reopens_nothing_but_keeps_stage_open(store, factory, service):
    project = factory.project()
    stage = factory.stage(project)

    asyncio.run(service.create_task(stage.id, TaskCreate(title="First"), ADMIN))

    assert stage.status == StageStatus.PENDING
    assert project.status == ProjectStatus.PLANNING


@pytest.mark.unit
def test_create_task_in_unknown_stage_is_404(service):
    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.create_task(uuid.uuid4(), TaskCreate(title="Lost"), ADMIN))

    assert exc_info.value.status_code == 404
    assert exc_info.value.payload["error"]["code"] == "stage_not_found"


@pytest.mark.unit
def test_create_task_with_unknown_predecessor_is_refused(factory, service):
    stage = factory.stage(factory.project())

    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.create_task(stage.id, TaskCreate(title="Late", parent_task_id=uuid.uuid4()), ADMIN))

    assert exc_info.value.payload["error"]["code"] == "invalid_reference"


@pytest.mark.unit
def test_update_task_changes_fields_and_notifies_new_assignees(store, factory, notifier, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage, status=TaskStatus.IN_PROGRESS)
    due = datetime(2024, 6, 1, tzinfo=timezone.utc)

    updated = asyncio.run(
        service.update_task(
            task.id,
            TaskUpdate(title="Rewrite copy", due_date=due, assigned_to=[WORKER.id, OTHER.id]),
            MANAGER,
        )
    )

    assert updated.title == "Rewrite copy"
    assert updated.due_date == due
    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.assignee_ids == [WORKER.id, OTHER.id]
    assert [m.recipient_user_id for m in notifier.of_type(NotificationType.TASK_ASSIGNED)] == [OTHER.id]


@pytest.mark.unit
def test_task_cannot_depend_on_itself_or_form_a_cycle(factory, service):
    stage = factory.stage(factory.project())
    first = factory.task(stage, title="First")
    second = factory.task(stage, title="Second", parent=first)

    with pytest.raises(AppError) as self_link:
        asyncio.run(service.update_task(first.id, TaskUpdate(parent_task_id=first.id), ADMIN))
    assert "itself" in self_link.value.payload["error"]["message"]

    with pytest.raises(AppError) as cycle:
        asyncio.run(service.update_task(first.id, TaskUpdate(parent_task_id=second.id), ADMIN))
    assert "cycle" in cycle.value.payload["error"]["message"]
    assert first.parent_task_id is None


@pytest.mark.unit
def test_delete_task_unlinks_dependents_and_recomputes(store, factory, service):
    project = factory.project()
    stage = factory.stage(project)
    first = factory.task(stage, title="First")
    second = factory.task(stage, title="Second", status=TaskStatus.COMPLETED, parent=first)

    asyncio.run(service.delete_task(first.id, ADMIN))

    assert first.id not in store.tasks
    assert second.parent_task_id is None
    assert stage.status == StageStatus.COMPLETED
    assert project.status == ProjectStatus.COMPLETED


@pytest.mark.unit
def test_only_creator_or_manager_deletes(factory, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage, created_by=OTHER.id)

    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.delete_task(task.id, WORKER))
    assert exc_info.value.status_code == 403

    asyncio.run(service.delete_task(task.id, OTHER))


@pytest.mark.unit
def test_list_tasks_for_resolves_context(factory, service):
    project = factory.project(name="Launch")
    stage = factory.stage(project, name="Content")
    first = factory.task(stage, title="Outline", assignees=(OTHER.id,))
    factory.task(stage, title="Draft", parent=first)

    tasks = asyncio.run(service.list_tasks_for(WORKER))

    assert len(tasks) == 1
    assert tasks[0].title == "Draft"
    assert tasks[0].project_name == "Launch"
    assert tasks[0].stage_name == "Content"
    assert tasks[0].parent_task_title == "Outline"


@pytest.mark.unit
def test_comments_form_threads_and_mentions_notify(store, factory, notifier, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage)

    async def main():
        root = await service.add_comment(task.id, CommentCreate(content="Is the copy final?"), MANAGER)
        await service.add_comment(
            task.id,
            CommentCreate(content="Almost", parent_id=root.id, mentioned_user_id=MANAGER.id),
            WORKER,
        )
        await service.add_comment(task.id, CommentCreate(content="Unrelated"), OTHER)
        return await service.list_comment_threads(task.id)

    threads = asyncio.run(main())

    assert [t.content for t in threads] == ["Is the copy final?", "Unrelated"]
    assert [r.content for r in threads[0].replies] == ["Almost"]
    mentions = notifier.of_type(NotificationType.COMMENT_MENTION)
    assert [m.recipient_user_id for m in mentions] == [MANAGER.id]


@pytest.mark.unit
def test_reply_to_unknown_comment_is_404(factory, service):
    task = factory.task(factory.stage(factory.project()))

    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.add_comment(task.id, CommentCreate(content="?", parent_id=uuid.uuid4()), WORKER))

    assert exc_info.value.payload["error"]["code"] == "comment_not_found"


@pytest.mark.unit
def test_history_is_listed_in_order(store, factory, workflow, service):
    task = factory.task(factory.stage(factory.project()))

    async def main():
        await workflow.start_task(task.id, WORKER)
        await workflow.complete_task(task.id, WORKER)
        return await service.list_history(task.id)

    history = asyncio.run(main())

    assert [h.status for h in history] == [TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED]


@pytest.mark.unit
def test_explicit_nulls_leave_required_fields_alone(factory, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage, title="Write copy", requires_approval=True)
    due = datetime(2024, 6, 1, tzinfo=timezone.utc)
    task.due_date = due

    updated = asyncio.run(
        service.update_task(
            task.id,
            TaskUpdate(title=None, priority=None, requires_approval=None, due_date=None),
            WORKER,
        )
    )

    assert updated.title == "Write copy"
    assert updated.priority == "medium"
    assert updated.requires_approval is True
    assert updated.due_date is None


@pytest.mark.unit
def test_only_creator_assignees_or_managers_edit(factory, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage, created_by=MANAGER.id)

    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.update_task(task.id, TaskUpdate(title="Hijacked"), OTHER))
    assert exc_info.value.status_code == 403
    assert exc_info.value.payload["error"]["code"] == "forbidden"
    assert task.title == "Write copy"

    asyncio.run(service.update_task(task.id, TaskUpdate(title="Tightened"), WORKER))
    assert task.title == "Tightened"


@pytest.mark.unit
@pytest.mark.parametrize("current", [TaskStatus.IN_PROGRESS, TaskStatus.WAITING_APPROVAL])
def test_approval_flag_is_locked_mid_flight(factory, service, current):
    stage = factory.stage(factory.project())
    task = factory.task(stage, status=current, requires_approval=True)

    with pytest.raises(AppError) as exc_info:
        asyncio.run(service.update_task(task.id, TaskUpdate(requires_approval=False), MANAGER))

    assert exc_info.value.status_code == 409
    assert exc_info.value.payload["error"]["code"] == "approval_flag_locked"
    assert task.requires_approval is True


@pytest.mark.unit
def test_approval_flag_can_change_before_work_starts(factory, service):
    stage = factory.stage(factory.project())
    task = factory.task(stage)

    updated = asyncio.run(service.update_task(task.id, TaskUpdate(requires_approval=True), MANAGER))

    assert updated.requires_approval is True
