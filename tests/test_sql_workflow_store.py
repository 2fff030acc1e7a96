"""SqlWorkflowStore error mapping and snapshot retries."""

import asyncio
import os
import uuid

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stageflow.errors import PersistenceError
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore


class _EmptyResult:
    def scalars(self):
        return self

    def all(self):
        return []

    def scalar_one_or_none(self):
        return None


class FlakySession:
    """Stands in for AsyncSession: the first ``failures`` executes raise."""

    def __init__(self, failures: int):
        self.failures = failures
        self.executes = 0
        self.rollbacks = 0

    async def execute(self, query):
        self.executes += 1
        if self.failures > 0:
            self.failures -= 1
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return _EmptyResult()

    async def rollback(self):
        self.rollbacks += 1


@pytest.mark.unit
def test_snapshot_read_is_retried_after_rollback():
    session = FlakySession(failures=2)
    store = SqlWorkflowStore(session, read_attempts=3, read_delay=0)

    snapshot = asyncio.run(store.load_snapshot())

    assert snapshot == []
    assert session.rollbacks == 2


@pytest.mark.unit
def test_snapshot_read_gives_up_after_last_attempt():
    session = FlakySession(failures=10)
    store = SqlWorkflowStore(session, read_attempts=2, read_delay=0)

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(store.load_snapshot())

    assert exc_info.value.operation == "load_snapshot"
    assert session.executes == 2
    assert session.rollbacks == 2


@pytest.mark.unit
def test_single_reads_are_not_retried():
    session = FlakySession(failures=1)
    store = SqlWorkflowStore(session, read_attempts=3, read_delay=0)

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(store.get_task(None))

    assert exc_info.value.operation == "get_task"
    assert session.executes == 1
    assert session.rollbacks == 0


class SavepointSession:
    """Records savepoint use; flush fails when ``fail_flush`` is set."""

    def __init__(self, fail_flush: bool = False):
        self.fail_flush = fail_flush
        self.calls = []

    def begin_nested(self):
        session = self

        class _Savepoint:
            async def __aenter__(self):
                session.calls.append("savepoint")
                return self

            async def __aexit__(self, exc_type, exc, tb):
                session.calls.append("rollback_savepoint" if exc_type else "release_savepoint")
                return False

        return _Savepoint()

    def add(self, entity):
        self.calls.append("add")

    async def flush(self):
        self.calls.append("flush")
        if self.fail_flush:
            raise IntegrityError("INSERT", {}, Exception("violates foreign key constraint"))


@pytest.mark.unit
def test_isolated_add_runs_inside_a_savepoint():
    session = SavepointSession()
    store = SqlWorkflowStore(session)
    entity = object()

    assert asyncio.run(store.add_isolated(entity)) is entity
    assert session.calls == ["savepoint", "add", "flush", "release_savepoint"]


@pytest.mark.unit
def test_failed_isolated_add_only_rolls_back_its_savepoint():
    session = SavepointSession(fail_flush=True)
    store = SqlWorkflowStore(session)

    with pytest.raises(PersistenceError) as exc_info:
        asyncio.run(store.add_isolated(object()))

    assert exc_info.value.operation == "add_isolated_object"
    assert session.calls == ["savepoint", "add", "flush", "rollback_savepoint"]


@pytest.mark.db
def test_round_trip_against_database():
    """
    Create a project tree through the services and read it back.

    Needs a migrated database at DATABASE_URL.
    """
    from conftest import ADMIN
    from stageflow.db.session import async_session_maker
    from stageflow.schemas.project import ProjectCreate
    from stageflow.services.project_service import ProjectService

    assert os.environ.get("RUN_DB_TESTS") == "1"

    async def main():
        async with async_session_maker() as session:
            service = ProjectService(session)
            created = await service.create_project(
                ProjectCreate(
                    name="Round trip",
                    stages=[{"name": "Build", "tasks": [{"title": "Write copy", "assigned_to": ["worker-1"]}]}],
                ),
                ADMIN,
            )
            fetched = await service.get_project(created.id, ADMIN)
            await session.rollback()
            return created, fetched

    created, fetched = asyncio.run(main())

    assert fetched.id == created.id
    assert fetched.stages[0].tasks[0].assignee_ids == ["worker-1"]


@pytest.mark.db
def test_failed_notification_does_not_poison_the_transition():
    """
    A notification insert that violates a constraint is dropped on its own;
    the status change in the same transaction still goes through.
    """
    from conftest import ADMIN, WORKER
    from stageflow.core.statuses import NotificationType, TaskStatus
    from stageflow.db.session import async_session_maker
    from stageflow.schemas.notification import NotificationMessage
    from stageflow.schemas.project import ProjectCreate
    from stageflow.services.notification_service import DatabaseNotificationSink
    from stageflow.services.project_service import ProjectService
    from stageflow.services.task_workflow_service import TaskWorkflowService

    assert os.environ.get("RUN_DB_TESTS") == "1"

    async def main():
        async with async_session_maker() as session:
            created = await ProjectService(session).create_project(
                ProjectCreate(
                    name="Savepoint",
                    stages=[{"name": "Build", "tasks": [{"title": "Write copy", "assigned_to": [WORKER.id]}]}],
                ),
                ADMIN,
            )
            task_id = created.stages[0].tasks[0].id

            store = SqlWorkflowStore(session)
            await DatabaseNotificationSink(store).notify(
                NotificationMessage(
                    recipient_user_id=WORKER.id,
                    type=NotificationType.TASK_STATUS_CHANGED,
                    title="Task status updated",
                    message="points at a task that does not exist",
                    related_task_id=uuid.uuid4(),
                )
            )

            outcome = await TaskWorkflowService(session).start_task(task_id, WORKER)
            task = await store.get_task(task_id)
            await session.rollback()
            return outcome, task.status

    outcome, status = asyncio.run(main())

    assert outcome.ok and outcome.applied
    assert status == TaskStatus.IN_PROGRESS
