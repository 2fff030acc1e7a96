"""
Pytest configuration and shared fixtures.

Service tests run against InMemoryWorkflowStore, which keeps plain
(transient) ORM objects in dicts and answers the same queries as
SqlWorkflowStore.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from stageflow.core.statuses import ProjectStatus, StageStatus, TaskStatus
from stageflow.models import (
    Notification,
    Project,
    Stage,
    Task,
    TaskAssignee,
    TaskComment,
    TaskStatusHistory,
)
from stageflow.repositories.workflow_store import assemble_snapshot
from stageflow.schemas.actor import Actor
from stageflow.services.task_workflow_service import TaskWorkflowService


ADMIN = Actor(id="admin-1", name="Ada Admin", roles=["admin"])
MANAGER = Actor(id="manager-1", name="Max Manager", roles=["manager"])
APPROVER = Actor(id="approver-1", name="Ana Aprovadora", roles=["aprovador"])
WORKER = Actor(id="worker-1", name="Wes Worker", roles=["user"])
OTHER = Actor(id="worker-2", name="Olga Other", roles=["user"])


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: requires database")
    config.addinivalue_line("markers", "server: requires running HTTP server")


def pytest_collection_modifyitems(config, items):
    run_db = os.environ.get("RUN_DB_TESTS") == "1"
    run_server = os.environ.get("RUN_SERVER_TESTS") == "1"

    skip_db = pytest.mark.skip(reason="db tests skipped by default; set RUN_DB_TESTS=1 to enable")
    skip_server = pytest.mark.skip(reason="server tests skipped by default; set RUN_SERVER_TESTS=1 to enable")

    for item in items:
        if "db" in item.keywords and not run_db:
            item.add_marker(skip_db)
        if "server" in item.keywords and not run_server:
            item.add_marker(skip_server)


class InMemoryWorkflowStore:
    """WorkflowStore over dicts. Deleting cascades the way the database does."""

    def __init__(self):
        self.projects: Dict[uuid.UUID, Project] = {}
        self.stages: Dict[uuid.UUID, Stage] = {}
        self.tasks: Dict[uuid.UUID, Task] = {}
        self.history: List[TaskStatusHistory] = []
        self.comments: List[TaskComment] = []
        self.notifications: List[Notification] = []
        self.flush_count = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def put(self, entity):
        """Synchronous add, used by fixtures to seed data."""
        if entity.id is None:
            entity.id = uuid.uuid4()
        stamp = self._tick()
        if entity.created_at is None:
            entity.created_at = stamp
        if entity.updated_at is None:
            entity.updated_at = stamp

        if isinstance(entity, Project):
            self.projects[entity.id] = entity
        elif isinstance(entity, Stage):
            self.stages[entity.id] = entity
        elif isinstance(entity, Task):
            self.tasks[entity.id] = entity
        elif isinstance(entity, TaskStatusHistory):
            self.history.append(entity)
        elif isinstance(entity, TaskComment):
            self.comments.append(entity)
        elif isinstance(entity, Notification):
            self.notifications.append(entity)
        else:
            raise TypeError(f"Unsupported entity {type(entity).__name__}")
        return entity

    # Reads

    async def get_project(self, project_id):
        return self.projects.get(project_id)

    async def get_stage(self, stage_id):
        return self.stages.get(stage_id)

    async def get_task(self, task_id):
        return self.tasks.get(task_id)

    async def list_projects(self, project_ids=None):
        projects = list(self.projects.values())
        if project_ids is not None:
            projects = [p for p in projects if p.id in set(project_ids)]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    async def list_projects_visible_to(self, user_id):
        assigned = {
            self.stages[t.stage_id].project_id
            for t in self.tasks.values()
            if user_id in t.assignee_ids and t.stage_id in self.stages
        }
        return [
            p for p in await self.list_projects()
            if p.created_by == user_id or p.id in assigned
        ]

    async def list_project_stages(self, project_id):
        stages = [s for s in self.stages.values() if s.project_id == project_id]
        return sorted(stages, key=lambda s: (s.order_index, s.created_at))

    async def list_stage_tasks(self, stage_id):
        return [t for t in self.tasks.values() if t.stage_id == stage_id]

    async def list_project_tasks(self, project_id):
        stage_ids = {s.id for s in self.stages.values() if s.project_id == project_id}
        return [t for t in self.tasks.values() if t.stage_id in stage_ids]

    async def list_dependent_tasks(self, task_id):
        return [t for t in self.tasks.values() if t.parent_task_id == task_id]

    async def list_tasks_assigned_to(self, user_id):
        return [t for t in self.tasks.values() if user_id in t.assignee_ids]

    async def list_open_tasks_with_due_date(self):
        return [
            t for t in self.tasks.values()
            if t.due_date is not None and t.status != TaskStatus.COMPLETED
        ]

    async def list_history(self, task_id):
        return [h for h in self.history if h.task_id == task_id]

    async def find_history_by_operation(self, operation_id):
        for entry in self.history:
            if entry.operation_id == operation_id:
                return entry
        return None

    async def list_comments(self, task_id):
        return [c for c in self.comments if c.task_id == task_id]

    async def has_notification(self, user_id, task_id, types):
        return any(
            n.user_id == user_id and n.task_id == task_id and n.type in types
            for n in self.notifications
        )

    async def get_notification(self, notification_id):
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        return None

    async def list_notifications(self, user_id, unread_only=False):
        found = [
            n for n in self.notifications
            if n.user_id == user_id and (not unread_only or not n.read)
        ]
        return list(reversed(found))

    async def count_unread_notifications(self, user_id):
        return len([n for n in self.notifications if n.user_id == user_id and not n.read])

    async def mark_all_notifications_read(self, user_id):
        changed = [n for n in self.notifications if n.user_id == user_id and not n.read]
        for notification in changed:
            notification.read = True
        return len(changed)

    async def load_snapshot(self, project_ids=None):
        projects = await self.list_projects(project_ids)
        ids = {p.id for p in projects}
        stages = [s for s in self.stages.values() if s.project_id in ids]
        stage_ids = {s.id for s in stages}
        tasks = [t for t in self.tasks.values() if t.stage_id in stage_ids]
        return assemble_snapshot(projects, stages, tasks)

    # Writes

    async def add(self, entity):
        return self.put(entity)

    add_isolated = add

    async def delete(self, entity):
        if isinstance(entity, Project):
            for stage in [s for s in self.stages.values() if s.project_id == entity.id]:
                await self.delete(stage)
            self.projects.pop(entity.id, None)
        elif isinstance(entity, Stage):
            for task in [t for t in self.tasks.values() if t.stage_id == entity.id]:
                await self.delete(task)
            self.stages.pop(entity.id, None)
        elif isinstance(entity, Task):
            self.tasks.pop(entity.id, None)
            self.history = [h for h in self.history if h.task_id != entity.id]
            self.comments = [c for c in self.comments if c.task_id != entity.id]
            for other in self.tasks.values():
                if other.parent_task_id == entity.id:
                    other.parent_task_id = None
            for notification in self.notifications:
                if notification.task_id == entity.id:
                    notification.task_id = None
        elif isinstance(entity, Notification):
            self.notifications = [n for n in self.notifications if n.id != entity.id]
        else:
            raise TypeError(f"Unsupported entity {type(entity).__name__}")

    async def flush(self):
        self.flush_count += 1


class RecordingNotifier:
    """NotificationSink that keeps every message."""

    def __init__(self):
        self.messages = []

    async def notify(self, message):
        self.messages.append(message)

    def of_type(self, kind):
        return [m for m in self.messages if m.type == kind]


class TreeFactory:
    """Seeds projects, stages and tasks straight into the store."""

    def __init__(self, store: InMemoryWorkflowStore):
        self.store = store

    def project(self, name="Website relaunch", status=ProjectStatus.PLANNING, created_by=ADMIN.id) -> Project:
        return self.store.put(
            Project(
                id=uuid.uuid4(),
                name=name,
                description=f"{name} description",
                status=status,
                priority="medium",
                created_by=created_by,
            )
        )

    def stage(
        self,
        project: Project,
        name="Build",
        requires_approval=False,
        status=StageStatus.PENDING,
        order_index: Optional[int] = None,
    ) -> Stage:
        if order_index is None:
            order_index = len([s for s in self.store.stages.values() if s.project_id == project.id])
        return self.store.put(
            Stage(
                id=uuid.uuid4(),
                project_id=project.id,
                name=name,
                description=f"{name} stage",
                order_index=order_index,
                requires_approval=requires_approval,
                status=status,
            )
        )

    def task(
        self,
        stage: Stage,
        title="Write copy",
        status=TaskStatus.PENDING,
        requires_approval=False,
        assignees=(WORKER.id,),
        parent: Optional[Task] = None,
        due_date: Optional[datetime] = None,
        created_by=ADMIN.id,
    ) -> Task:
        task = Task(
            id=uuid.uuid4(),
            stage_id=stage.id,
            title=title,
            description=None,
            status=status,
            priority="medium",
            created_by=created_by,
            due_date=due_date,
            requires_approval=requires_approval,
            parent_task_id=parent.id if parent else None,
        )
        task.assignees = [TaskAssignee(id=uuid.uuid4(), user_id=user_id) for user_id in assignees]
        if status == TaskStatus.COMPLETED:
            task.completed_at = self.store._tick()
        return self.store.put(task)


@pytest.fixture()
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def factory(store) -> TreeFactory:
    return TreeFactory(store)


@pytest.fixture()
def workflow(store, notifier) -> TaskWorkflowService:
    return TaskWorkflowService(store=store, notifier=notifier)
