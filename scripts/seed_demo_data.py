"""
Seed a demo project for exploring the API.

Run after migrations. Creates one project with a build stage, a sign-off
stage that needs approval, and a few tasks with a predecessor link.

Usage:
    python scripts/seed_demo_data.py
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from stageflow.core.logging_config import configure_logging
from stageflow.db.session import get_async_session_context
from stageflow.schemas.actor import Actor
from stageflow.schemas.project import ProjectCreate
from stageflow.schemas.task import TaskCreate, TaskUpdate
from stageflow.services.project_service import ProjectService
from stageflow.utils.time import utc_now

DEMO_ADMIN = Actor(id="demo-admin", name="Demo Admin", roles=["admin"])


async def seed() -> None:
    async with get_async_session_context() as db:
        service = ProjectService(db)
        now = utc_now()
        project = await service.create_project(
            ProjectCreate(
                name="Website relaunch",
                description="Demo project",
                priority="high",
                stages=[
                    {
                        "name": "Build",
                        "tasks": [
                            {"title": "Outline pages", "assigned_to": ["demo-writer"], "due_date": now + timedelta(days=1)},
                            {"title": "Write copy", "assigned_to": ["demo-writer", "demo-editor"], "requires_approval": True},
                        ],
                    },
                    {"name": "Sign-off", "requires_approval": True},
                ],
            ),
            DEMO_ADMIN,
        )

        outline, copy = project.stages[0].tasks
        await service.tasks.update_task(copy.id, TaskUpdate(parent_task_id=outline.id), DEMO_ADMIN)
        await service.tasks.create_task(
            project.stages[1].id,
            TaskCreate(title="Final review", assigned_to=["demo-approver"]),
            DEMO_ADMIN,
        )

    print(f"Seeded project {project.id} ({project.name})")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed())
