"""
Stage repository - database operations for Stage.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.models.stage import Stage


class StageRepository:
    """Repository for Stage database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, stage_id: UUID) -> Optional[Stage]:
        """Get a stage by ID."""
        result = await self.db.execute(
            select(Stage).where(Stage.id == stage_id)
        )
        return result.scalar_one_or_none()

    async def list_for_projects(self, project_ids: Sequence[UUID]) -> List[Stage]:
        """All stages of the given projects, in display order."""
        if not project_ids:
            return []
        result = await self.db.execute(
            select(Stage)
            .where(Stage.project_id.in_(list(project_ids)))
            .order_by(Stage.order_index, Stage.created_at)
        )
        return list(result.scalars().all())

    async def list_for_project(self, project_id: UUID) -> List[Stage]:
        return await self.list_for_projects([project_id])

    async def create(self, stage: Stage) -> Stage:
        self.db.add(stage)
        await self.db.flush()
        return stage

    async def delete(self, stage: Stage) -> None:
        await self.db.delete(stage)
        await self.db.flush()
