"""
Health router.

Reports whether the database answers and whether its schema is at the
newest migration. The endpoint itself never fails: an unreachable database
yields a degraded report with HTTP 503.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.db.session import get_db
from stageflow.schemas.health import DatabaseHealth, HealthReport, MigrationHealth

logger = logging.getLogger(__name__)

router = APIRouter()

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@lru_cache(maxsize=1)
def migration_head() -> Optional[str]:
    """Newest revision in the alembic scripts; None when they are not shipped."""
    ini_path = PROJECT_ROOT / "alembic.ini"
    scripts = PROJECT_ROOT / "alembic"
    if not (ini_path.exists() and scripts.exists()):
        logger.info("No alembic scripts next to the package; skipping the head lookup")
        return None

    config = Config(str(ini_path))
    config.set_main_option("script_location", str(scripts))
    return ScriptDirectory.from_config(config).get_current_head()


async def _check_database(db: AsyncSession) -> DatabaseHealth:
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database is not answering: %s", exc)
        return DatabaseHealth(reachable=False, error=type(exc).__name__)
    return DatabaseHealth(reachable=True)


async def _applied_revision(db: AsyncSession) -> Optional[str]:
    try:
        result = await db.execute(text("SELECT version_num FROM alembic_version"))
    except SQLAlchemyError as exc:
        # Fresh database without the alembic table
        logger.warning("Could not read the applied migration: %s", exc)
        await db.rollback()
        return None
    return result.scalar_one_or_none()


@router.get("/health", response_model=HealthReport)
async def health_check(response: Response, db: AsyncSession = Depends(get_db)) -> HealthReport:
    database = await _check_database(db)

    current = await _applied_revision(db) if database.reachable else None
    head = migration_head()
    migrations = MigrationHealth(
        current=current,
        head=head,
        up_to_date=current is not None and current == head,
    )

    if not database.reachable:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        report_status = "unavailable"
    elif not migrations.up_to_date:
        report_status = "degraded"
    else:
        report_status = "ok"

    return HealthReport(status=report_status, database=database, migrations=migrations)
