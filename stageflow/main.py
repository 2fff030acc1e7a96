"""
Main FastAPI application.

This is the entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stageflow.core.config import settings
from stageflow.core.logging_config import configure_logging
from stageflow.errors import AppError, PersistenceError, app_error_handler, persistence_error_handler
from stageflow.routers import approvals, health, notifications, projects, stages, tasks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; nothing to release on shutdown."""
    configure_logging()
    logger.info("Starting %s...", settings.APP_NAME)

    yield

    logger.info("Shutting down %s...", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Project, stage and task workflow API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(PersistenceError, persistence_error_handler)

app.include_router(health.router, tags=["Health"])
app.include_router(projects.router)
app.include_router(stages.router)
app.include_router(tasks.router)
app.include_router(approvals.router)
app.include_router(notifications.router)
