"""
FastAPI dependencies.

Identity arrives from the upstream identity provider as request headers; the
services get their store from the request's database session.
"""

from typing import Optional

from fastapi import Depends, Header, status
from sqlalchemy.ext.asyncio import AsyncSession

from stageflow.db.session import get_db
from stageflow.errors import raise_app_error
from stageflow.repositories.sql_workflow_store import SqlWorkflowStore
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor


async def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
    x_user_roles: Optional[str] = Header(None),
) -> Actor:
    """
    Build the acting user from the X-User-Id, X-User-Name and X-User-Roles headers.

    Roles are a comma separated list.
    """
    if not x_user_id or not x_user_id.strip():
        raise_app_error(status.HTTP_401_UNAUTHORIZED, "unauthenticated", "Missing X-User-Id header")
    return Actor(id=x_user_id.strip(), name=(x_user_name or "").strip(), roles=x_user_roles)


async def get_store(db: AsyncSession = Depends(get_db)) -> WorkflowStore:
    """One store per request, bound to the request's transaction."""
    return SqlWorkflowStore(db)
