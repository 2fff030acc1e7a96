"""Notification inbox router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from stageflow.core.dependencies import get_actor, get_store
from stageflow.errors import raise_app_error
from stageflow.repositories.workflow_store import WorkflowStore
from stageflow.schemas.actor import Actor
from stageflow.schemas.notification import MarkedRead, NotificationRead, UnreadCount
from stageflow.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _not_found(notification_id: UUID) -> None:
    raise_app_error(
        status.HTTP_404_NOT_FOUND,
        "notification_not_found",
        f"Notification {notification_id} not found",
    )


@router.get("", response_model=List[NotificationRead])
async def list_notifications(
    unread_only: bool = Query(False),
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """The caller's notifications, newest first."""
    return await NotificationService(store=store).list_for(actor, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return UnreadCount(unread=await NotificationService(store=store).unread_count(actor))


@router.post("/read-all", response_model=MarkedRead)
async def mark_all_notifications_read(
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    return MarkedRead(updated=await NotificationService(store=store).mark_all_read(actor))


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_read(
    notification_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    notification = await NotificationService(store=store).mark_read(notification_id, actor)
    if notification is None:
        _not_found(notification_id)
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    actor: Actor = Depends(get_actor),
    store: WorkflowStore = Depends(get_store),
):
    """Remove one of the caller's notifications."""
    if not await NotificationService(store=store).delete(notification_id, actor):
        _not_found(notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
