"""Notification inbox endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dern_support.api.dependencies import get_current_actor
from dern_support.core.database import get_db
from dern_support.core.repository import NotificationRepository
from dern_support.core.schemas import NotificationRead
from dern_support.scheduling.models import Actor

router = APIRouter(prefix="/notifications")


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> list[NotificationRead]:
    """The caller's notifications, newest first."""
    repo = NotificationRepository(db)
    notifications = await repo.list_for_user(actor.id, unread_only=unread_only, limit=limit)
    return [NotificationRead.model_validate(n) for n in notifications]


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
) -> NotificationRead:
    repo = NotificationRepository(db)
    notification = await repo.mark_read(notification_id, actor.id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationRead.model_validate(notification)
