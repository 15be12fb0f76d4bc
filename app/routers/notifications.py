"""
The caller's notifications.

GET  /                  newest first (?thesis_id=&unread_only=&after=)
GET  /unread-count
POST /{id}/read
POST /read-all
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.models.database_models import Notification
from app.models.schemas import MarkAllReadResponse, NotificationResponse, UnreadCountResponse
from app.services.notifications import notification_service
from app.utils.helpers import as_utc

logger = logging.getLogger(__name__)

router = APIRouter()


def notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        thesis_id=notification.thesis_id,
        type=notification.type.value,
        message=notification.message,
        read=notification.read,
        created_at=notification.created_at,
    )


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    thesis_id: Optional[str] = Query(None),
    unread_only: bool = Query(False),
    after: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[NotificationResponse]:
    notifications = await notification_service.list_for_user(
        db, user_id, thesis_id=thesis_id, unread_only=unread_only, after=as_utc(after), limit=limit
    )
    return [notification_response(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=await notification_service.unread_count(db, user_id))


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    updated = await notification_service.mark_all_read(db, user_id)
    await db.commit()
    logger.info("User %s marked %d notifications read", user_id, updated)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await notification_service.mark_read(db, user_id, notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found.",
        )
    await db.commit()
    return notification_response(notification)
