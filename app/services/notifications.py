"""
Per-user notifications fanned out from thesis events.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import Notification, NotificationType, ThesisCollaborator

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Writes one row per recipient.

    ``event_key`` identifies the triggering event (``comment:12``,
    ``version:<thesis>:3``...).  A recipient never gets two notifications with
    the same key, so retried requests do not double-notify.
    """

    async def fan_out(
        self,
        db: AsyncSession,
        thesis_id: str,
        actor_id: Optional[str],
        type: NotificationType,
        message: str,
        event_key: str,
    ) -> List[Notification]:
        """Notify every collaborator of *thesis_id* except *actor_id*."""
        result = await db.execute(
            select(ThesisCollaborator.user_id).where(ThesisCollaborator.thesis_id == thesis_id)
        )
        recipients = {uid for uid in result.scalars().all() if uid != actor_id}
        if not recipients:
            return []

        existing = await db.execute(
            select(Notification.user_id).where(
                Notification.event_key == event_key,
                Notification.user_id.in_(recipients),
            )
        )
        recipients -= set(existing.scalars().all())

        created = []
        for user_id in sorted(recipients):
            notification = Notification(
                user_id=user_id,
                thesis_id=thesis_id,
                type=type,
                message=message,
                event_key=event_key,
            )
            db.add(notification)
            created.append(notification)
        await db.flush()

        logger.info(
            "Notification %s (%s) fanned out to %d collaborators of thesis %s",
            event_key, type.value, len(created), thesis_id,
        )
        return created

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        thesis_id: Optional[str] = None,
        unread_only: bool = False,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if thesis_id:
            query = query.where(Notification.thesis_id == thesis_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        if after is not None:
            query = query.where(Notification.created_at > after)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        query = query.limit(limit or settings.NOTIFICATION_PAGE_SIZE)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, db: AsyncSession, user_id: str, notification_id: int) -> Optional[Notification]:
        """Returns ``None`` when the notification does not belong to *user_id*."""
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            return None
        notification.read = True
        await db.flush()
        return notification

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await db.flush()
        return result.rowcount or 0


notification_service = NotificationService()
