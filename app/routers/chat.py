"""
Per-thesis chat.

GET  /{id}/messages?after=<iso>&limit=    oldest first
POST /{id}/messages
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import ThesisAccess, require_view
from app.models.database_models import ChatMessage, NotificationType, User
from app.models.schemas import ChatMessageCreateRequest, ChatMessageResponse
from app.services.notifications import notification_service
from app.utils.helpers import as_utc, truncate_text

logger = logging.getLogger(__name__)

router = APIRouter()


def message_response(message: ChatMessage, sender_email: Optional[str] = None) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        thesis_id=message.thesis_id,
        sender_id=message.sender_id,
        sender_email=sender_email,
        content=message.content,
        created_at=message.created_at,
    )


@router.get("/{thesis_id}/messages", response_model=List[ChatMessageResponse])
async def list_messages(
    after: Optional[datetime] = Query(None, description="Only messages newer than this timestamp"),
    limit: int = Query(100, ge=1, le=500),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> List[ChatMessageResponse]:
    """
    Messages of a thesis, oldest first.

    Without ``after`` the most recent *limit* messages are returned; with it,
    the first *limit* messages after that instant (polling).
    """
    query = (
        select(ChatMessage, User.email)
        .outerjoin(User, User.id == ChatMessage.sender_id)
        .where(ChatMessage.thesis_id == access.thesis.id)
    )
    if after is not None:
        query = query.where(ChatMessage.created_at > as_utc(after))
        query = query.order_by(ChatMessage.created_at, ChatMessage.id).limit(limit)
        rows = (await db.execute(query)).all()
    else:
        query = query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)
        rows = list(reversed((await db.execute(query)).all()))
    return [message_response(message, email) for message, email in rows]


@router.post("/{thesis_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    body: ChatMessageCreateRequest,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> ChatMessageResponse:
    message = ChatMessage(
        thesis_id=access.thesis.id,
        sender_id=access.user.id,
        content=body.content,
    )
    db.add(message)
    await db.flush()

    await notification_service.fan_out(
        db,
        access.thesis.id,
        access.user.id,
        NotificationType.CHAT_MESSAGE,
        f"{access.user.name or access.user.email}: {truncate_text(body.content, 80)}",
        f"chat:{message.id}",
    )
    await db.commit()
    await db.refresh(message)
    logger.info("Thesis %s: chat message %s from %s", access.thesis.id, message.id, access.user.id)
    return message_response(message, access.user.email)
