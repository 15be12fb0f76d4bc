"""
Section review comments.

GET    /{id}/sections/{sid}/comments?status=
POST   /{id}/sections/{sid}/comments
PATCH  /{id}/comments/{comment_id}          pending ↔ resolved
DELETE /{id}/comments/{comment_id}
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import ThesisAccess, require_comment, require_view
from app.models.database_models import NotificationType, ReviewStatus, ThesisReview, User
from app.models.schemas import (
    CommentCreateRequest,
    CommentResponse,
    CommentUpdateRequest,
    ReviewStatusSchema,
)
from app.services.content_editor import ElementNotFound, find_section
from app.services.notifications import notification_service
from app.services.thesis_structure import normalize_content
from app.utils.helpers import truncate_text

logger = logging.getLogger(__name__)

router = APIRouter()


def comment_response(review: ThesisReview, reviewer_email: Optional[str] = None) -> CommentResponse:
    return CommentResponse(
        id=review.id,
        thesis_id=review.thesis_id,
        section_id=review.section_id,
        reviewer_id=review.reviewer_id,
        reviewer_email=reviewer_email,
        content=review.content,
        status=review.status.value,
        created_at=review.created_at,
        updated_at=review.updated_at,
    )


def _section_title(access: ThesisAccess, section_id: str) -> str:
    try:
        _, section = find_section(normalize_content(access.thesis.content), section_id)
    except ElementNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Section {section_id} not found.",
        )
    return section.get("title") or "Untitled section"


async def _get_comment(thesis_id: str, comment_id: int, db: AsyncSession) -> ThesisReview:
    result = await db.execute(
        select(ThesisReview).where(ThesisReview.id == comment_id, ThesisReview.thesis_id == thesis_id)
    )
    review = result.scalar_one_or_none()
    if review is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Comment {comment_id} not found.",
        )
    return review


@router.get("/{thesis_id}/sections/{section_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    section_id: str,
    status_filter: Optional[ReviewStatusSchema] = Query(None, alias="status"),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> List[CommentResponse]:
    """Comments on one section, oldest first."""
    query = (
        select(ThesisReview, User.email)
        .outerjoin(User, User.id == ThesisReview.reviewer_id)
        .where(ThesisReview.thesis_id == access.thesis.id, ThesisReview.section_id == section_id)
        .order_by(ThesisReview.created_at, ThesisReview.id)
    )
    if status_filter is not None:
        query = query.where(ThesisReview.status == ReviewStatus(status_filter.value))
    result = await db.execute(query)
    return [comment_response(review, email) for review, email in result.all()]


@router.post(
    "/{thesis_id}/sections/{section_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    section_id: str,
    body: CommentCreateRequest,
    access: ThesisAccess = Depends(require_comment),
    db: AsyncSession = Depends(get_db),
) -> CommentResponse:
    section_title = _section_title(access, section_id)
    review = ThesisReview(
        thesis_id=access.thesis.id,
        section_id=section_id,
        reviewer_id=access.user.id,
        content=body.content.strip(),
        status=ReviewStatus.PENDING,
    )
    db.add(review)
    await db.flush()

    await notification_service.fan_out(
        db,
        access.thesis.id,
        access.user.id,
        NotificationType.COMMENT_ADDED,
        f"New comment on '{section_title}': {truncate_text(review.content, 80)}",
        f"comment:{review.id}",
    )
    await db.commit()
    await db.refresh(review)
    logger.info("Thesis %s: comment %s on section %s by %s", access.thesis.id, review.id, section_id, access.user.id)
    return comment_response(review, access.user.email)


@router.patch("/{thesis_id}/comments/{comment_id}", response_model=CommentResponse)
async def update_comment_status(
    comment_id: int,
    body: CommentUpdateRequest,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> CommentResponse:
    """Resolve or reopen a comment. Editors and above, or the comment's author."""
    review = await _get_comment(access.thesis.id, comment_id, db)
    if not access.can_edit and review.reviewer_id != access.user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{access.role.value}' may not change this comment.",
        )

    new_status = ReviewStatus(body.status.value)
    if review.status != new_status:
        review.status = new_status
        await db.flush()
        if new_status == ReviewStatus.RESOLVED:
            await notification_service.fan_out(
                db,
                access.thesis.id,
                access.user.id,
                NotificationType.COMMENT_RESOLVED,
                f"A comment on '{access.thesis.title}' was resolved",
                f"comment-resolved:{review.id}:{datetime.now(timezone.utc).isoformat()}",
            )
        logger.info("Thesis %s: comment %s marked %s by %s", access.thesis.id, comment_id, new_status.value, access.user.id)

    await db.commit()
    await db.refresh(review)
    author = await db.get(User, review.reviewer_id)
    return comment_response(review, author.email if author else None)


@router.delete("/{thesis_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> None:
    review = await _get_comment(access.thesis.id, comment_id, db)
    if not access.can_manage and review.reviewer_id != access.user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author, owners and admins can delete a comment.",
        )
    await db.delete(review)
    await db.commit()
    logger.info("Thesis %s: comment %s deleted by %s", access.thesis.id, comment_id, access.user.id)
