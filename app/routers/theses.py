"""
Thesis endpoints.

POST   /                       create a thesis from the creation form
GET    /                       theses the caller collaborates on (newest first)
GET    /stats                  dashboard counters
GET    /{id}                   full thesis with its content tree
PATCH  /{id}                   title / description / language / status / permissions
PUT    /{id}/content           autosave the whole content tree
GET    /{id}/progress          completion statistics
DELETE /{id}                   owner only
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import (
    ThesisAccess,
    get_or_create_user,
    require_edit,
    require_view,
)
from app.models.database_models import CollaboratorRole, NotificationType, Thesis, ThesisStatus, User
from app.models.schemas import (
    ThesisContentUpdateRequest,
    ThesisCreateRequest,
    ThesisProgressResponse,
    ThesisResponse,
    ThesisStatsResponse,
    ThesisStatusSchema,
    ThesisSummary,
    ThesisUpdateRequest,
)
from app.services.notifications import notification_service
from app.services.thesis_service import StaleContentError, thesis_service
from app.services.thesis_structure import content_statistics, normalize_content

logger = logging.getLogger(__name__)

router = APIRouter()


def thesis_response(thesis: Thesis, role: CollaboratorRole) -> ThesisResponse:
    try:
        content = normalize_content(thesis.content)
    except ValueError:
        logger.warning("Thesis %s has unreadable content; returning an empty tree", thesis.id)
        content = normalize_content({})
    return ThesisResponse(
        id=thesis.id,
        title=thesis.title,
        description=thesis.description,
        language=thesis.language,
        status=thesis.status.value,
        content=content,
        permissions=thesis.permissions,
        user_id=thesis.user_id,
        supervisor_email=thesis.supervisor_email,
        supervisor_id=thesis.supervisor_id,
        role=role.value,
        created_at=thesis.created_at,
        updated_at=thesis.updated_at,
    )


@router.post("", response_model=ThesisResponse, status_code=status.HTTP_201_CREATED)
async def create_thesis(
    body: ThesisCreateRequest,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> ThesisResponse:
    """
    Create a thesis from the creation form.

    The caller becomes its owner.  With ``include_outline`` the language
    template's main-matter entries are added as empty chapters.
    """
    metadata = body.model_dump()
    metadata["title"] = body.title.strip()
    thesis = await thesis_service.create(user, metadata, db)
    await db.commit()
    await db.refresh(thesis)
    return thesis_response(thesis, CollaboratorRole.OWNER)


@router.get("", response_model=List[ThesisSummary])
async def list_theses(
    status_filter: Optional[ThesisStatusSchema] = Query(None, alias="status"),
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> List[ThesisSummary]:
    """List theses where the caller is a collaborator, with the caller's role."""
    rows = await thesis_service.list_for_user(
        user.id, db, ThesisStatus(status_filter.value) if status_filter else None
    )
    return [
        ThesisSummary(
            id=thesis.id,
            title=thesis.title,
            description=thesis.description,
            language=thesis.language,
            status=thesis.status.value,
            role=role.value,
            user_id=thesis.user_id,
            created_at=thesis.created_at,
            updated_at=thesis.updated_at,
        )
        for thesis, role in rows
    ]


@router.get("/stats", response_model=ThesisStatsResponse)
async def thesis_stats(
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> ThesisStatsResponse:
    return ThesisStatsResponse(**await thesis_service.stats_for_user(user.id, db))


@router.get("/{thesis_id}", response_model=ThesisResponse)
async def get_thesis(access: ThesisAccess = Depends(require_view)) -> ThesisResponse:
    return thesis_response(access.thesis, access.role)


@router.patch("/{thesis_id}", response_model=ThesisResponse)
async def update_thesis(
    body: ThesisUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> ThesisResponse:
    """
    Update thesis-level fields.

    Changing ``permissions`` needs owner or admin rights; a status change
    notifies the other collaborators.
    """
    thesis = access.thesis
    changes = body.model_dump(exclude_unset=True)

    if "permissions" in changes and not access.can_manage:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only owners and admins can change sharing permissions.",
        )

    old_status = thesis.status
    if body.title is not None:
        thesis.title = body.title.strip()
    if "description" in changes:
        thesis.description = body.description or ""
    if body.language is not None:
        thesis.language = body.language.lower()
    if body.status is not None:
        thesis.status = ThesisStatus(body.status.value)
    if body.permissions is not None:
        thesis.permissions = body.permissions.model_dump()
    await db.flush()

    if thesis.status != old_status:
        await notification_service.fan_out(
            db,
            thesis.id,
            access.user.id,
            NotificationType.STATUS_CHANGED,
            f"Thesis '{thesis.title}' is now {thesis.status.value.replace('_', ' ')}",
            f"status:{thesis.id}:{old_status.value}:{thesis.status.value}:{datetime.now(timezone.utc).isoformat()}",
        )

    logger.info("Thesis %s updated by %s: %s", thesis.id, access.user.id, sorted(changes))
    await db.commit()
    await db.refresh(thesis)
    return thesis_response(thesis, access.role)


@router.put("/{thesis_id}/content", response_model=ThesisResponse)
async def save_content(
    body: ThesisContentUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> ThesisResponse:
    """
    Autosave: replace the whole content tree.

    Send the ``updated_at`` you loaded as ``base_updated_at`` to get a 409
    instead of overwriting someone else's newer save.
    """
    try:
        thesis_service.save_content(access.thesis, body.content, body.base_updated_at)
    except StaleContentError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    await db.commit()
    await db.refresh(access.thesis)
    logger.info("Thesis %s content saved by %s", access.thesis.id, access.user.id)
    return thesis_response(access.thesis, access.role)


@router.get("/{thesis_id}/progress", response_model=ThesisProgressResponse)
async def thesis_progress(access: ThesisAccess = Depends(require_view)) -> ThesisProgressResponse:
    return ThesisProgressResponse(**content_statistics(normalize_content(access.thesis.content)))


@router.delete("/{thesis_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_thesis(
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a thesis and everything attached to it. Owner only."""
    if not access.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the owner can delete a thesis.",
        )
    await thesis_service.delete(access.thesis, db)
    await db.commit()
