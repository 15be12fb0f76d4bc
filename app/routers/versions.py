"""
Version history endpoints.

POST /{id}/versions                    snapshot the current content
GET  /{id}/versions                    newest first, without content
GET  /{id}/versions/compare?a=&b=      diff, older → newer
GET  /{id}/versions/{n}                one version with content
POST /{id}/versions/{n}/restore        replace the thesis content
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import ThesisAccess, require_edit, require_view
from app.models.database_models import NotificationType, ThesisVersion
from app.models.schemas import (
    ThesisResponse,
    VersionCompareResponse,
    VersionCreateRequest,
    VersionDetail,
    VersionSummary,
)
from app.routers.theses import thesis_response
from app.services.notifications import notification_service
from app.services.versioning import VersionNotFound, versioning_service

logger = logging.getLogger(__name__)

router = APIRouter()


def version_summary(version: ThesisVersion) -> VersionSummary:
    return VersionSummary(
        id=version.id,
        thesis_id=version.thesis_id,
        version_number=version.version_number,
        description=version.description,
        language=version.language,
        created_by=version.created_by,
        created_at=version.created_at,
        change_count=len(version.changes or []),
    )


def version_detail(version: ThesisVersion) -> VersionDetail:
    return VersionDetail(
        **version_summary(version).model_dump(),
        content=version.content,
        changes=version.changes or [],
    )


def _not_found(exc: VersionNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/{thesis_id}/versions", response_model=VersionDetail, status_code=status.HTTP_201_CREATED)
async def create_version(
    body: VersionCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> VersionDetail:
    version = await versioning_service.create_version(access.thesis, access.user.id, body.description, db)
    await notification_service.fan_out(
        db,
        access.thesis.id,
        access.user.id,
        NotificationType.VERSION_CREATED,
        f"Version {version.version_number} of '{access.thesis.title}' was saved",
        f"version:{access.thesis.id}:{version.version_number}",
    )
    await db.commit()
    await db.refresh(version)
    return version_detail(version)


@router.get("/{thesis_id}/versions", response_model=List[VersionSummary])
async def list_versions(
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> List[VersionSummary]:
    return [version_summary(v) for v in await versioning_service.list_versions(access.thesis.id, db)]


@router.get("/{thesis_id}/versions/compare", response_model=VersionCompareResponse)
async def compare_versions(
    a: int = Query(..., ge=1),
    b: int = Query(..., ge=1),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> VersionCompareResponse:
    """Changes between versions *a* and *b*; argument order does not matter."""
    if a == b:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Choose two different versions to compare.",
        )
    try:
        result = await versioning_service.compare_versions(access.thesis.id, a, b, db)
    except VersionNotFound as exc:
        raise _not_found(exc)
    return VersionCompareResponse(**result)


@router.get("/{thesis_id}/versions/{version_number}", response_model=VersionDetail)
async def get_version(
    version_number: int,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> VersionDetail:
    try:
        version = await versioning_service.get_version(access.thesis.id, version_number, db)
    except VersionNotFound as exc:
        raise _not_found(exc)
    return version_detail(version)


@router.post("/{thesis_id}/versions/{version_number}/restore", response_model=ThesisResponse)
async def restore_version(
    version_number: int,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> ThesisResponse:
    """
    Replace the working content with a stored version.

    The current content is not snapshotted first; create a version before
    restoring to keep it.
    """
    try:
        await versioning_service.restore_version(access.thesis, version_number, db)
    except VersionNotFound as exc:
        raise _not_found(exc)

    await notification_service.fan_out(
        db,
        access.thesis.id,
        access.user.id,
        NotificationType.VERSION_RESTORED,
        f"'{access.thesis.title}' was restored to version {version_number}",
        f"restore:{access.thesis.id}:{version_number}:{access.thesis.updated_at.isoformat()}",
    )
    await db.commit()
    await db.refresh(access.thesis)
    logger.info("Thesis %s restored to version %d by %s", access.thesis.id, version_number, access.user.id)
    return thesis_response(access.thesis, access.role)
