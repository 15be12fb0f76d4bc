"""
Thesis lifecycle: create, list, counters, content saves and deletion.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import (
    ChatMessage,
    Citation,
    CollaboratorRole,
    Notification,
    Thesis,
    ThesisCollaborator,
    ThesisInvitation,
    ThesisReview,
    ThesisStatus,
    ThesisVersion,
    User,
)
from app.services.thesis_structure import build_initial_content, iter_sections, normalize_content
from app.utils.helpers import as_utc, safe_remove

logger = logging.getLogger(__name__)


class StaleContentError(RuntimeError):
    """Raised when an autosave is based on an older revision than the stored one."""


class ThesisService:
    """Thesis rows plus the creator's owner membership."""

    async def create(self, user: User, metadata: Dict[str, Any], db: AsyncSession) -> Thesis:
        """
        Insert a thesis and its owner collaborator row in one flush.

        Both rows belong to the request transaction, so a failure leaves
        neither behind.
        """
        language = metadata.get("language") or settings.DEFAULT_THESIS_LANGUAGE
        include_outline = bool(metadata.pop("include_outline", False))
        content = build_initial_content(metadata, language=language, include_outline=include_outline)

        thesis = Thesis(
            title=metadata["title"],
            description=metadata.get("description") or "",
            language=language,
            status=ThesisStatus.DRAFT,
            content=content,
            permissions={"isPublic": False, "allowComments": True, "allowSharing": False},
            user_id=user.id,
        )
        db.add(thesis)
        await db.flush()

        db.add(ThesisCollaborator(thesis_id=thesis.id, user_id=user.id, role=CollaboratorRole.OWNER))
        await db.flush()

        logger.info("Thesis %s created by %s (%s)", thesis.id, user.id, language)
        return thesis

    async def list_for_user(
        self, user_id: str, db: AsyncSession, status: Optional[ThesisStatus] = None
    ) -> List[Tuple[Thesis, CollaboratorRole]]:
        query = (
            select(Thesis, ThesisCollaborator.role)
            .join(ThesisCollaborator, ThesisCollaborator.thesis_id == Thesis.id)
            .where(ThesisCollaborator.user_id == user_id)
            .order_by(Thesis.created_at.desc())
        )
        if status is not None:
            query = query.where(Thesis.status == status)
        result = await db.execute(query)
        return [(thesis, role) for thesis, role in result.all()]

    async def stats_for_user(self, user_id: str, db: AsyncSession) -> Dict[str, int]:
        rows = await self.list_for_user(user_id, db)
        stats = {"total": len(rows), "owned": 0, "shared": 0, "draft": 0, "in_review": 0, "published": 0}
        for thesis, role in rows:
            if role == CollaboratorRole.OWNER:
                stats["owned"] += 1
            else:
                stats["shared"] += 1
            stats[thesis.status.value] += 1
        return stats

    def save_content(
        self,
        thesis: Thesis,
        content: Dict[str, Any],
        base_updated_at: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Normalise *content* and store it on *thesis*.

        Raises:
            StaleContentError: *base_updated_at* is older than the stored revision.
            ValueError: *content* is not a valid content tree.
        """
        if base_updated_at is not None and as_utc(thesis.updated_at) > as_utc(base_updated_at):
            raise StaleContentError(
                f"Thesis {thesis.id} was modified at {thesis.updated_at.isoformat()}"
            )
        normalized = normalize_content(content)
        thesis.content = normalized
        return normalized

    async def delete(self, thesis: Thesis, db: AsyncSession) -> None:
        """Remove the thesis, every dependent row and its uploaded figures."""
        stored_files = []
        try:
            for _, section in iter_sections(normalize_content(thesis.content)):
                stored_files.extend(f["stored_file"] for f in section.get("figures", []) if f.get("stored_file"))
        except ValueError:
            logger.warning("Thesis %s: unreadable content, skipping figure cleanup", thesis.id)

        for model in (
            Notification,
            ChatMessage,
            ThesisReview,
            Citation,
            ThesisVersion,
            ThesisInvitation,
            ThesisCollaborator,
        ):
            await db.execute(delete(model).where(model.thesis_id == thesis.id))
        await db.delete(thesis)
        await db.flush()

        for name in stored_files:
            safe_remove(os.path.join(settings.UPLOAD_DIR, os.path.basename(name)))
        logger.info("Thesis %s deleted (%d figure files removed)", thesis.id, len(stored_files))


thesis_service = ThesisService()
