"""
Authentication and thesis-access dependencies for FastAPI routes.

User identity comes from the X-User-Id header (set by the editor frontend
after it authenticates against the identity provider).  Per-thesis rights
come from the caller's collaborator role; platform admins (ADMIN_EMAILS)
act as ``admin`` on every thesis.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.database_models import CollaboratorRole, Thesis, ThesisCollaborator, User, UserRole
from app.utils.helpers import normalize_email

logger = logging.getLogger(__name__)

ROLE_RANK = {
    CollaboratorRole.VIEWER: 1,
    CollaboratorRole.REVIEWER: 2,
    CollaboratorRole.EDITOR: 3,
    CollaboratorRole.ADMIN: 4,
    CollaboratorRole.OWNER: 5,
}

VIEW_ROLES = tuple(ROLE_RANK)
COMMENT_ROLES = (CollaboratorRole.OWNER, CollaboratorRole.ADMIN, CollaboratorRole.EDITOR, CollaboratorRole.REVIEWER)
EDIT_ROLES = (CollaboratorRole.OWNER, CollaboratorRole.ADMIN, CollaboratorRole.EDITOR)
MANAGE_ROLES = (CollaboratorRole.OWNER, CollaboratorRole.ADMIN)


@dataclass
class ThesisAccess:
    """The thesis a request targets, who is asking, and with which role."""

    thesis: Thesis
    user: User
    role: CollaboratorRole
    is_platform_admin: bool = False

    @property
    def can_edit(self) -> bool:
        return self.role in EDIT_ROLES

    @property
    def can_manage(self) -> bool:
        return self.role in MANAGE_ROLES

    @property
    def is_owner(self) -> bool:
        """Owner-level rights: the owner role or a platform admin."""
        return self.role == CollaboratorRole.OWNER or self.is_platform_admin


def higher_role(a: CollaboratorRole, b: CollaboratorRole) -> CollaboratorRole:
    return a if ROLE_RANK[a] >= ROLE_RANK[b] else b


async def get_current_user_id(
    x_user_id: str = Header(..., alias="X-User-Id"),
) -> str:
    """Extract the authenticated user ID from the request header. Raises 401 if empty."""
    if not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()


async def get_or_create_user(
    user_id: str = Depends(get_current_user_id),
    x_user_email: Optional[str] = Header(None, alias="X-User-Email"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the user exists in the local users table. Creates if needed."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    email = normalize_email(x_user_email) if x_user_email else None

    if user is None:
        email = email or f"{user_id}@otro7a.local"
        user = User(
            id=user_id,
            email=email,
            name=x_user_name,
            role=UserRole.ADMIN if email in settings.get_admin_emails() else UserRole.USER,
        )
        db.add(user)
        await db.flush()
        logger.info("Created new user: id=%s email=%s role=%s", user_id, user.email, user.role.value)
    elif x_user_name and not user.name:
        user.name = x_user_name

    return user


def is_platform_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN or normalize_email(user.email) in settings.get_admin_emails()


async def get_thesis_access(
    thesis_id: str,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> ThesisAccess:
    """
    Resolve the caller's role on *thesis_id*.

    Raises 404 both for unknown theses and for theses the caller cannot
    see, so thesis ids are not disclosed to outsiders.
    """
    thesis = await db.get(Thesis, thesis_id)
    not_found = HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Thesis {thesis_id} not found.",
    )
    if thesis is None:
        raise not_found

    result = await db.execute(
        select(ThesisCollaborator.role).where(
            ThesisCollaborator.thesis_id == thesis_id,
            ThesisCollaborator.user_id == user.id,
        )
    )
    role = result.scalar_one_or_none()
    platform_admin = is_platform_admin(user)

    if platform_admin:
        role = higher_role(role, CollaboratorRole.ADMIN) if role else CollaboratorRole.ADMIN
    if role is None:
        raise not_found

    return ThesisAccess(thesis=thesis, user=user, role=role, is_platform_admin=platform_admin)


def require_roles(*roles: CollaboratorRole):
    """
    Dependency factory: resolve thesis access and 403 unless the caller's
    role is one of *roles*.
    """

    async def _checker(access: ThesisAccess = Depends(get_thesis_access)) -> ThesisAccess:
        if access.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{access.role.value}' may not perform this action.",
            )
        return access

    return _checker


require_view = require_roles(*VIEW_ROLES)
require_comment = require_roles(*COMMENT_ROLES)
require_edit = require_roles(*EDIT_ROLES)
require_manage = require_roles(*MANAGE_ROLES)
