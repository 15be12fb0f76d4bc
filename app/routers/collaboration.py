"""
Collaboration endpoints: collaborators, invitations and supervisor invites.

Thesis-scoped (prefix /api/theses):
    GET    /{id}/collaborators
    PATCH  /{id}/collaborators/{user_id}         change role
    DELETE /{id}/collaborators/{user_id}         remove (or leave)
    POST   /{id}/invitations                     invite by email
    GET    /{id}/invitations
    DELETE /{id}/invitations/{invitation_id}     revoke
    POST   /{id}/supervisor-invite

Token-scoped (prefix /api/invitations):
    POST   /{token}/accept
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import List
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import (
    ROLE_RANK,
    ThesisAccess,
    get_or_create_user,
    higher_role,
    require_manage,
    require_view,
)
from app.models.database_models import (
    CollaboratorRole,
    InvitationStatus,
    NotificationType,
    Thesis,
    ThesisCollaborator,
    ThesisInvitation,
    User,
)
from app.models.schemas import (
    CollaboratorResponse,
    CollaboratorUpdateRequest,
    InvitationAcceptResponse,
    InvitationCreateRequest,
    InvitationResponse,
    SupervisorInviteRequest,
)
from app.services.email_service import EmailDeliveryError, EmailService, get_email_service
from app.services.notifications import notification_service
from app.utils.helpers import is_valid_email, normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()
invitation_router = APIRouter()


def invite_link(thesis_id: str, role: CollaboratorRole, token: str) -> str:
    query = urlencode({"thesisId": thesis_id, "role": role.value, "token": token})
    return f"{settings.FRONTEND_BASE_URL.rstrip('/')}/auth?{query}"


def invitation_response(invitation: ThesisInvitation) -> InvitationResponse:
    return InvitationResponse(
        id=invitation.id,
        thesis_id=invitation.thesis_id,
        email=invitation.email,
        role=invitation.role.value,
        status=invitation.status.value,
        is_supervisor=invitation.is_supervisor,
        created_at=invitation.created_at,
        responded_at=invitation.responded_at,
    )


def _validated_email(raw: str) -> str:
    email = normalize_email(raw)
    if not is_valid_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid email address: {raw}",
        )
    return email


async def _get_collaborator(thesis_id: str, user_id: str, db: AsyncSession) -> ThesisCollaborator:
    result = await db.execute(
        select(ThesisCollaborator).where(
            ThesisCollaborator.thesis_id == thesis_id,
            ThesisCollaborator.user_id == user_id,
        )
    )
    collaborator = result.scalar_one_or_none()
    if collaborator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} is not a collaborator on this thesis.",
        )
    return collaborator


async def _owner_count(thesis_id: str, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(ThesisCollaborator.id)).where(
            ThesisCollaborator.thesis_id == thesis_id,
            ThesisCollaborator.role == CollaboratorRole.OWNER,
        )
    )
    return result.scalar_one()


async def _create_and_send(
    access: ThesisAccess,
    email: str,
    role: CollaboratorRole,
    is_supervisor: bool,
    mailer: EmailService,
    db: AsyncSession,
) -> ThesisInvitation:
    """
    Store the invitation, then send its email.

    A delivery failure is committed as ``failed`` before the 502 goes out,
    so the owner can see and retry it.
    """
    thesis = access.thesis
    invitation = ThesisInvitation(
        thesis_id=thesis.id,
        email=email,
        role=role,
        token=secrets.token_urlsafe(32),
        status=InvitationStatus.PENDING,
        is_supervisor=is_supervisor,
        invited_by=access.user.id,
    )
    db.add(invitation)
    await db.flush()

    link = invite_link(thesis.id, role, invitation.token)
    try:
        if is_supervisor:
            await mailer.send_supervisor_invite(email, thesis.title, link)
        else:
            await mailer.send_invite(email, thesis.title, link, role.value)
    except EmailDeliveryError as exc:
        invitation.status = InvitationStatus.FAILED
        await db.commit()
        logger.warning("Invitation %s to %s could not be delivered: %s", invitation.id, email, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Invitation saved but the email could not be sent: {exc}",
        )

    await db.commit()
    await db.refresh(invitation)
    logger.info(
        "Thesis %s: %s invited %s as %s%s",
        thesis.id, access.user.id, email, role.value, " (supervisor)" if is_supervisor else "",
    )
    return invitation


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@router.get("/{thesis_id}/collaborators", response_model=List[CollaboratorResponse])
async def list_collaborators(
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> List[CollaboratorResponse]:
    result = await db.execute(
        select(ThesisCollaborator, User)
        .join(User, User.id == ThesisCollaborator.user_id)
        .where(ThesisCollaborator.thesis_id == access.thesis.id)
        .order_by(ThesisCollaborator.created_at)
    )
    return [
        CollaboratorResponse(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=collaborator.role.value,
            created_at=collaborator.created_at,
        )
        for collaborator, user in result.all()
    ]


@router.patch("/{thesis_id}/collaborators/{user_id}", response_model=CollaboratorResponse)
async def change_role(
    user_id: str,
    body: CollaboratorUpdateRequest,
    access: ThesisAccess = Depends(require_manage),
    db: AsyncSession = Depends(get_db),
) -> CollaboratorResponse:
    """
    Change a collaborator's role.

    Admins may move people between editor, reviewer and viewer; touching
    owner or admin roles needs owner rights.  The last owner cannot be
    demoted.
    """
    collaborator = await _get_collaborator(access.thesis.id, user_id, db)
    new_role = CollaboratorRole(body.role.value)
    old_role = collaborator.role

    if not access.is_owner and (
        ROLE_RANK[old_role] >= ROLE_RANK[CollaboratorRole.ADMIN]
        or ROLE_RANK[new_role] >= ROLE_RANK[CollaboratorRole.ADMIN]
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only owners can grant or change owner and admin roles.",
        )
    if (
        old_role == CollaboratorRole.OWNER
        and new_role != CollaboratorRole.OWNER
        and await _owner_count(access.thesis.id, db) <= 1
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A thesis must keep at least one owner.",
        )

    if new_role != old_role:
        collaborator.role = new_role
        await db.flush()
        await notification_service.fan_out(
            db,
            access.thesis.id,
            access.user.id,
            NotificationType.ROLE_CHANGED,
            f"A collaborator on '{access.thesis.title}' is now {new_role.value}",
            f"role:{access.thesis.id}:{user_id}:{new_role.value}:{datetime.now(timezone.utc).isoformat()}",
        )
        logger.info(
            "Thesis %s: %s changed %s from %s to %s",
            access.thesis.id, access.user.id, user_id, old_role.value, new_role.value,
        )

    await db.commit()
    user = await db.get(User, user_id)
    return CollaboratorResponse(
        user_id=user_id,
        email=user.email,
        name=user.name,
        role=collaborator.role.value,
        created_at=collaborator.created_at,
    )


@router.delete("/{thesis_id}/collaborators/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_collaborator(
    user_id: str,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Remove a collaborator. Owners and admins remove others; anyone may leave."""
    leaving = user_id == access.user.id
    if not leaving and not access.can_manage:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{access.role.value}' may not remove collaborators.",
        )

    collaborator = await _get_collaborator(access.thesis.id, user_id, db)
    if collaborator.role == CollaboratorRole.OWNER:
        if not leaving and not access.is_owner:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only owners can remove an owner.",
            )
        if await _owner_count(access.thesis.id, db) <= 1:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A thesis must keep at least one owner.",
            )

    await db.delete(collaborator)
    await db.commit()
    logger.info("Thesis %s: collaborator %s removed by %s", access.thesis.id, user_id, access.user.id)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.post(
    "/{thesis_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    body: InvitationCreateRequest,
    access: ThesisAccess = Depends(require_manage),
    mailer: EmailService = Depends(get_email_service),
    db: AsyncSession = Depends(get_db),
) -> InvitationResponse:
    """
    Invite someone by email.

    The ``owner`` role cannot be granted by invitation, and ``admin`` only by
    an owner.
    """
    email = _validated_email(body.email)
    role = CollaboratorRole(body.role.value)
    if role == CollaboratorRole.OWNER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The owner role cannot be granted by invitation.",
        )
    if role == CollaboratorRole.ADMIN and not access.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only owners can invite admins.",
        )

    invitation = await _create_and_send(access, email, role, False, mailer, db)
    return invitation_response(invitation)


@router.get("/{thesis_id}/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    access: ThesisAccess = Depends(require_manage),
    db: AsyncSession = Depends(get_db),
) -> List[InvitationResponse]:
    result = await db.execute(
        select(ThesisInvitation)
        .where(ThesisInvitation.thesis_id == access.thesis.id)
        .order_by(ThesisInvitation.created_at.desc())
    )
    return [invitation_response(i) for i in result.scalars().all()]


@router.delete("/{thesis_id}/invitations/{invitation_id}", response_model=InvitationResponse)
async def revoke_invitation(
    invitation_id: int,
    access: ThesisAccess = Depends(require_manage),
    db: AsyncSession = Depends(get_db),
) -> InvitationResponse:
    result = await db.execute(
        select(ThesisInvitation).where(
            ThesisInvitation.id == invitation_id,
            ThesisInvitation.thesis_id == access.thesis.id,
        )
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invitation {invitation_id} not found.",
        )
    if invitation.status == InvitationStatus.ACCEPTED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation was already accepted.",
        )

    invitation.status = InvitationStatus.REVOKED
    invitation.responded_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(invitation)
    logger.info("Thesis %s: invitation %s revoked by %s", access.thesis.id, invitation_id, access.user.id)
    return invitation_response(invitation)


@router.post(
    "/{thesis_id}/supervisor-invite",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_supervisor(
    body: SupervisorInviteRequest,
    access: ThesisAccess = Depends(require_manage),
    mailer: EmailService = Depends(get_email_service),
    db: AsyncSession = Depends(get_db),
) -> InvitationResponse:
    """Record the supervisor's email on the thesis and send them a reviewer invitation."""
    email = _validated_email(body.email)
    access.thesis.supervisor_email = email
    invitation = await _create_and_send(access, email, CollaboratorRole.REVIEWER, True, mailer, db)
    return invitation_response(invitation)


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------

@invitation_router.post("/{token}/accept", response_model=InvitationAcceptResponse)
async def accept_invitation(
    token: str,
    user: User = Depends(get_or_create_user),
    db: AsyncSession = Depends(get_db),
) -> InvitationAcceptResponse:
    """
    Join a thesis with the invited role.

    Existing collaborators keep whichever of their current and invited
    roles ranks higher.
    """
    result = await db.execute(select(ThesisInvitation).where(ThesisInvitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found.")
    if invitation.status in (InvitationStatus.ACCEPTED, InvitationStatus.REVOKED):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invitation is already {invitation.status.value}.",
        )

    thesis = await db.get(Thesis, invitation.thesis_id)
    if thesis is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Thesis no longer exists.")

    if normalize_email(user.email) != invitation.email:
        logger.warning(
            "Invitation %s for %s accepted by %s (%s)",
            invitation.id, invitation.email, user.id, user.email,
        )

    existing = await db.execute(
        select(ThesisCollaborator).where(
            ThesisCollaborator.thesis_id == thesis.id,
            ThesisCollaborator.user_id == user.id,
        )
    )
    collaborator = existing.scalar_one_or_none()
    if collaborator is None:
        collaborator = ThesisCollaborator(thesis_id=thesis.id, user_id=user.id, role=invitation.role)
        db.add(collaborator)
    else:
        collaborator.role = higher_role(collaborator.role, invitation.role)

    if invitation.is_supervisor:
        thesis.supervisor_id = user.id
    invitation.status = InvitationStatus.ACCEPTED
    invitation.accepted_by = user.id
    invitation.responded_at = datetime.now(timezone.utc)
    await db.flush()

    await notification_service.fan_out(
        db,
        thesis.id,
        user.id,
        NotificationType.COLLABORATOR_JOINED,
        f"{user.name or user.email} joined '{thesis.title}' as {collaborator.role.value}",
        f"joined:{invitation.id}",
    )
    await db.commit()
    logger.info("Thesis %s: %s accepted invitation %s", thesis.id, user.id, invitation.id)

    return InvitationAcceptResponse(
        thesis_id=thesis.id,
        role=collaborator.role.value,
        message=f"You now have {collaborator.role.value} access to '{thesis.title}'.",
    )
