"""
Stateless invitation-email endpoints.

POST /send-invite              {to, thesisTitle, inviteLink, role}
POST /send-supervisor-invite   {to, thesisTitle, inviteLink}
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies.auth import get_current_user_id
from app.models.schemas import InviteEmailRequest
from app.services.email_service import EmailDeliveryError, EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_fields(body: InviteEmailRequest, *fields: str) -> None:
    missing = [f for f in fields if not (getattr(body, f) or "").strip()]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required fields: {', '.join(missing)}",
        )


@router.post("/send-invite")
async def send_invite(
    body: InviteEmailRequest,
    user_id: str = Depends(get_current_user_id),
    mailer: EmailService = Depends(get_email_service),
):
    _require_fields(body, "to", "thesisTitle", "inviteLink", "role")
    try:
        data = await mailer.send_invite(body.to, body.thesisTitle, body.inviteLink, body.role)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.info("Invite email for %r sent to %s on behalf of %s", body.thesisTitle, body.to, user_id)
    return {"message": "Invitation email sent successfully", "data": data}


@router.post("/send-supervisor-invite")
async def send_supervisor_invite(
    body: InviteEmailRequest,
    user_id: str = Depends(get_current_user_id),
    mailer: EmailService = Depends(get_email_service),
):
    _require_fields(body, "to", "thesisTitle", "inviteLink")
    try:
        await mailer.send_supervisor_invite(body.to, body.thesisTitle, body.inviteLink)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.info("Supervisor invite for %r sent to %s on behalf of %s", body.thesisTitle, body.to, user_id)
    return {"success": True}
