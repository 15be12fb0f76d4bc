"""
Invitation emails sent through a Resend-compatible HTTP API.
"""
from __future__ import annotations

import html
import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when the email provider rejects or never receives a message."""


def render_invite_email(thesis_title: str, invite_link: str, role: str) -> Dict[str, str]:
    title = html.escape(thesis_title)
    link = html.escape(invite_link, quote=True)
    return {
        "subject": f"Invitation to collaborate on thesis: {thesis_title}",
        "html": (
            "<h2>Thesis Collaboration Invitation</h2>"
            f"<p>You have been invited to collaborate on the thesis: <strong>{title}</strong></p>"
            f"<p>Role: {html.escape(role)}</p>"
            "<p>Click the link below to accept the invitation:</p>"
            f'<a href="{link}">Accept Invitation</a>'
        ),
    }


def render_supervisor_email(thesis_title: str, invite_link: str) -> Dict[str, str]:
    title = html.escape(thesis_title.strip())
    link = html.escape(invite_link.strip(), quote=True)
    return {
        "subject": f"Invitation to supervise thesis: {thesis_title.strip()}",
        "html": (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            "<h2>Thesis Supervision Invitation</h2>"
            f"<p>You have been invited to supervise the thesis: <strong>{title}</strong></p>"
            "<p>As a supervisor, you will be able to:</p>"
            "<ul>"
            "<li>Review and comment on thesis content</li>"
            "<li>Add annotations and highlights</li>"
            "<li>Track student progress</li>"
            "<li>Provide feedback and suggestions</li>"
            "</ul>"
            "<p>Click the link below to accept the invitation:</p>"
            f'<p><a href="{link}" style="display: inline-block; padding: 10px 20px; '
            'background-color: #4CAF50; color: white; text-decoration: none; '
            'border-radius: 5px;">Accept Invitation</a></p>'
            '<p style="color: #666; font-size: 0.9em;">If you cannot click the button, '
            f"copy and paste this link into your browser: {link}</p>"
            "</div>"
        ),
    }


class EmailService:
    """
    Posts messages to ``EMAIL_API_URL`` with a bearer API key.

    *transport* lets tests swap in ``httpx.MockTransport``.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_url = settings.EMAIL_API_URL
        self.api_key = settings.EMAIL_API_KEY
        self.sender = settings.SENDER_EMAIL
        self.timeout = httpx.Timeout(settings.EMAIL_TIMEOUT, connect=5.0)
        self._transport = transport

    async def send(self, to: str, subject: str, html_body: str) -> Dict[str, Any]:
        """
        Deliver one HTML message.

        Returns:
            The provider's JSON response (``{"id": ...}`` for Resend)

        Raises:
            EmailDeliveryError: provider unreachable or non-2xx response
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html_body}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            logger.error("Email to %s failed: %s", to, exc)
            raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Email to %s rejected: HTTP %d %s", to, response.status_code, response.text[:200])
            raise EmailDeliveryError(f"Email provider returned HTTP {response.status_code}")

        logger.info("Email %r sent to %s", subject, to)
        try:
            return response.json()
        except ValueError:
            return {}

    async def send_invite(self, to: str, thesis_title: str, invite_link: str, role: str) -> Dict[str, Any]:
        message = render_invite_email(thesis_title, invite_link, role)
        return await self.send(to, message["subject"], message["html"])

    async def send_supervisor_invite(self, to: str, thesis_title: str, invite_link: str) -> Dict[str, Any]:
        message = render_supervisor_email(thesis_title, invite_link)
        return await self.send(to.strip(), message["subject"], message["html"])


def get_email_service() -> EmailService:
    """FastAPI dependency; overridden in tests."""
    return EmailService()
