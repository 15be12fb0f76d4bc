"""Tests for notification fan-out, listing and read state."""
import pytest
from httpx import AsyncClient

from app.models.database_models import NotificationType
from app.services.notifications import notification_service
from tests.conftest import (
    AUTH_HEADERS,
    AUTH_HEADERS_USER2,
    AUTH_HEADERS_USER3,
    add_collaborator,
    create_thesis,
)


async def _team(client: AsyncClient, db_session) -> dict:
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "editor", AUTH_HEADERS_USER2)
    await add_collaborator(client, db_session, thesis["id"], "viewer", AUTH_HEADERS_USER3)
    return thesis


@pytest.mark.asyncio
async def test_fan_out_skips_actor_and_deduplicates(client: AsyncClient, db_session):
    thesis = await _team(client, db_session)

    created = await notification_service.fan_out(
        db_session, thesis["id"], "test-user-1", NotificationType.VERSION_CREATED, "Version 9 saved", "version:x:9"
    )
    assert sorted(n.user_id for n in created) == ["test-user-2", "test-user-3"]

    again = await notification_service.fan_out(
        db_session, thesis["id"], "test-user-1", NotificationType.VERSION_CREATED, "Version 9 saved", "version:x:9"
    )
    assert again == []

    # same key, different actor: only the original actor is still missing it
    third = await notification_service.fan_out(
        db_session, thesis["id"], "test-user-2", NotificationType.VERSION_CREATED, "Version 9 saved", "version:x:9"
    )
    assert [n.user_id for n in third] == ["test-user-1"]
    await db_session.commit()


@pytest.mark.asyncio
async def test_chat_notifies_everyone_but_sender(client: AsyncClient, db_session):
    thesis = await _team(client, db_session)
    resp = await client.post(
        f"/api/theses/{thesis['id']}/messages", json={"content": "Draft is ready"}, headers=AUTH_HEADERS_USER2
    )
    assert resp.status_code == 201

    for headers in (AUTH_HEADERS, AUTH_HEADERS_USER3):
        resp = await client.get("/api/notifications", params={"thesis_id": thesis["id"]}, headers=headers)
        latest = resp.json()[0]
        assert latest["type"] == "chat_message"
        assert "Draft is ready" in latest["message"]

    resp = await client.get("/api/notifications", headers=AUTH_HEADERS_USER2)
    assert "chat_message" not in [n["type"] for n in resp.json()]


@pytest.mark.asyncio
async def test_unread_count_and_mark_read(client: AsyncClient, db_session):
    thesis = await _team(client, db_session)
    for text in ("one", "two"):
        await client.post(f"/api/theses/{thesis['id']}/messages", json={"content": text}, headers=AUTH_HEADERS_USER2)

    resp = await client.get("/api/notifications/unread-count", headers=AUTH_HEADERS_USER3)
    assert resp.json() == {"unread": 2}

    notifications = (await client.get("/api/notifications", headers=AUTH_HEADERS_USER3)).json()
    resp = await client.post(f"/api/notifications/{notifications[0]['id']}/read", headers=AUTH_HEADERS_USER3)
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    resp = await client.get("/api/notifications", params={"unread_only": True}, headers=AUTH_HEADERS_USER3)
    assert [n["id"] for n in resp.json()] == [notifications[1]["id"]]

    resp = await client.post("/api/notifications/read-all", headers=AUTH_HEADERS_USER3)
    assert resp.json() == {"updated": 1}
    resp = await client.get("/api/notifications/unread-count", headers=AUTH_HEADERS_USER3)
    assert resp.json() == {"unread": 0}


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(client: AsyncClient, db_session):
    thesis = await _team(client, db_session)
    await client.post(f"/api/theses/{thesis['id']}/messages", json={"content": "hi"}, headers=AUTH_HEADERS)

    theirs = (await client.get("/api/notifications", headers=AUTH_HEADERS_USER2)).json()[0]
    resp = await client.post(f"/api/notifications/{theirs['id']}/read", headers=AUTH_HEADERS_USER3)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_notifications_require_user(client: AsyncClient):
    resp = await client.get("/api/notifications")
    assert resp.status_code == 422
