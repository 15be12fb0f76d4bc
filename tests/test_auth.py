"""Tests for authentication and thesis-access boundaries.

Verifies that thesis endpoints require X-User-Id, that outsiders never
learn a thesis exists, and that collaborator roles gate writes.
"""
import pytest
from httpx import AsyncClient

from tests.conftest import (
    ADMIN_HEADERS,
    AUTH_HEADERS,
    AUTH_HEADERS_USER2,
    AUTH_HEADERS_USER3,
    add_collaborator,
    create_thesis,
)


@pytest.mark.asyncio
async def test_theses_requires_auth_header(client: AsyncClient):
    """GET /api/theses without X-User-Id should return 422 (missing required header)."""
    resp = await client.get("/api/theses")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_blank_user_id_is_unauthorized(client: AsyncClient):
    resp = await client.get("/api/theses", headers={"X-User-Id": "   "})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_thesis_requires_auth_header(client: AsyncClient):
    resp = await client.post("/api/theses", json={"title": "Unauthed Thesis"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_outsider_gets_404_not_403(client: AsyncClient):
    """User 2 is not a collaborator, so the thesis must look nonexistent."""
    thesis = await create_thesis(client, title="Private Thesis")

    resp = await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404

    resp = await client.delete(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_nonexistent_thesis_returns_404(client: AsyncClient):
    resp = await client.get("/api/theses/does-not-exist", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_viewer_can_read_but_not_edit(client: AsyncClient, db_session):
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "viewer", AUTH_HEADERS_USER2)

    resp = await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 200
    assert resp.json()["role"] == "viewer"

    resp = await client.post(
        f"/api/theses/{thesis['id']}/chapters",
        json={"title": "Sneaky Chapter"},
        headers=AUTH_HEADERS_USER2,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_editor_cannot_delete_thesis(client: AsyncClient, db_session):
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "editor", AUTH_HEADERS_USER2)

    resp = await client.delete(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_editor_cannot_change_permissions(client: AsyncClient, db_session):
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "editor", AUTH_HEADERS_USER3)

    resp = await client.patch(
        f"/api/theses/{thesis['id']}",
        json={"permissions": {"isPublic": True, "allowComments": True, "allowSharing": True}},
        headers=AUTH_HEADERS_USER3,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_platform_admin_acts_as_admin_everywhere(client: AsyncClient):
    thesis = await create_thesis(client)

    resp = await client.get(f"/api/theses/{thesis['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["role"] == "admin"

    resp = await client.delete(f"/api/theses/{thesis['id']}", headers=ADMIN_HEADERS)
    assert resp.status_code == 204
