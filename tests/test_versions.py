"""Tests for version snapshots, diffs and restore."""
import pytest
from httpx import AsyncClient

from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, add_collaborator, create_thesis


async def _snapshot(client: AsyncClient, thesis_id: str, description: str = "") -> dict:
    resp = await client.post(
        f"/api/theses/{thesis_id}/versions", json={"description": description}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_first_version_is_initial(client: AsyncClient):
    thesis = await create_thesis(client)
    version = await _snapshot(client, thesis["id"], "First draft")
    assert version["version_number"] == 1
    assert version["description"] == "First draft"
    assert version["language"] == "en"
    assert [(c["type"], c["path"], c["description"]) for c in version["changes"]] == [
        ("addition", "root", "Initial version")
    ]
    assert version["content"]["generalIntroduction"]["id"] == thesis["content"]["generalIntroduction"]["id"]


@pytest.mark.asyncio
async def test_second_version_records_diff(client: AsyncClient):
    thesis = await create_thesis(client)
    await _snapshot(client, thesis["id"])

    resp = await client.post(
        f"/api/theses/{thesis['id']}/chapters", json={"title": "Methods"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 201
    version = await _snapshot(client, thesis["id"], "Added methods")
    assert version["version_number"] == 2
    assert [(c["type"], c["path"]) for c in version["changes"]] == [("addition", "chapters[0]")]
    assert version["changes"][0]["newValue"]["title"] == "Methods"

    resp = await client.get(f"/api/theses/{thesis['id']}/versions", headers=AUTH_HEADERS)
    summaries = resp.json()
    assert [v["version_number"] for v in summaries] == [2, 1]
    assert [v["change_count"] for v in summaries] == [1, 1]
    assert "content" not in summaries[0]


@pytest.mark.asyncio
async def test_compare_is_order_independent(client: AsyncClient):
    thesis = await create_thesis(client)
    await _snapshot(client, thesis["id"])
    await client.patch(
        f"/api/theses/{thesis['id']}/metadata", json={"universityName": "USTHB"}, headers=AUTH_HEADERS
    )
    await _snapshot(client, thesis["id"])

    url = f"/api/theses/{thesis['id']}/versions/compare"
    forward = (await client.get(url, params={"a": 1, "b": 2}, headers=AUTH_HEADERS)).json()
    backward = (await client.get(url, params={"a": 2, "b": 1}, headers=AUTH_HEADERS)).json()
    assert forward == backward
    assert (forward["from_version"], forward["to_version"]) == (1, 2)
    change = next(c for c in forward["changes"] if c["path"] == "metadata.universityName")
    assert (change["type"], change["oldValue"], change["newValue"]) == ("modification", "", "USTHB")

    resp = await client.get(url, params={"a": 1, "b": 7}, headers=AUTH_HEADERS)
    assert resp.status_code == 404

    resp = await client.get(url, params={"a": 2, "b": 2}, headers=AUTH_HEADERS)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_get_missing_version(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.get(f"/api/theses/{thesis['id']}/versions/3", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_restore_version(client: AsyncClient, db_session):
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "editor", AUTH_HEADERS_USER2)
    await _snapshot(client, thesis["id"])

    await client.post(f"/api/theses/{thesis['id']}/chapters", json={"title": "Methods"}, headers=AUTH_HEADERS)
    resp = await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS)
    assert len(resp.json()["content"]["chapters"]) == 1

    resp = await client.post(f"/api/theses/{thesis['id']}/versions/1/restore", headers=AUTH_HEADERS)
    assert resp.status_code == 200, resp.text
    assert resp.json()["content"]["chapters"] == []

    # restoring does not create a version of its own
    resp = await client.get(f"/api/theses/{thesis['id']}/versions", headers=AUTH_HEADERS)
    assert len(resp.json()) == 1

    resp = await client.get("/api/notifications", headers=AUTH_HEADERS_USER2)
    assert [n["type"] for n in resp.json()][:2] == ["version_restored", "version_created"]

    resp = await client.post(f"/api/theses/{thesis['id']}/versions/5/restore", headers=AUTH_HEADERS)
    assert resp.status_code == 404
