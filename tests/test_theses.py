"""Tests for thesis CRUD, autosave, progress and deletion."""
import pytest
from httpx import AsyncClient

from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, add_collaborator, create_thesis


@pytest.mark.asyncio
async def test_create_thesis_builds_english_outline(client: AsyncClient):
    data = await create_thesis(
        client,
        description="Recognising handwritten Arabic script.",
        keywords="ocr, arabic,  deep learning",
        universityName="University of Algiers",
        authors=[{"firstName": "Amina", "lastName": "Belkacem"}],
    )
    assert data["role"] == "owner"
    assert data["status"] == "draft"
    assert data["language"] == "en"

    content = data["content"]
    front_types = [s["type"] for s in content["frontMatter"]]
    assert front_types[:2] == ["title", "abstract"]
    assert "table-of-contents" in front_types
    assert content["frontMatter"][0]["title"] == "Deep Learning for Arabic OCR"
    assert content["frontMatter"][1]["content"] == "Recognising handwritten Arabic script."
    assert [s["type"] for s in content["backMatter"]] == ["references"]
    assert content["chapters"] == []
    assert content["generalIntroduction"]["title"] == "General Introduction"
    assert content["metadata"]["keywords"] == ["ocr", "arabic", "deep learning"]
    assert content["metadata"]["universityName"] == "University of Algiers"


@pytest.mark.asyncio
async def test_create_thesis_with_outline_in_french(client: AsyncClient):
    data = await create_thesis(client, title="Mémoire", language="fr", include_outline=True)
    content = data["content"]
    titles = [c["title"] for c in content["chapters"]]
    assert titles[0] == "Introduction"
    assert "Méthodologie" in titles
    assert [c["order"] for c in content["chapters"]] == list(range(1, len(titles) + 1))
    assert content["generalIntroduction"]["title"] == "Introduction générale"
    assert content["backMatter"][0]["title"] == "Bibliographie"


@pytest.mark.asyncio
async def test_create_thesis_rejects_blank_title(client: AsyncClient):
    resp = await client.post("/api/theses", json={"title": ""}, headers=AUTH_HEADERS)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_theses_scoped_to_collaborator(client: AsyncClient, db_session):
    mine = await create_thesis(client, title="Mine")
    await create_thesis(client, headers=AUTH_HEADERS_USER2, title="Theirs")

    resp = await client.get("/api/theses", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert [t["title"] for t in resp.json()] == ["Mine"]

    await add_collaborator(client, db_session, mine["id"], "reviewer", AUTH_HEADERS_USER2)
    resp = await client.get("/api/theses", headers=AUTH_HEADERS_USER2)
    roles = {t["title"]: t["role"] for t in resp.json()}
    assert roles == {"Mine": "reviewer", "Theirs": "owner"}


@pytest.mark.asyncio
async def test_status_filter_and_stats(client: AsyncClient):
    first = await create_thesis(client, title="First")
    await create_thesis(client, title="Second")

    resp = await client.patch(
        f"/api/theses/{first['id']}", json={"status": "in_review"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_review"

    resp = await client.get("/api/theses", params={"status": "in_review"}, headers=AUTH_HEADERS)
    assert [t["title"] for t in resp.json()] == ["First"]

    resp = await client.get("/api/theses/stats", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    stats = resp.json()
    assert stats["total"] == 2
    assert stats["owned"] == 2
    assert stats["draft"] == 1
    assert stats["in_review"] == 1


@pytest.mark.asyncio
async def test_update_thesis_fields(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.patch(
        f"/api/theses/{thesis['id']}",
        json={
            "title": "  Renamed  ",
            "description": "New description",
            "permissions": {"isPublic": True, "allowComments": False, "allowSharing": True},
        },
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Renamed"
    assert data["description"] == "New description"
    assert data["permissions"]["isPublic"] is True
    assert data["permissions"]["allowComments"] is False


@pytest.mark.asyncio
async def test_save_content_normalises_tree(client: AsyncClient):
    thesis = await create_thesis(client)
    content = thesis["content"]
    content["chapters"] = [{"title": "Background", "content": "Some words here."}]
    content["generalIntroduction"]["content"] = "Intro text."

    resp = await client.put(
        f"/api/theses/{thesis['id']}/content", json={"content": content}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 200
    saved = resp.json()["content"]
    chapter = saved["chapters"][0]
    assert chapter["id"]
    assert chapter["order"] == 1
    assert chapter["sections"] == []
    assert saved["generalIntroduction"]["content"] == "Intro text."


@pytest.mark.asyncio
async def test_save_content_keeps_block_content(client: AsyncClient):
    thesis = await create_thesis(client)
    content = thesis["content"]
    blocks = [{"type": "paragraph", "content": "First"}, {"type": "quote", "content": "Second"}]
    content["frontMatter"][1]["content"] = blocks

    resp = await client.put(
        f"/api/theses/{thesis['id']}/content", json={"content": content}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 200
    assert resp.json()["content"]["frontMatter"][1]["content"] == blocks

    reloaded = (await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS)).json()
    assert reloaded["content"]["frontMatter"][1]["content"] == blocks

    progress = (await client.get(f"/api/theses/{thesis['id']}/progress", headers=AUTH_HEADERS)).json()
    assert progress["word_count"] == 2


@pytest.mark.asyncio
async def test_malformed_content_is_rejected(client: AsyncClient):
    thesis = await create_thesis(client)
    url = f"/api/theses/{thesis['id']}/content"

    for metadata_patch in ({"authors": [None]}, {"keywords": 5}):
        content = dict(thesis["content"])
        content["metadata"] = {**thesis["content"]["metadata"], **metadata_patch}
        resp = await client.put(url, json={"content": content}, headers=AUTH_HEADERS)
        assert resp.status_code == 400, resp.text

    content = dict(thesis["content"], chapters="Background")
    resp = await client.put(url, json={"content": content}, headers=AUTH_HEADERS)
    assert resp.status_code == 400

    reloaded = (await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS)).json()
    assert reloaded["content"]["metadata"]["keywords"] == thesis["content"]["metadata"]["keywords"]


@pytest.mark.asyncio
async def test_stale_autosave_is_rejected(client: AsyncClient):
    thesis = await create_thesis(client)
    loaded_at = thesis["updated_at"]

    resp = await client.put(
        f"/api/theses/{thesis['id']}/content",
        json={"content": thesis["content"], "base_updated_at": loaded_at},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200

    resp = await client.put(
        f"/api/theses/{thesis['id']}/content",
        json={"content": thesis["content"], "base_updated_at": "2000-01-01T00:00:00+00:00"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_progress_counts_sections(client: AsyncClient):
    thesis = await create_thesis(client, description="An abstract with six words.")
    resp = await client.get(f"/api/theses/{thesis['id']}/progress", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    progress = resp.json()
    # title, abstract, toc, general intro, general conclusion, references
    assert progress["total_sections"] == 6
    # title, toc and references are generated; abstract has text
    assert progress["completed_sections"] == 4
    assert set(progress["missing_required"]) == {"General Introduction", "General Conclusion"}
    assert progress["word_count"] == 5
    assert progress["chapter_count"] == 0


@pytest.mark.asyncio
async def test_delete_thesis(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.delete(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 204

    resp = await client.get(f"/api/theses/{thesis['id']}", headers=AUTH_HEADERS)
    assert resp.status_code == 404
    resp = await client.get("/api/theses", headers=AUTH_HEADERS)
    assert resp.json() == []
