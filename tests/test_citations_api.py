"""Tests for citation CRUD, parsing, formatting and Crossref search."""
import httpx
import pytest
from httpx import AsyncClient

from app.main import app
from app.services.crossref import CrossrefClient, get_crossref_client
from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, add_collaborator, create_thesis

ARTICLE = {
    "text": "Deep learning for OCR",
    "authors": ["John Smith", "Jane Doe"],
    "year": "2020",
    "type": "article",
    "journal": "Pattern Recognition",
    "volume": "12",
    "issue": "3",
    "pages": "45-67",
    "doi": "10.1016/j.patcog.2020.01",
}

BOOK = {
    "text": "Arabic Script Processing",
    "authors": ["Ali Benali"],
    "year": "2018",
    "type": "book",
    "publisher": "Springer",
}


async def _add(client: AsyncClient, thesis_id: str, citation: dict) -> dict:
    resp = await client.post(f"/api/theses/{thesis_id}/citations", json=citation, headers=AUTH_HEADERS)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_create_and_list_citations(client: AsyncClient):
    thesis = await create_thesis(client)
    created = await _add(client, thesis["id"], ARTICLE)
    assert created["authors"] == ["John Smith", "Jane Doe"]
    assert created["type"] == "article"
    await _add(client, thesis["id"], BOOK)

    resp = await client.get(f"/api/theses/{thesis['id']}/citations", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    # newest year first by default
    assert [c["year"] for c in resp.json()] == ["2020", "2018"]

    resp = await client.get(
        f"/api/theses/{thesis['id']}/citations",
        params={"search": "benali"},
        headers=AUTH_HEADERS,
    )
    assert [c["text"] for c in resp.json()] == ["Arabic Script Processing"]

    resp = await client.get(
        f"/api/theses/{thesis['id']}/citations",
        params={"type": "article", "sort": "author", "direction": "asc"},
        headers=AUTH_HEADERS,
    )
    assert [c["text"] for c in resp.json()] == ["Deep learning for OCR"]


@pytest.mark.asyncio
async def test_invalid_sort_field_is_rejected(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.get(
        f"/api/theses/{thesis['id']}/citations", params={"sort": "color"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_citation(client: AsyncClient):
    thesis = await create_thesis(client)
    citation = await _add(client, thesis["id"], BOOK)
    url = f"/api/theses/{thesis['id']}/citations/{citation['id']}"

    resp = await client.patch(url, json={"year": "2019", "publisher": "Elsevier"}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["year"] == "2019"
    assert resp.json()["publisher"] == "Elsevier"
    assert resp.json()["text"] == "Arabic Script Processing"

    resp = await client.delete(url, headers=AUTH_HEADERS)
    assert resp.status_code == 204
    resp = await client.delete(url, headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_rejects_null_required_fields(client: AsyncClient):
    thesis = await create_thesis(client)
    citation = await _add(client, thesis["id"], BOOK)
    url = f"/api/theses/{thesis['id']}/citations/{citation['id']}"

    for field in ("year", "type", "text"):
        resp = await client.patch(url, json={field: None}, headers=AUTH_HEADERS)
        assert resp.status_code == 422, field

    resp = await client.patch(url, json={"authors": None, "publisher": None}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["authors"] == []
    assert data["publisher"] is None
    assert (data["year"], data["type"]) == ("2018", "book")


@pytest.mark.asyncio
async def test_reviewer_cannot_add_citations(client: AsyncClient, db_session):
    thesis = await create_thesis(client)
    await add_collaborator(client, db_session, thesis["id"], "reviewer", AUTH_HEADERS_USER2)

    resp = await client.post(f"/api/theses/{thesis['id']}/citations", json=BOOK, headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 403

    resp = await client.get(f"/api/theses/{thesis['id']}/citations", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_formatted_citation_and_bibliography(client: AsyncClient):
    thesis = await create_thesis(client)
    article = await _add(client, thesis["id"], ARTICLE)
    await _add(client, thesis["id"], BOOK)

    resp = await client.get(
        f"/api/theses/{thesis['id']}/citations/{article['id']}/formatted",
        params={"style": "apa"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["formatted"] == (
        "Smith, J., Doe, J. (2020). Deep learning for OCR. Pattern Recognition, 12(3), 45-67. "
        "https://doi.org/10.1016/j.patcog.2020.01"
    )

    resp = await client.get(
        f"/api/theses/{thesis['id']}/bibliography", params={"style": "vancouver"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 200
    entries = [e["formatted"] for e in resp.json()["entries"]]
    # ordered by first author's last name: Benali before Smith
    assert entries[0].startswith("Benali A. Arabic Script Processing.")
    assert entries[1].startswith("Smith J, Doe J. Deep learning for OCR.")


@pytest.mark.asyncio
async def test_parse_reference_and_save(client: AsyncClient):
    thesis = await create_thesis(client)
    reference = (
        "John Smith, Jane Doe (2020). Deep learning for OCR. Pattern Recognition, 12(3), 45-67. "
        "https://doi.org/10.1016/j.patcog.2020.01"
    )
    resp = await client.post(
        f"/api/theses/{thesis['id']}/citations/parse",
        json={"text": reference, "save": True},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["title"] == "Deep learning for OCR"
    assert data["authors"] == ["John Smith", "Jane Doe"]
    assert data["journal"] == "Pattern Recognition"
    assert (data["volume"], data["issue"], data["pages"]) == ("12", "3", "45-67")
    assert data["citation"]["doi"] == "10.1016/j.patcog.2020.01"

    resp = await client.get(f"/api/theses/{thesis['id']}/citations", headers=AUTH_HEADERS)
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_parse_unusable_reference(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.post(
        f"/api/theses/{thesis['id']}/citations/parse",
        json={"text": "just some words"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Crossref
# ---------------------------------------------------------------------------

def _crossref_override(handler):
    app.dependency_overrides[get_crossref_client] = lambda: CrossrefClient(
        transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_crossref_search(client: AsyncClient):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["query"] = request.url.params["query"]
        return httpx.Response(
            200,
            json={
                "message": {
                    "items": [
                        {
                            "title": ["Attention Is All You Need"],
                            "author": [{"given": "Ashish", "family": "Vaswani"}],
                            "published": {"date-parts": [[2017, 6]]},
                            "container-title": ["NeurIPS"],
                            "DOI": "10.5555/3295222.3295349",
                            "publisher": "Curran",
                        }
                    ]
                }
            },
        )

    _crossref_override(handler)
    resp = await client.get("/api/citations/search", params={"query": "attention"}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert seen["query"] == "attention"
    drafts = resp.json()
    assert drafts[0]["text"] == "Attention Is All You Need"
    assert drafts[0]["authors"] == ["Ashish Vaswani"]
    assert drafts[0]["year"] == "2017"
    assert drafts[0]["journal"] == "NeurIPS"


@pytest.mark.asyncio
async def test_crossref_failure_maps_to_502(client: AsyncClient):
    _crossref_override(lambda request: httpx.Response(503))
    resp = await client.get("/api/citations/search", params={"query": "attention"}, headers=AUTH_HEADERS)
    assert resp.status_code == 502
