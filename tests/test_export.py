"""Tests for DOCX, PDF and JSON export."""
import io

import fitz  # PyMuPDF
import pytest
from docx import Document
from httpx import AsyncClient

from app.services.docx_export import DOCX_MEDIA_TYPE
from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, create_thesis


async def _populated_thesis(client: AsyncClient) -> dict:
    thesis = await create_thesis(client, authors=[{"firstName": "Amina", "lastName": "Belkacem"}])
    base = f"/api/theses/{thesis['id']}"
    resp = await client.post(
        f"{base}/chapters",
        json={"title": "Methods", "content": "We **trained** a model.\n\n- first step\n- second step"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 201
    resp = await client.post(
        f"{base}/citations",
        json={"text": "Arabic Script Processing", "authors": ["Ali Benali"], "year": "2018",
              "type": "book", "publisher": "Springer"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 201
    return thesis


@pytest.mark.asyncio
async def test_export_docx(client: AsyncClient):
    thesis = await _populated_thesis(client)
    resp = await client.get(f"/api/theses/{thesis['id']}/export/docx", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == DOCX_MEDIA_TYPE
    assert resp.headers["content-disposition"] == 'attachment; filename="deep-learning-for-arabic-ocr.docx"'

    doc = Document(io.BytesIO(resp.content))
    texts = [p.text for p in doc.paragraphs]
    assert "DEEP LEARNING FOR ARABIC OCR" in texts
    assert "By Amina Belkacem" in texts
    assert "CHAPTER 1" in texts
    assert "METHODS" in texts
    assert "We trained a model." in texts
    assert "second step" in texts
    assert "Benali, A. (2018). Arabic Script Processing. Springer" in texts
    assert doc.core_properties.title == "Deep Learning for Arabic OCR"


@pytest.mark.asyncio
async def test_export_pdf(client: AsyncClient):
    thesis = await _populated_thesis(client)
    resp = await client.get(
        f"/api/theses/{thesis['id']}/export/pdf", params={"style": "mla"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")

    pdf = fitz.open(stream=resp.content, filetype="pdf")
    try:
        text = " ".join(page.get_text() for page in pdf)
    finally:
        pdf.close()
    assert "DEEP LEARNING" in text
    assert "METHODS" in text
    assert "Benali" in text


@pytest.mark.asyncio
async def test_export_json(client: AsyncClient):
    thesis = await _populated_thesis(client)
    resp = await client.get(f"/api/theses/{thesis['id']}/export/json", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["id"] == thesis["id"]
    assert data["status"] == "draft"
    assert data["content"]["chapters"][0]["title"] == "Methods"
    assert [c["text"] for c in data["citations"]] == ["Arabic Script Processing"]


@pytest.mark.asyncio
async def test_export_requires_access(client: AsyncClient):
    thesis = await create_thesis(client)
    resp = await client.get(f"/api/theses/{thesis['id']}/export/docx", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_generate_docx_from_payload(client: AsyncClient):
    payload = {
        "frontMatter": [{"type": "title", "title": "My Thesis"}, {"title": "Abstract", "content": "Short."}],
        "chapters": [
            {"title": "Introduction", "content": "Opening *words*.", "sections": [{"title": "Scope", "content": "Narrow."}]}
        ],
        "backMatter": [{"title": "Appendix", "content": "1. item"}],
        "metadata": {"universityName": "USTHB", "authorName": "Amina"},
    }
    resp = await client.post("/api/export/generate-docx", json=payload, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.headers["content-disposition"] == "attachment; filename=thesis.docx"

    doc = Document(io.BytesIO(resp.content))
    texts = [p.text for p in doc.paragraphs]
    assert texts[0] == "My Thesis"
    assert "USTHB" in texts
    assert "By Amina" in texts
    for expected in ("Abstract", "Short.", "Introduction", "Opening words.", "Scope", "Narrow.", "Appendix", "item"):
        assert expected in texts
