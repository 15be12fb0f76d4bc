"""
Export endpoints.

GET  /api/theses/{id}/export/docx?style=    Word document
GET  /api/theses/{id}/export/pdf?style=     PDF
GET  /api/theses/{id}/export/json           raw content tree + citations
POST /api/export/generate-docx              stateless chapters payload → DOCX
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import ThesisAccess, get_current_user_id, require_view
from app.models.schemas import CitationStyleSchema, GenerateDocxRequest
from app.routers.citations import citation_response, thesis_citations
from app.services.citations import build_bibliography
from app.services.docx_export import DOCX_MEDIA_TYPE, render_docx, render_generate_docx
from app.services.pdf_export import PDF_MEDIA_TYPE, render_pdf
from app.services.thesis_structure import normalize_content
from app.utils.helpers import slugify

logger = logging.getLogger(__name__)

router = APIRouter()
generate_router = APIRouter()


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


async def _bibliography(access: ThesisAccess, style: CitationStyleSchema, db: AsyncSession):
    return build_bibliography(await thesis_citations(access.thesis.id, db), style.value)


@router.get("/{thesis_id}/export/docx")
async def export_docx(
    style: CitationStyleSchema = Query(CitationStyleSchema.APA),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> Response:
    content = normalize_content(access.thesis.content)
    data = render_docx(access.thesis.title, content, await _bibliography(access, style, db))
    logger.info("Thesis %s exported as DOCX by %s", access.thesis.id, access.user.id)
    return Response(
        content=data,
        media_type=DOCX_MEDIA_TYPE,
        headers=_attachment(f"{slugify(access.thesis.title)}.docx"),
    )


@router.get("/{thesis_id}/export/pdf")
async def export_pdf(
    style: CitationStyleSchema = Query(CitationStyleSchema.APA),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> Response:
    content = normalize_content(access.thesis.content)
    data = render_pdf(access.thesis.title, content, await _bibliography(access, style, db))
    logger.info("Thesis %s exported as PDF by %s", access.thesis.id, access.user.id)
    return Response(
        content=data,
        media_type=PDF_MEDIA_TYPE,
        headers=_attachment(f"{slugify(access.thesis.title)}.pdf"),
    )


@router.get("/{thesis_id}/export/json")
async def export_json(
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    thesis = access.thesis
    citations = await thesis_citations(thesis.id, db)
    payload = {
        "id": thesis.id,
        "title": thesis.title,
        "language": thesis.language,
        "status": thesis.status.value,
        "content": normalize_content(thesis.content),
        "citations": [citation_response(c).model_dump() for c in citations],
        "updated_at": thesis.updated_at,
    }
    return JSONResponse(
        content=jsonable_encoder(payload),
        headers=_attachment(f"{slugify(thesis.title)}.json"),
    )


@generate_router.post("/generate-docx")
async def generate_docx(
    body: GenerateDocxRequest,
    user_id: str = Depends(get_current_user_id),
) -> Response:
    """Render an ad-hoc ``{chapters, frontMatter?, backMatter?, metadata?}`` payload."""
    data = render_generate_docx(body.model_dump())
    logger.info("Ad-hoc DOCX generated for %s (%d bytes)", user_id, len(data))
    return Response(
        content=data,
        media_type=DOCX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=thesis.docx"},
    )
