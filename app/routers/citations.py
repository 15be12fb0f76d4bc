"""
Citation endpoints.

Thesis-scoped (prefix /api/theses):
    GET    /{id}/citations                      search / filter / sort
    POST   /{id}/citations                      add
    POST   /{id}/citations/parse                parse a pasted reference (optionally save)
    PATCH  /{id}/citations/{cid}                edit
    DELETE /{id}/citations/{cid}                remove
    GET    /{id}/citations/{cid}/formatted      one entry in a style
    GET    /{id}/bibliography                   every entry, ordered, in a style

Global (prefix /api/citations):
    GET    /search?query=                       Crossref lookup
"""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import ThesisAccess, get_current_user_id, require_edit, require_view
from app.models.database_models import Citation, CitationType
from app.models.schemas import (
    BibliographyResponse,
    CitationCreateRequest,
    CitationDraft,
    CitationResponse,
    CitationStyleSchema,
    CitationTypeSchema,
    CitationUpdateRequest,
    FormattedCitation,
    ParsedReferenceResponse,
    ReferenceParseRequest,
)
from app.services.citations import (
    ReferenceParseError,
    bibliography_key,
    filter_and_sort,
    format_citation,
    parse_reference,
    parsed_to_citation_fields,
)
from app.services.crossref import CrossrefClient, CrossrefError, get_crossref_client

logger = logging.getLogger(__name__)

router = APIRouter()
search_router = APIRouter()


def citation_response(citation: Citation) -> CitationResponse:
    return CitationResponse(
        id=citation.id,
        thesis_id=citation.thesis_id,
        section_id=citation.section_id,
        text=citation.text,
        source=citation.source,
        authors=list(citation.authors or []),
        year=citation.year or "",
        type=citation.type.value,
        doi=citation.doi,
        url=citation.url,
        journal=citation.journal,
        volume=citation.volume,
        issue=citation.issue,
        pages=citation.pages,
        publisher=citation.publisher,
        created_at=citation.created_at,
        updated_at=citation.updated_at,
    )


async def thesis_citations(thesis_id: str, db: AsyncSession) -> List[Citation]:
    result = await db.execute(
        select(Citation).where(Citation.thesis_id == thesis_id).order_by(Citation.created_at)
    )
    return list(result.scalars().all())


async def _get_citation(thesis_id: str, citation_id: str, db: AsyncSession) -> Citation:
    result = await db.execute(
        select(Citation).where(Citation.id == citation_id, Citation.thesis_id == thesis_id)
    )
    citation = result.scalar_one_or_none()
    if citation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Citation {citation_id} not found.",
        )
    return citation


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

@router.get("/{thesis_id}/citations", response_model=List[CitationResponse])
async def list_citations(
    search: Optional[str] = Query(None),
    type: Optional[CitationTypeSchema] = Query(None),
    sort: str = Query("year", pattern="^(year|author|text)$"),
    direction: str = Query("desc", pattern="^(asc|desc)$"),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> List[CitationResponse]:
    """
    Citations of a thesis.

    ``search`` matches the title or any author (case-insensitive); default
    order is newest year first.
    """
    citations = await thesis_citations(access.thesis.id, db)
    ordered = filter_and_sort(citations, search, type.value if type else None, sort, direction)
    return [citation_response(c) for c in ordered]


@router.post("/{thesis_id}/citations", response_model=CitationResponse, status_code=status.HTTP_201_CREATED)
async def create_citation(
    body: CitationCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> CitationResponse:
    data = body.model_dump()
    data["type"] = CitationType(body.type.value)
    citation = Citation(thesis_id=access.thesis.id, **data)
    db.add(citation)
    await db.commit()
    await db.refresh(citation)
    logger.info("Thesis %s: citation %s added by %s", access.thesis.id, citation.id, access.user.id)
    return citation_response(citation)


@router.post("/{thesis_id}/citations/parse", response_model=ParsedReferenceResponse)
async def parse_citation(
    body: ReferenceParseRequest,
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> ParsedReferenceResponse:
    """
    Parse a pasted APA-style reference.

    With ``save=true`` the result is stored as a citation (editor rights needed).
    """
    try:
        parsed = parse_reference(body.text)
    except ReferenceParseError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    saved = None
    if body.save:
        if not access.can_edit:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{access.role.value}' may not add citations.",
            )
        fields = parsed_to_citation_fields(parsed, body.type.value)
        fields["type"] = CitationType(fields["type"])
        if not fields["text"]:
            fields["text"] = body.text.strip()[:500]
        citation = Citation(thesis_id=access.thesis.id, **fields)
        db.add(citation)
        await db.commit()
        await db.refresh(citation)
        saved = citation_response(citation)
        logger.info("Thesis %s: parsed citation %s saved", access.thesis.id, citation.id)

    return ParsedReferenceResponse(
        title=parsed["title"],
        authors=parsed["authors"],
        author_last_names=parsed["author_last_names"],
        author_first_initials=parsed["author_first_initials"],
        author_middle_initials=parsed["author_middle_initials"],
        year=parsed["year"],
        journal=parsed["journal"],
        volume=parsed["volume"],
        issue=parsed["issue"],
        pages=parsed["pages"],
        doi=parsed["doi"],
        url=parsed["url"],
        citation=saved,
    )


@router.patch("/{thesis_id}/citations/{citation_id}", response_model=CitationResponse)
async def update_citation(
    citation_id: str,
    body: CitationUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> CitationResponse:
    citation = await _get_citation(access.thesis.id, citation_id, db)
    for key, value in body.model_dump(exclude_unset=True).items():
        if key == "type":
            value = CitationType(value)
        setattr(citation, key, value)
    await db.commit()
    await db.refresh(citation)
    logger.info("Thesis %s: citation %s updated", access.thesis.id, citation_id)
    return citation_response(citation)


@router.delete("/{thesis_id}/citations/{citation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_citation(
    citation_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    citation = await _get_citation(access.thesis.id, citation_id, db)
    await db.delete(citation)
    await db.commit()
    logger.info("Thesis %s: citation %s deleted", access.thesis.id, citation_id)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@router.get("/{thesis_id}/citations/{citation_id}/formatted", response_model=FormattedCitation)
async def formatted_citation(
    citation_id: str,
    style: CitationStyleSchema = Query(CitationStyleSchema.APA),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> FormattedCitation:
    citation = await _get_citation(access.thesis.id, citation_id, db)
    return FormattedCitation(id=citation.id, style=style, formatted=format_citation(citation, style.value))


@router.get("/{thesis_id}/bibliography", response_model=BibliographyResponse)
async def bibliography(
    style: CitationStyleSchema = Query(CitationStyleSchema.APA),
    access: ThesisAccess = Depends(require_view),
    db: AsyncSession = Depends(get_db),
) -> BibliographyResponse:
    """All citations formatted in *style*, ordered by first author's last name, then year."""
    citations = sorted(await thesis_citations(access.thesis.id, db), key=bibliography_key)
    return BibliographyResponse(
        style=style,
        entries=[
            FormattedCitation(id=c.id, style=style, formatted=format_citation(c, style.value))
            for c in citations
        ],
    )


# ---------------------------------------------------------------------------
# Crossref
# ---------------------------------------------------------------------------

@search_router.get("/search", response_model=List[CitationDraft])
async def search_crossref(
    query: str = Query(..., min_length=2),
    rows: int = Query(5, ge=1, le=20),
    user_id: str = Depends(get_current_user_id),
    client: CrossrefClient = Depends(get_crossref_client),
) -> List[CitationDraft]:
    """Look a work up on Crossref; hits come back as unsaved citation drafts."""
    try:
        drafts = await client.search(query, rows=rows)
    except CrossrefError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    logger.info("Crossref search by %s: %r → %d drafts", user_id, query, len(drafts))
    return [CitationDraft(**d) for d in drafts]
