"""
Structural editing endpoints (all under /api/theses/{thesis_id}).

Chapters
    POST   /chapters                 PATCH/DELETE /chapters/{chapter_id}
    PUT    /chapters/order
Sections
    POST   /sections                 GET/PATCH/DELETE /sections/{section_id}
    PUT    /sections/order
Figures / tables / footnotes of a section
    POST   /sections/{sid}/figures           (JSON: URL or data URL)
    POST   /sections/{sid}/figures/upload    (multipart image)
    DELETE /sections/{sid}/figures/{fid}
    POST   /sections/{sid}/tables            DELETE /sections/{sid}/tables/{tid}
    POST   /sections/{sid}/footnotes         DELETE /sections/{sid}/footnotes/{nid}
Metadata
    PATCH  /metadata
"""
from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict

import aiofiles
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from PIL import Image, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import ThesisAccess, require_edit, require_view
from app.models.schemas import (
    ChapterCreateRequest,
    ChapterUpdateRequest,
    FigureCreateRequest,
    FootnoteCreateRequest,
    MetadataUpdateRequest,
    OrderRequest,
    SectionCreateRequest,
    SectionResponse,
    SectionUpdateRequest,
    TableCreateRequest,
)
from app.services import content_editor as editor
from app.services.content_editor import ContentError, ElementNotFound
from app.services.thesis_structure import normalize_content
from app.utils.helpers import parse_keywords, safe_remove

logger = logging.getLogger(__name__)

router = APIRouter()


def _content(access: ThesisAccess) -> Dict[str, Any]:
    return normalize_content(access.thesis.content)


def _edit_error(exc: ContentError) -> HTTPException:
    if isinstance(exc, ElementNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


async def _store(access: ThesisAccess, content: Dict[str, Any], db: AsyncSession, action: str) -> None:
    access.thesis.content = content
    await db.commit()
    logger.info("Thesis %s: %s by %s", access.thesis.id, action, access.user.id)


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------

@router.post("/{thesis_id}/chapters", status_code=status.HTTP_201_CREATED)
async def create_chapter(
    body: ChapterCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    content, chapter = editor.add_chapter(_content(access), body.title.strip(), body.content)
    await _store(access, content, db, f"added chapter {chapter['id']}")
    return chapter


@router.patch("/{thesis_id}/chapters/{chapter_id}")
async def update_chapter(
    chapter_id: str,
    body: ChapterUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    try:
        content, chapter = editor.update_chapter(_content(access), chapter_id, **body.model_dump(exclude_unset=True))
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"updated chapter {chapter_id}")
    return chapter


@router.delete("/{thesis_id}/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chapter(
    chapter_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        content = editor.delete_chapter(_content(access), chapter_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"deleted chapter {chapter_id}")


@router.put("/{thesis_id}/chapters/order")
async def reorder_chapters(
    body: OrderRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Reorder chapters; ``ids`` must list every chapter exactly once."""
    try:
        content = editor.reorder_chapters(_content(access), body.ids)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, "reordered chapters")
    return {"chapters": [{"id": c["id"], "title": c["title"], "order": c["order"]} for c in content["chapters"]]}


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

@router.post("/{thesis_id}/sections", response_model=SectionResponse, status_code=status.HTTP_201_CREATED)
async def create_section(
    body: SectionCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    """Add a section to ``frontMatter``, ``backMatter`` or the chapter whose id is ``location``."""
    try:
        content, section = editor.add_section(
            _content(access), body.location, body.title.strip(), body.type, body.content, body.required
        )
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"added section {section['id']} to {body.location}")
    return SectionResponse(location=body.location, section=section)


@router.put("/{thesis_id}/sections/order")
async def reorder_sections(
    body: OrderRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    if not body.location:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="location is required.")
    try:
        content = editor.reorder_sections(_content(access), body.location, body.ids)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"reordered sections of {body.location}")
    return {"location": body.location, "ids": body.ids}


@router.get("/{thesis_id}/sections/{section_id}", response_model=SectionResponse)
async def get_section(
    section_id: str,
    access: ThesisAccess = Depends(require_view),
) -> SectionResponse:
    try:
        location, section = editor.find_section(_content(access), section_id)
    except ContentError as exc:
        raise _edit_error(exc)
    return SectionResponse(location=location, section=section)


@router.patch("/{thesis_id}/sections/{section_id}", response_model=SectionResponse)
async def update_section(
    section_id: str,
    body: SectionUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> SectionResponse:
    try:
        content, section = editor.update_section(_content(access), section_id, **body.model_dump(exclude_unset=True))
        location, _ = editor.find_section(content, section_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"updated section {section_id}")
    return SectionResponse(location=location, section=section)


@router.delete("/{thesis_id}/sections/{section_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_section(
    section_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Required sections and the general introduction/conclusion cannot be deleted (400)."""
    try:
        content, removed = editor.delete_section(_content(access), section_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"deleted section {section_id}")
    for figure in removed.get("figures", []):
        if figure.get("stored_file"):
            safe_remove(os.path.join(settings.UPLOAD_DIR, figure["stored_file"]))


# ---------------------------------------------------------------------------
# Figures
# ---------------------------------------------------------------------------

@router.post("/{thesis_id}/sections/{section_id}/figures", status_code=status.HTTP_201_CREATED)
async def create_figure(
    section_id: str,
    body: FigureCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    try:
        content, figure = editor.add_figure(
            _content(access), section_id, body.url, body.caption, body.title,
            body.alt_text, body.width, body.height, body.position,
        )
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"added figure {figure['id']} to section {section_id}")
    return figure


@router.post("/{thesis_id}/sections/{section_id}/figures/upload", status_code=status.HTTP_201_CREATED)
async def upload_figure(
    section_id: str,
    file: UploadFile = File(...),
    caption: str = Form(""),
    title: str = Form(""),
    alt_text: str = Form(""),
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Upload an image and attach it to a section as a figure.

    - Max file size: MAX_FIGURE_SIZE (default 10 MB)
    - Stored under UPLOAD_DIR with a UUID filename and served from /uploads
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Upload must include a filename.",
        )
    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in settings.SUPPORTED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported image type '{file_ext}'. "
                f"Accepted: {', '.join(settings.SUPPORTED_IMAGE_TYPES)}"
            ),
        )

    try:
        content = _content(access)
        editor.find_section(content, section_id)
    except ContentError as exc:
        raise _edit_error(exc)

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(settings.UPLOAD_DIR, stored_name)
    file_size = 0

    async with aiofiles.open(file_path, "wb") as out:
        while True:
            chunk = await file.read(1024 * 1024)
            if not chunk:
                break
            file_size += len(chunk)
            if file_size > settings.MAX_FIGURE_SIZE:
                await out.close()
                safe_remove(file_path)
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"Image exceeds the {settings.MAX_FIGURE_SIZE // (1024 * 1024)} MB size limit.",
                )
            await out.write(chunk)

    try:
        with Image.open(file_path) as image:
            width, height = image.size
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        safe_remove(file_path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File is not a valid image: {exc}",
        )

    content, figure = editor.add_figure(
        content, section_id, f"/uploads/{stored_name}", caption, title, alt_text,
        width, height, stored_file=stored_name,
    )
    await _store(access, content, db, f"uploaded figure {stored_name} ({file_size:,} bytes)")
    return figure


@router.delete("/{thesis_id}/sections/{section_id}/figures/{figure_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_figure(
    section_id: str,
    figure_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        content, figure = editor.remove_figure(_content(access), section_id, figure_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"removed figure {figure_id}")
    if figure.get("stored_file"):
        safe_remove(os.path.join(settings.UPLOAD_DIR, figure["stored_file"]))


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

@router.post("/{thesis_id}/sections/{section_id}/tables", status_code=status.HTTP_201_CREATED)
async def create_table(
    section_id: str,
    body: TableCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    try:
        content, table = editor.add_table(
            _content(access), section_id, body.headers, body.rows, body.title, body.caption
        )
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"added table {table['id']} to section {section_id}")
    return table


@router.delete("/{thesis_id}/sections/{section_id}/tables/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_table(
    section_id: str,
    table_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        content = editor.remove_table(_content(access), section_id, table_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"removed table {table_id}")


# ---------------------------------------------------------------------------
# Footnotes
# ---------------------------------------------------------------------------

@router.post("/{thesis_id}/sections/{section_id}/footnotes", status_code=status.HTTP_201_CREATED)
async def create_footnote(
    section_id: str,
    body: FootnoteCreateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    try:
        content, footnote = editor.add_footnote(_content(access), section_id, body.content)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"added footnote {footnote['number']} to section {section_id}")
    return footnote


@router.delete("/{thesis_id}/sections/{section_id}/footnotes/{footnote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_footnote(
    section_id: str,
    footnote_id: str,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        content = editor.remove_footnote(_content(access), section_id, footnote_id)
    except ContentError as exc:
        raise _edit_error(exc)
    await _store(access, content, db, f"removed footnote {footnote_id}")


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

@router.patch("/{thesis_id}/metadata")
async def update_metadata(
    body: MetadataUpdateRequest,
    access: ThesisAccess = Depends(require_edit),
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Overwrite the given metadata keys; keys left out of the body are unchanged."""
    fields = body.model_dump(exclude_unset=True)
    if "keywords" in fields:
        fields["keywords"] = parse_keywords(fields["keywords"])
    content = editor.update_metadata(_content(access), **fields)
    if "description" in fields:
        access.thesis.description = fields["description"] or ""
    await _store(access, content, db, f"updated metadata {sorted(fields)}")
    return content["metadata"]
