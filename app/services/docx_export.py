"""
DOCX export built with python-docx.

``render_docx`` lays out a full thesis (title page, contents, chapters,
bibliography); ``render_generate_docx`` handles the lighter
chapters/sections payload posted by the editor.
"""
from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.image.exceptions import UnrecognizedImageError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt

from app.config import settings
from app.services.export_common import (
    SPECIAL_FRONT_TYPES,
    collect,
    figure_caption,
    join_names,
    load_figure_image,
    running_head,
    table_caption,
    toc_entries,
)
from app.services.markdown import Run, parse_blocks
from app.services.thesis_structure import body_text

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MAX_FIGURE_WIDTH_IN = 6.0


# ---------------------------------------------------------------------------
# Low-level writers
# ---------------------------------------------------------------------------

def _new_document() -> Document:
    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = settings.EXPORT_FONT_NAME
    style.font.size = Pt(settings.EXPORT_FONT_SIZE)
    return doc


def _add_runs(paragraph, runs: Sequence[Run]) -> None:
    for part in runs:
        run = paragraph.add_run(part.text)
        run.bold = part.bold or None
        run.italic = part.italic or None


def add_markdown(doc: Document, text: str, heading_offset: int = 2) -> None:
    """Write markdown *text* as Word paragraphs, headings and list items."""
    for block in parse_blocks(text):
        if block.kind == "heading":
            paragraph = doc.add_heading("", level=min(block.level + heading_offset, 9))
        elif block.kind == "bullet":
            paragraph = doc.add_paragraph(style="List Bullet")
        elif block.kind == "ordered":
            paragraph = doc.add_paragraph(style="List Number")
        else:
            paragraph = doc.add_paragraph()
        _add_runs(paragraph, block.runs)


def _add_page_field(paragraph) -> None:
    run = paragraph.add_run()
    begin = OxmlElement("w:fldChar")
    begin.set(qn("w:fldCharType"), "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = "PAGE"
    end = OxmlElement("w:fldChar")
    end.set(qn("w:fldCharType"), "end")
    run._r.append(begin)
    run._r.append(instr)
    run._r.append(end)


def _setup_page(doc: Document, head: str) -> None:
    section = doc.sections[0]
    header = section.header.paragraphs[0]
    header.text = head.upper()
    header.alignment = WD_ALIGN_PARAGRAPH.RIGHT
    footer = section.footer.paragraphs[0]
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER
    _add_page_field(footer)


def _centered(doc: Document, text: str, bold: bool = False, italic: bool = False, size: Optional[int] = None):
    paragraph = doc.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = paragraph.add_run(text)
    run.bold = bold or None
    run.italic = italic or None
    if size:
        run.font.size = Pt(size)
    return paragraph


def _page_break(doc: Document) -> None:
    doc.add_paragraph().add_run().add_break(WD_BREAK.PAGE)


def _add_figure(doc: Document, figure: Dict[str, Any]) -> None:
    data = load_figure_image(figure)
    width_px = (figure.get("dimensions") or {}).get("width") or 600
    width = Inches(min(MAX_FIGURE_WIDTH_IN, width_px / 96))
    if data:
        try:
            doc.add_picture(io.BytesIO(data), width=width)
            doc.paragraphs[-1].alignment = WD_ALIGN_PARAGRAPH.CENTER
        except (UnrecognizedImageError, ValueError, ZeroDivisionError) as exc:
            logger.warning("Figure %s could not be embedded: %s", figure.get("id"), exc)
            _centered(doc, f"[Image: {figure.get('alt_text') or figure.get('url', '')[:80]}]")
    else:
        _centered(doc, f"[Image: {figure.get('url', '')[:200]}]")
    _centered(doc, figure_caption(figure), italic=True)


def _add_table(doc: Document, table: Dict[str, Any]) -> None:
    headers = table.get("headers") or []
    rows = table.get("rows") or []
    if not headers:
        return
    _centered(doc, table_caption(table), italic=True)
    word_table = doc.add_table(rows=1 + len(rows), cols=len(headers))
    word_table.style = "Table Grid"
    for col, text in enumerate(headers):
        cell = word_table.rows[0].cells[col]
        cell.text = str(text)
        for paragraph in cell.paragraphs:
            for run in paragraph.runs:
                run.bold = True
    for row_index, row in enumerate(rows, start=1):
        for col in range(len(headers)):
            value = row[col] if col < len(row) else ""
            word_table.rows[row_index].cells[col].text = str(value)
    doc.add_paragraph()


def _add_footnotes(doc: Document, footnotes: List[Dict[str, Any]]) -> None:
    for note in sorted(footnotes, key=lambda n: n.get("number") or 0):
        paragraph = doc.add_paragraph()
        run = paragraph.add_run(f"{note.get('number')}. {note.get('text') or note.get('content') or ''}")
        run.font.size = Pt(max(settings.EXPORT_FONT_SIZE - 2, 8))


def _add_section_body(doc: Document, section: Dict[str, Any]) -> None:
    add_markdown(doc, body_text(section.get("content")))
    for figure in section.get("figures", []):
        _add_figure(doc, figure)
    for table in section.get("tables", []):
        _add_table(doc, table)
    if section.get("footnotes"):
        _add_footnotes(doc, section["footnotes"])


def _to_bytes(doc: Document) -> bytes:
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Full thesis
# ---------------------------------------------------------------------------

def _title_page(doc: Document, title: str, metadata: Dict[str, Any]) -> None:
    for _ in range(4):
        doc.add_paragraph()
    _centered(doc, title.upper(), bold=True, size=settings.EXPORT_FONT_SIZE + 6)
    doc.add_paragraph()

    authors = join_names(metadata.get("authors") or [])
    if authors:
        _centered(doc, f"By {authors}", size=settings.EXPORT_FONT_SIZE + 2)
        doc.add_paragraph()
    for key in ("universityName", "departmentName"):
        if metadata.get(key):
            _centered(doc, metadata[key])
    if metadata.get("degree"):
        doc.add_paragraph()
        _centered(
            doc,
            "A thesis submitted in partial fulfillment of the requirements "
            f"for the degree of {metadata['degree']}",
            italic=True,
        )
    supervisors = join_names(metadata.get("supervisors") or [])
    if supervisors:
        _centered(doc, f"Supervised by {supervisors}")
    if metadata.get("thesisDate"):
        doc.add_paragraph()
        _centered(doc, str(metadata["thesisDate"]))
    _page_break(doc)


def _table_of_contents(doc: Document, content: Dict[str, Any], heading: str) -> None:
    doc.add_heading(heading, level=1)
    for level, text in toc_entries(content):
        paragraph = doc.add_paragraph(text)
        if level > 1:
            paragraph.paragraph_format.left_indent = Inches(0.4 * (level - 1))
    _page_break(doc)


def _generated_list(doc: Document, heading: str, captions: List[str]) -> None:
    doc.add_heading(heading, level=1)
    for caption in captions:
        doc.add_paragraph(caption)
    _page_break(doc)


def render_docx(
    title: str,
    content: Dict[str, Any],
    bibliography: Optional[List[str]] = None,
) -> bytes:
    """
    Render a normalised thesis content tree as a Word document.

    Args:
        title: Thesis title (title page and running head fallback)
        content: Normalised content tree
        bibliography: Formatted reference entries, already ordered

    Returns:
        DOCX bytes
    """
    metadata = content.get("metadata") or {}
    doc = _new_document()
    doc.core_properties.title = title
    doc.core_properties.author = join_names(metadata.get("authors") or [])
    _setup_page(doc, running_head(title, metadata))

    front = content["frontMatter"]
    _title_page(doc, title, metadata)

    toc = next((s for s in front if s.get("type") == "table-of-contents"), None)
    _table_of_contents(doc, content, toc["title"] if toc else "Table of Contents")

    for section in front:
        section_type = section.get("type")
        if section_type in ("title", "table-of-contents"):
            continue
        if section_type == "list-of-figures":
            _generated_list(doc, section["title"], [figure_caption(f) for f in collect(content, "figures")])
            continue
        if section_type == "list-of-tables":
            _generated_list(doc, section["title"], [table_caption(t) for t in collect(content, "tables")])
            continue
        if section_type not in SPECIAL_FRONT_TYPES and not section.get("content"):
            continue
        doc.add_heading(section["title"], level=1)
        _add_section_body(doc, section)
        _page_break(doc)

    intro = content.get("generalIntroduction") or {}
    if intro.get("content"):
        doc.add_heading(intro["title"], level=1)
        _add_section_body(doc, intro)
        _page_break(doc)

    for number, chapter in enumerate(content["chapters"], start=1):
        _centered(doc, f"CHAPTER {number}", bold=True)
        heading = doc.add_heading(chapter["title"].upper(), level=1)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
        add_markdown(doc, body_text(chapter.get("content")))
        for section in chapter["sections"]:
            doc.add_heading(section["title"], level=2)
            _add_section_body(doc, section)
        _page_break(doc)

    conclusion = content.get("generalConclusion") or {}
    if conclusion.get("content"):
        doc.add_heading(conclusion["title"], level=1)
        _add_section_body(doc, conclusion)
        _page_break(doc)

    references_written = False
    for section in content["backMatter"]:
        if section.get("type") == "references":
            doc.add_heading(section["title"], level=1)
            add_markdown(doc, body_text(section.get("content")))
            for entry in bibliography or []:
                paragraph = doc.add_paragraph(entry)
                paragraph.paragraph_format.left_indent = Inches(0.5)
                paragraph.paragraph_format.first_line_indent = Inches(-0.5)
            references_written = True
        else:
            doc.add_heading(section["title"], level=1)
            _add_section_body(doc, section)
        _page_break(doc)

    if bibliography and not references_written:
        doc.add_heading("References", level=1)
        for entry in bibliography:
            doc.add_paragraph(entry)

    data = _to_bytes(doc)
    logger.info("Rendered DOCX for %r: %d chapters, %d bytes", title, len(content["chapters"]), len(data))
    return data


# ---------------------------------------------------------------------------
# Stateless payload
# ---------------------------------------------------------------------------

def render_generate_docx(payload: Dict[str, Any]) -> bytes:
    """
    Render the editor's ``{chapters, frontMatter?, backMatter?, metadata?}``
    payload: an optional title block from metadata, then every section as a
    heading followed by its markdown body.
    """
    metadata = payload.get("metadata") or {}
    doc = _new_document()
    doc.core_properties.title = payload.get("title") or "Thesis Document"

    front = payload.get("frontMatter") or []
    title_section = next((s for s in front if s.get("type") == "title"), None)
    title = payload.get("title") or (title_section or {}).get("title")
    if title:
        doc.add_heading(title, level=0)
        for key in ("universityName", "departmentName"):
            if metadata.get(key):
                doc.add_paragraph(str(metadata[key]))
        if metadata.get("authorName"):
            doc.add_paragraph(f"By {metadata['authorName']}")
        if metadata.get("thesisDate"):
            doc.add_paragraph(str(metadata["thesisDate"]))

    for section in front:
        if section.get("type") == "title":
            continue
        doc.add_heading(section.get("title") or "", level=1)
        add_markdown(doc, body_text(section.get("content")))

    for chapter in payload.get("chapters") or []:
        doc.add_heading(chapter.get("title") or "", level=1)
        add_markdown(doc, body_text(chapter.get("content")))
        for section in chapter.get("sections") or []:
            doc.add_heading(section.get("title") or "", level=2)
            add_markdown(doc, body_text(section.get("content")))

    for section in payload.get("backMatter") or []:
        doc.add_heading(section.get("title") or "", level=1)
        add_markdown(doc, body_text(section.get("content")))

    data = _to_bytes(doc)
    logger.info("Rendered ad-hoc DOCX: %d chapters, %d bytes", len(payload.get("chapters") or []), len(data))
    return data
