"""
PDF export using PyMuPDF's Story HTML layout engine.

The thesis is rendered to one HTML document, flowed onto letter pages,
then re-opened to stamp the running head and page numbers.
"""
from __future__ import annotations

import base64
import html
import io
import logging
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF

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
from app.services.markdown import blocks_to_html, parse_blocks
from app.services.thesis_structure import body_text

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
MARGIN = 72  # 1 inch

_CSS = """
body {{ font-family: serif; font-size: {size}pt; line-height: 1.5; }}
h1 {{ font-size: {h1}pt; text-align: center; margin-top: 12pt; }}
h2 {{ font-size: {h2}pt; margin-top: 10pt; }}
h3, h4, h5 {{ font-size: {size}pt; font-weight: bold; }}
p {{ text-align: justify; margin-bottom: 6pt; }}
.center {{ text-align: center; }}
.title {{ font-size: {h1}pt; font-weight: bold; text-align: center; margin-top: 120pt; }}
.caption {{ font-style: italic; text-align: center; }}
.note {{ font-size: {small}pt; }}
.ref {{ margin-left: 24pt; text-indent: -24pt; }}
.toc2 {{ margin-left: 24pt; }}
table {{ border-collapse: collapse; margin: 6pt auto; }}
td, th {{ border: 1px solid black; padding: 3pt; }}
"""


def _esc(text: Any) -> str:
    return html.escape(str(text or ""))


def _page_break() -> str:
    return '<p style="page-break-before: always"></p>'


def _figure_html(figure: Dict[str, Any]) -> str:
    data = load_figure_image(figure)
    width = min((figure.get("dimensions") or {}).get("width") or 400, 430)
    if data:
        encoded = base64.b64encode(data).decode("ascii")
        image = f'<p class="center"><img src="data:image/png;base64,{encoded}" width="{width}"/></p>'
    else:
        image = f'<p class="center">[Image: {_esc(figure.get("url", "")[:200])}]</p>'
    return image + f'<p class="caption">{_esc(figure_caption(figure))}</p>'


def _table_html(table: Dict[str, Any]) -> str:
    headers = table.get("headers") or []
    if not headers:
        return ""
    head = "".join(f"<th>{_esc(h)}</th>" for h in headers)
    body = "".join(
        "<tr>" + "".join(f"<td>{_esc(cell)}</td>" for cell in row) + "</tr>"
        for row in table.get("rows") or []
    )
    return f'<p class="caption">{_esc(table_caption(table))}</p><table><tr>{head}</tr>{body}</table>'


def _section_html(section: Dict[str, Any], heading_level: int) -> str:
    parts = [f"<h{heading_level}>{_esc(section.get('title'))}</h{heading_level}>"]
    parts.append(blocks_to_html(parse_blocks(body_text(section.get("content"))), heading_offset=heading_level))
    parts.extend(_figure_html(f) for f in section.get("figures", []))
    parts.extend(_table_html(t) for t in section.get("tables", []))
    for note in section.get("footnotes", []):
        parts.append(f'<p class="note">{_esc(note.get("number"))}. {_esc(note.get("text") or note.get("content"))}</p>')
    return "\n".join(parts)


def thesis_html(title: str, content: Dict[str, Any], bibliography: Optional[List[str]] = None) -> str:
    """Whole-thesis HTML in the same order as the DOCX export."""
    metadata = content.get("metadata") or {}
    out: List[str] = [f'<p class="title">{_esc(title.upper())}</p>']

    authors = join_names(metadata.get("authors") or [])
    if authors:
        out.append(f'<p class="center">By {_esc(authors)}</p>')
    for key in ("universityName", "departmentName"):
        if metadata.get(key):
            out.append(f'<p class="center">{_esc(metadata[key])}</p>')
    if metadata.get("degree"):
        out.append(
            '<p class="center"><i>A thesis submitted in partial fulfillment of the requirements '
            f"for the degree of {_esc(metadata['degree'])}</i></p>"
        )
    if metadata.get("thesisDate"):
        out.append(f'<p class="center">{_esc(metadata["thesisDate"])}</p>')
    out.append(_page_break())

    front = content["frontMatter"]
    toc = next((s for s in front if s.get("type") == "table-of-contents"), None)
    out.append(f"<h1>{_esc(toc['title'] if toc else 'Table of Contents')}</h1>")
    for level, text in toc_entries(content):
        css = ' class="toc2"' if level > 1 else ""
        out.append(f"<p{css}>{_esc(text)}</p>")
    out.append(_page_break())

    for section in front:
        section_type = section.get("type")
        if section_type in ("title", "table-of-contents"):
            continue
        if section_type == "list-of-figures":
            out.append(f"<h1>{_esc(section['title'])}</h1>")
            out.extend(f"<p>{_esc(figure_caption(f))}</p>" for f in collect(content, "figures"))
        elif section_type == "list-of-tables":
            out.append(f"<h1>{_esc(section['title'])}</h1>")
            out.extend(f"<p>{_esc(table_caption(t))}</p>" for t in collect(content, "tables"))
        elif section_type in SPECIAL_FRONT_TYPES or section.get("content"):
            out.append(_section_html(section, 1))
        else:
            continue
        out.append(_page_break())

    intro = content.get("generalIntroduction") or {}
    if intro.get("content"):
        out.append(_section_html(intro, 1))
        out.append(_page_break())

    for number, chapter in enumerate(content["chapters"], start=1):
        out.append(f'<p class="center"><b>CHAPTER {number}</b></p>')
        out.append(f"<h1>{_esc(chapter['title'].upper())}</h1>")
        out.append(blocks_to_html(parse_blocks(body_text(chapter.get("content")))))
        out.extend(_section_html(section, 2) for section in chapter["sections"])
        out.append(_page_break())

    conclusion = content.get("generalConclusion") or {}
    if conclusion.get("content"):
        out.append(_section_html(conclusion, 1))
        out.append(_page_break())

    for section in content["backMatter"]:
        out.append(_section_html(section, 1))
        if section.get("type") == "references":
            out.extend(f'<p class="ref">{_esc(entry)}</p>' for entry in bibliography or [])
        out.append(_page_break())

    return f"<html><body>{''.join(out)}</body></html>"


def _stamp_pages(pdf_bytes: bytes, head: str) -> bytes:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        for index, page in enumerate(doc):
            rect = page.rect
            if index > 0 and head:
                page.insert_text((MARGIN, MARGIN / 2), head.upper()[:90], fontsize=9, fontname="times-roman")
            page.insert_text((rect.width / 2 - 6, rect.height - MARGIN / 2), str(index + 1), fontsize=10,
                             fontname="times-roman")
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def render_pdf(title: str, content: Dict[str, Any], bibliography: Optional[List[str]] = None) -> bytes:
    """
    Render a normalised thesis content tree to PDF bytes (US letter, 1in margins).
    """
    size = settings.EXPORT_FONT_SIZE
    css = _CSS.format(size=size, h1=size + 6, h2=size + 3, small=max(size - 2, 8))
    story = fitz.Story(html=thesis_html(title, content, bibliography), user_css=css)

    buffer = io.BytesIO()
    writer = fitz.DocumentWriter(buffer)
    mediabox = fitz.paper_rect("letter")
    where = mediabox + (MARGIN, MARGIN, -MARGIN, -MARGIN)

    more = 1
    pages = 0
    while more:
        device = writer.begin_page(mediabox)
        more, _ = story.place(where)
        story.draw(device)
        writer.end_page()
        pages += 1
    writer.close()

    data = _stamp_pages(buffer.getvalue(), running_head(title, content.get("metadata") or {}))
    logger.info("Rendered PDF for %r: %d pages, %d bytes", title, pages, len(data))
    return data
