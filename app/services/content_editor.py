"""
Structural edits on a thesis content tree.

Every public function takes a *normalised* tree (see
``thesis_structure.normalize_content``) and returns a new tree; the input
is never mutated, so callers can always assign the result back to the
JSON column and let SQLAlchemy see the change.
"""
from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from app.services.thesis_structure import SECTION_TYPES, iter_sections, new_chapter, new_section

logger = logging.getLogger(__name__)

SINGLE_SECTION_LOCATIONS = ("generalIntroduction", "generalConclusion")
LIST_SECTION_LOCATIONS = ("frontMatter", "backMatter")

_SECTION_FIELDS = ("title", "content", "type", "required")
_CHAPTER_FIELDS = ("title", "content")


class ContentError(ValueError):
    """Raised when an edit refers to a missing element or breaks the outline."""


class ElementNotFound(ContentError):
    """Raised when a chapter, section, figure, table or footnote id is unknown."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _copy(content: Dict[str, Any]) -> Dict[str, Any]:
    return copy.deepcopy(content)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def _find_chapter(content: Dict[str, Any], chapter_id: str) -> Dict[str, Any]:
    for chapter in content["chapters"]:
        if chapter["id"] == chapter_id:
            return chapter
    raise ElementNotFound(f"Chapter {chapter_id} not found")


def _section_list(content: Dict[str, Any], location: str) -> List[Dict[str, Any]]:
    if location in LIST_SECTION_LOCATIONS:
        return content[location]
    if location in SINGLE_SECTION_LOCATIONS:
        raise ContentError(f"{location} holds a single section; sections cannot be added to it")
    return _find_chapter(content, location)["sections"]


def find_section(content: Dict[str, Any], section_id: str) -> Tuple[str, Dict[str, Any]]:
    """
    Locate a section anywhere in the tree.

    Returns:
        ``(location, section)`` where *location* is ``frontMatter``,
        ``backMatter``, ``generalIntroduction``, ``generalConclusion`` or
        the id of the chapter holding the section.

    Raises:
        ContentError: no section has this id.
    """
    for location in SINGLE_SECTION_LOCATIONS:
        section = content.get(location)
        if section and section.get("id") == section_id:
            return location, section
    for location in LIST_SECTION_LOCATIONS:
        for section in content[location]:
            if section["id"] == section_id:
                return location, section
    for chapter in content["chapters"]:
        for section in chapter["sections"]:
            if section["id"] == section_id:
                return chapter["id"], section
    raise ElementNotFound(f"Section {section_id} not found")


def _renumber(items: List[Dict[str, Any]]) -> None:
    for position, item in enumerate(items, start=1):
        item["order"] = position


def _reorder(items: List[Dict[str, Any]], ids: List[str], what: str) -> List[Dict[str, Any]]:
    by_id = {item["id"]: item for item in items}
    if len(ids) != len(items) or set(ids) != set(by_id):
        raise ContentError(f"Order must list every {what} exactly once")
    reordered = [by_id[i] for i in ids]
    _renumber(reordered)
    return reordered


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------

def add_chapter(content: Dict[str, Any], title: str, body: str = "") -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Append a chapter. Returns ``(new_content, chapter)``."""
    content = _copy(content)
    chapter = new_chapter(title, body, order=len(content["chapters"]) + 1)
    content["chapters"].append(chapter)
    return content, chapter


def update_chapter(content: Dict[str, Any], chapter_id: str, **fields: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    content = _copy(content)
    chapter = _find_chapter(content, chapter_id)
    for key, value in fields.items():
        if key in _CHAPTER_FIELDS and value is not None:
            chapter[key] = value
    chapter["updated_at"] = _now_iso()
    return content, chapter


def delete_chapter(content: Dict[str, Any], chapter_id: str) -> Dict[str, Any]:
    content = _copy(content)
    _find_chapter(content, chapter_id)
    content["chapters"] = [c for c in content["chapters"] if c["id"] != chapter_id]
    _renumber(content["chapters"])
    return number_figures_and_tables(content)


def reorder_chapters(content: Dict[str, Any], ids: List[str]) -> Dict[str, Any]:
    content = _copy(content)
    content["chapters"] = _reorder(content["chapters"], ids, "chapter")
    return number_figures_and_tables(content)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _check_type(section_type: str) -> None:
    if section_type not in SECTION_TYPES:
        raise ContentError(f"Unknown section type {section_type!r}")


def add_section(
    content: Dict[str, Any],
    location: str,
    title: str = "New Section",
    section_type: str = "custom",
    body: str = "",
    required: bool = False,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Append a section to the front matter, back matter or a chapter."""
    _check_type(section_type)
    content = _copy(content)
    sections = _section_list(content, location)
    section = new_section(title, section_type, body, order=len(sections) + 1, required=required)
    sections.append(section)
    return content, section


def update_section(content: Dict[str, Any], section_id: str, **fields: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    if fields.get("type") is not None:
        _check_type(fields["type"])
    content = _copy(content)
    _, section = find_section(content, section_id)
    for key, value in fields.items():
        if key in _SECTION_FIELDS and value is not None:
            section[key] = value
    section["updated_at"] = _now_iso()
    return content, section


def delete_section(content: Dict[str, Any], section_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Remove a section. Returns ``(new_content, removed_section)``.

    Raises:
        ContentError: the section is required or is one of the general sections.
    """
    content = _copy(content)
    location, section = find_section(content, section_id)
    if location in SINGLE_SECTION_LOCATIONS:
        raise ContentError(f"The {location} section cannot be deleted")
    if section.get("required"):
        raise ContentError(f"Section {section.get('title')!r} is required and cannot be deleted")
    sections = _section_list(content, location)
    sections[:] = [s for s in sections if s["id"] != section_id]
    _renumber(sections)
    return number_figures_and_tables(content), section


def reorder_sections(content: Dict[str, Any], location: str, ids: List[str]) -> Dict[str, Any]:
    content = _copy(content)
    sections = _section_list(content, location)
    sections[:] = _reorder(sections, ids, "section")
    return number_figures_and_tables(content)


# ---------------------------------------------------------------------------
# Figures / tables / footnotes
# ---------------------------------------------------------------------------

def number_figures_and_tables(content: Dict[str, Any]) -> Dict[str, Any]:
    """
    Number figures and tables document-wide in reading order.

    Mutates and returns *content*; callers pass a tree they already own.
    """
    figure_no = 0
    table_no = 0
    for _, section in iter_sections(content):
        for figure in section.get("figures", []):
            figure_no += 1
            figure["number"] = figure_no
            figure["label"] = f"Figure {figure_no}"
        for table in section.get("tables", []):
            table_no += 1
            table["number"] = table_no
            table["label"] = f"Table {table_no}"
    return content


def add_figure(
    content: Dict[str, Any],
    section_id: str,
    url: str,
    caption: str = "",
    title: str = "",
    alt_text: str = "",
    width: int = 600,
    height: int = 400,
    position: str = "inline",
    stored_file: Optional[str] = None,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    content = _copy(content)
    _, section = find_section(content, section_id)
    now = _now_iso()
    figure = {
        "id": str(uuid.uuid4()),
        "url": url,
        "caption": caption,
        "alt_text": alt_text,
        "title": title,
        "label": "",
        "dimensions": {"width": width, "height": height},
        "position": position,
        "created_at": now,
        "updated_at": now,
    }
    if stored_file:
        figure["stored_file"] = stored_file
    section["figures"].append(figure)
    number_figures_and_tables(content)
    return content, figure


def remove_figure(content: Dict[str, Any], section_id: str, figure_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Returns ``(new_content, removed_figure)``."""
    content = _copy(content)
    _, section = find_section(content, section_id)
    for figure in section["figures"]:
        if figure["id"] == figure_id:
            section["figures"] = [f for f in section["figures"] if f["id"] != figure_id]
            return number_figures_and_tables(content), figure
    raise ElementNotFound(f"Figure {figure_id} not found")


def add_table(
    content: Dict[str, Any],
    section_id: str,
    headers: List[str],
    rows: List[List[str]],
    title: str = "",
    caption: str = "",
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Attach a table; every row is padded or truncated to the header width."""
    if not headers:
        raise ContentError("A table needs at least one column")
    width = len(headers)
    content = _copy(content)
    _, section = find_section(content, section_id)
    now = _now_iso()
    table = {
        "id": str(uuid.uuid4()),
        "title": title,
        "caption": caption,
        "headers": list(headers),
        "rows": [(list(row) + [""] * width)[:width] for row in rows],
        "label": "",
        "created_at": now,
        "updated_at": now,
    }
    section["tables"].append(table)
    number_figures_and_tables(content)
    return content, table


def remove_table(content: Dict[str, Any], section_id: str, table_id: str) -> Dict[str, Any]:
    content = _copy(content)
    _, section = find_section(content, section_id)
    if not any(t["id"] == table_id for t in section["tables"]):
        raise ElementNotFound(f"Table {table_id} not found")
    section["tables"] = [t for t in section["tables"] if t["id"] != table_id]
    return number_figures_and_tables(content)


def add_footnote(content: Dict[str, Any], section_id: str, text: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    content = _copy(content)
    _, section = find_section(content, section_id)
    now = _now_iso()
    footnote = {
        "id": str(uuid.uuid4()),
        "section_id": section_id,
        "text": text,
        "content": text,
        "number": len(section["footnotes"]) + 1,
        "created_at": now,
        "updated_at": now,
    }
    section["footnotes"].append(footnote)
    return content, footnote


def remove_footnote(content: Dict[str, Any], section_id: str, footnote_id: str) -> Dict[str, Any]:
    """Remove a footnote and renumber the remaining ones 1..n."""
    content = _copy(content)
    _, section = find_section(content, section_id)
    remaining = [n for n in section["footnotes"] if n["id"] != footnote_id]
    if len(remaining) == len(section["footnotes"]):
        raise ElementNotFound(f"Footnote {footnote_id} not found")
    for number, footnote in enumerate(remaining, start=1):
        footnote["number"] = number
    section["footnotes"] = remaining
    return content


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

def update_metadata(content: Dict[str, Any], **fields: Any) -> Dict[str, Any]:
    """Overwrite the given metadata keys; ``None`` values are ignored."""
    content = _copy(content)
    for key, value in fields.items():
        if value is not None:
            content["metadata"][key] = value
    return content
