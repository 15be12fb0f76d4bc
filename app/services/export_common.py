"""
Helpers shared by the DOCX and PDF exporters: people formatting, the
table-of-contents outline and figure image loading.
"""
from __future__ import annotations

import base64
import binascii
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from app.config import settings
from app.services.thesis_structure import iter_sections

logger = logging.getLogger(__name__)

# Front-matter sections rendered by dedicated code rather than as plain text
SPECIAL_FRONT_TYPES = ("title", "abstract", "table-of-contents", "list-of-figures", "list-of-tables")


def person_name(person: Any) -> str:
    if isinstance(person, str):
        return person.strip()
    first = (person.get("firstName") or "").strip()
    last = (person.get("lastName") or "").strip()
    return f"{first} {last}".strip()


def join_names(people: List[Any]) -> str:
    """'A', 'A and B', 'A, B and C'."""
    names = [n for n in (person_name(p) for p in people or []) if n]
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def running_head(title: str, metadata: Dict[str, Any]) -> str:
    return (metadata.get("shortTitle") or title or "").strip()


def toc_entries(content: Dict[str, Any]) -> List[Tuple[int, str]]:
    """
    ``(level, text)`` lines for the table of contents in reading order.

    Level 1 for top-level entries, level 2 for chapter sections.
    """
    entries: List[Tuple[int, str]] = []
    for section in content["frontMatter"]:
        if section.get("type") in ("title", "table-of-contents"):
            continue
        entries.append((1, section["title"]))
    intro = content.get("generalIntroduction") or {}
    if intro.get("content"):
        entries.append((1, intro["title"]))
    for number, chapter in enumerate(content["chapters"], start=1):
        entries.append((1, f"Chapter {number}: {chapter['title']}"))
        for section in chapter["sections"]:
            entries.append((2, section["title"]))
    conclusion = content.get("generalConclusion") or {}
    if conclusion.get("content"):
        entries.append((1, conclusion["title"]))
    for section in content["backMatter"]:
        entries.append((1, section["title"]))
    return entries


def collect(content: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """All figures (or tables) in reading order, for the generated lists."""
    return [item for _, section in iter_sections(content) for item in section.get(key, [])]


def figure_caption(figure: Dict[str, Any]) -> str:
    label = figure.get("label") or "Figure"
    caption = figure.get("caption") or figure.get("title") or ""
    return f"{label}: {caption}" if caption else label


def table_caption(table: Dict[str, Any]) -> str:
    label = table.get("label") or "Table"
    caption = table.get("caption") or table.get("title") or ""
    return f"{label}: {caption}" if caption else label


def load_figure_image(figure: Dict[str, Any]) -> Optional[bytes]:
    """
    Image bytes for a figure: the uploaded file under ``UPLOAD_DIR`` or an
    inline ``data:`` URL.  Remote URLs are not fetched; ``None`` is returned.
    """
    stored = figure.get("stored_file")
    if stored:
        path = os.path.join(settings.UPLOAD_DIR, os.path.basename(stored))
        try:
            with open(path, "rb") as fh:
                return fh.read()
        except OSError as exc:
            logger.warning("Figure %s: stored file unreadable: %s", figure.get("id"), exc)
            return None

    url = figure.get("url") or ""
    if url.startswith("data:") and ";base64," in url:
        try:
            return base64.b64decode(url.split(";base64,", 1)[1], validate=False)
        except (binascii.Error, ValueError) as exc:
            logger.warning("Figure %s: bad data URL: %s", figure.get("id"), exc)
    return None
