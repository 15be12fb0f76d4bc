"""
Thesis outline templates and content-tree normalisation.

A thesis' ``content`` column holds one JSON tree::

    {
      "metadata":            {...},
      "frontMatter":         [section, ...],
      "generalIntroduction": section,
      "chapters":            [{id, title, content, order, sections: [section, ...]}, ...],
      "generalConclusion":   section,
      "backMatter":          [section, ...],
    }

Everything that reads the tree goes through :func:`normalize_content` first,
so downstream code (editor, versioning, export) can rely on every key being
present.
"""
from __future__ import annotations

import copy
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from app.utils.helpers import count_words, parse_keywords

logger = logging.getLogger(__name__)

SECTION_TYPES = (
    "title",
    "preface",
    "acknowledgments",
    "abstract",
    "table-of-contents",
    "list-of-figures",
    "list-of-tables",
    "abbreviations",
    "glossary",
    "general_introduction",
    "introduction",
    "literature-review",
    "theoretical-framework",
    "methodology",
    "empirical-study",
    "results",
    "discussion",
    "conclusion",
    "general_conclusion",
    "recommendations",
    "postface",
    "references",
    "appendix",
    "advice",
    "chapter",
    "custom",
)

SECTION_COLLECTIONS = ("figures", "tables", "citations", "references", "footnotes")

# Sections whose body is generated at export time rather than written
GENERATED_SECTION_TYPES = ("title", "table-of-contents", "list-of-figures", "list-of-tables", "references")


# ---------------------------------------------------------------------------
# Language templates
# ---------------------------------------------------------------------------

THESIS_TEMPLATES: Dict[str, Dict[str, List[Dict[str, Any]]]] = {
    "en": {
        "frontMatter": [
            {"type": "title", "title": "Title Page", "required": True},
            {"type": "acknowledgments", "title": "Acknowledgments", "required": False},
            {"type": "abstract", "title": "Abstract", "required": True},
            {"type": "table-of-contents", "title": "Table of Contents", "required": True},
            {"type": "list-of-figures", "title": "List of Figures", "required": False},
            {"type": "list-of-tables", "title": "List of Tables", "required": False},
            {"type": "abbreviations", "title": "List of Abbreviations", "required": False},
        ],
        "mainMatter": [
            {"type": "introduction", "title": "Introduction", "required": True},
            {"type": "literature-review", "title": "Literature Review", "required": True},
            {"type": "methodology", "title": "Methodology", "required": True},
            {"type": "results", "title": "Results", "required": True},
            {"type": "discussion", "title": "Discussion", "required": True},
            {"type": "conclusion", "title": "Conclusion", "required": True},
        ],
        "backMatter": [
            {"type": "references", "title": "References", "required": True},
            {"type": "appendix", "title": "Appendix", "required": False},
        ],
    },
    "fr": {
        "frontMatter": [
            {"type": "title", "title": "Page de garde", "required": True},
            {"type": "preface", "title": "Avant-propos", "required": False},
            {"type": "preface", "title": "Préface", "required": False},
            {"type": "acknowledgments", "title": "Remerciements", "required": False},
            {"type": "abstract", "title": "Résumé", "required": True},
            {"type": "table-of-contents", "title": "Sommaire", "required": True},
            {"type": "list-of-figures", "title": "Liste des tableaux et figures", "required": True},
            {"type": "abbreviations", "title": "Liste des abréviations", "required": False},
            {"type": "glossary", "title": "Glossaire", "required": False},
        ],
        "mainMatter": [
            {"type": "introduction", "title": "Introduction", "required": True},
            {"type": "literature-review", "title": "Revue de littérature", "required": True},
            {"type": "methodology", "title": "Méthodologie", "required": True},
            {"type": "results", "title": "Résultats", "required": True},
            {"type": "discussion", "title": "Discussion", "required": True},
            {"type": "conclusion", "title": "Conclusion", "required": True},
            {"type": "recommendations", "title": "Recommandations", "required": False},
        ],
        "backMatter": [
            {"type": "postface", "title": "Postface", "required": False},
            {"type": "references", "title": "Bibliographie", "required": True},
            {"type": "appendix", "title": "Annexes", "required": False},
            {"type": "advice", "title": "Conseils", "required": False},
        ],
    },
    "ar": {
        "frontMatter": [
            {"type": "title", "title": "صفحة العنوان", "required": True},
            {"type": "abstract", "title": "ملخص", "required": True},
            {"type": "acknowledgments", "title": "شكر وتقدير", "required": False},
            {"type": "table-of-contents", "title": "جدول المحتويات", "required": True},
            {"type": "list-of-figures", "title": "قائمة الأشكال", "required": True},
            {"type": "list-of-tables", "title": "قائمة الجداول", "required": True},
            {"type": "abbreviations", "title": "قائمة الاختصارات", "required": False},
        ],
        "mainMatter": [
            {"type": "introduction", "title": "المقدمة", "required": True},
            {"type": "theoretical-framework", "title": "الإطار النظري", "required": True},
            {"type": "methodology", "title": "منهجية البحث", "required": True},
            {"type": "results", "title": "النتائج", "required": True},
            {"type": "discussion", "title": "المناقشة", "required": True},
            {"type": "conclusion", "title": "الخاتمة", "required": True},
            {"type": "recommendations", "title": "التوصيات", "required": False},
        ],
        "backMatter": [
            {"type": "references", "title": "المراجع", "required": True},
            {"type": "appendix", "title": "الملاحق", "required": False},
        ],
    },
}

GENERAL_SECTION_TITLES = {
    "en": ("General Introduction", "General Conclusion"),
    "fr": ("Introduction générale", "Conclusion générale"),
    "ar": ("مقدمة عامة", "خاتمة عامة"),
}


def get_template(language: Optional[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Return the outline for *language*, falling back to English."""
    return THESIS_TEMPLATES.get((language or "en").lower()[:2], THESIS_TEMPLATES["en"])


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_section(
    title: str,
    section_type: str = "custom",
    content: str = "",
    order: int = 1,
    required: bool = False,
) -> Dict[str, Any]:
    """A fresh, empty section with a new UUID."""
    now = _now_iso()
    return {
        "id": str(uuid.uuid4()),
        "title": title,
        "content": content,
        "type": section_type,
        "required": required,
        "order": order,
        "figures": [],
        "tables": [],
        "citations": [],
        "references": [],
        "footnotes": [],
        "created_at": now,
        "updated_at": now,
    }


def new_chapter(title: str, content: str = "", order: int = 1) -> Dict[str, Any]:
    """A fresh chapter with no sections."""
    now = _now_iso()
    return {
        "id": str(uuid.uuid4()),
        "title": title,
        "content": content,
        "order": order,
        "sections": [],
        "figures": [],
        "tables": [],
        "citations": [],
        "references": [],
        "created_at": now,
        "updated_at": now,
    }


def _list(value: Any, field: str) -> List[Any]:
    """*value* as a new list; None means empty, any other non-list is rejected."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{field} must be a list")
    return list(value)


def _people(values: Optional[List[Any]], field: str = "people") -> List[Dict[str, Any]]:
    """
    Person entries as dicts. A plain name string is split into first and
    last name.

    Raises:
        ValueError: an entry is neither a dict nor a string.
    """
    people = []
    for value in _list(values, field):
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        if isinstance(value, str):
            first, _, last = value.strip().partition(" ")
            value = {"firstName": first, "lastName": last}
        if not isinstance(value, dict):
            raise ValueError(f"{field} entries must be objects or names, got {type(value).__name__}")
        people.append(dict(value))
    return people


def build_initial_content(
    metadata: Dict[str, Any],
    language: Optional[str] = None,
    include_outline: bool = False,
) -> Dict[str, Any]:
    """
    Build the content tree of a newly created thesis.

    The front matter always starts with a ``title`` section carrying the
    thesis title and an ``abstract`` seeded with the description; the
    template's other *required* front-matter sections follow.  Back matter
    starts with the template's required sections (at least References).
    With *include_outline* the template's main-matter entries become empty
    chapters; otherwise the thesis starts without chapters.
    """
    language = (language or metadata.get("language") or "en").lower()
    template = get_template(language)
    intro_title, conclusion_title = GENERAL_SECTION_TITLES.get(language[:2], GENERAL_SECTION_TITLES["en"])
    title = metadata.get("title") or "Untitled Thesis"
    description = metadata.get("description") or ""

    front: List[Dict[str, Any]] = [
        new_section(title, "title", "", order=1, required=True),
        new_section(_template_title(template, "abstract", "Abstract"), "abstract", description, order=2, required=True),
    ]
    for entry in template["frontMatter"]:
        if entry["type"] in ("title", "abstract") or not entry["required"]:
            continue
        front.append(new_section(entry["title"], entry["type"], order=len(front) + 1, required=True))

    back: List[Dict[str, Any]] = []
    for entry in template["backMatter"]:
        if entry["required"]:
            back.append(new_section(entry["title"], entry["type"], order=len(back) + 1, required=True))

    chapters: List[Dict[str, Any]] = []
    if include_outline:
        for entry in template["mainMatter"]:
            chapters.append(new_chapter(entry["title"], order=len(chapters) + 1))

    content = {
        "metadata": {
            "description": description,
            "keywords": parse_keywords(metadata.get("keywords")),
            "createdAt": _now_iso(),
            "universityName": metadata.get("universityName") or "",
            "departmentName": metadata.get("departmentName") or "",
            "degree": metadata.get("degree") or "",
            "authors": _people(metadata.get("authors")),
            "supervisors": _people(metadata.get("supervisors")),
            "committeeMembers": _people(metadata.get("committeeMembers")),
            "thesisDate": metadata.get("thesisDate") or "",
            "language": language,
            "version": "1.0",
        },
        "frontMatter": front,
        "generalIntroduction": new_section(intro_title, "general_introduction", required=True),
        "chapters": chapters,
        "generalConclusion": new_section(conclusion_title, "general_conclusion", required=True),
        "backMatter": back,
    }
    return content


def _template_title(template: Dict[str, List[Dict[str, Any]]], section_type: str, default: str) -> str:
    for entry in template["frontMatter"]:
        if entry["type"] == section_type:
            return entry["title"]
    return default


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def body_text(value: Any) -> str:
    """Section and chapter bodies may be a markdown string or a list of content blocks."""
    if isinstance(value, list):
        return "\n\n".join(
            str(block.get("content", "")) if isinstance(block, dict) else str(block) for block in value
        )
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _body(value: Any) -> Union[str, List[Any]]:
    # structured content blocks ([{"type": ..., "content": ...}]) are kept as sent
    if isinstance(value, (str, list)):
        return value
    return body_text(value)


def _normalize_section(raw: Any, position: int, default_type: str = "custom") -> Dict[str, Any]:
    section = dict(raw) if isinstance(raw, dict) else {}
    section["id"] = section.get("id") or str(uuid.uuid4())
    section["title"] = section.get("title") or ""
    section["content"] = _body(section.get("content"))
    section["type"] = section.get("type") or default_type
    section["required"] = bool(section.get("required", False))
    section["order"] = section.get("order") or position
    for key in SECTION_COLLECTIONS:
        section[key] = _list(section.get(key), key)
    return section


def _normalize_chapter(raw: Any, position: int) -> Dict[str, Any]:
    chapter = dict(raw) if isinstance(raw, dict) else {}
    chapter["id"] = chapter.get("id") or str(uuid.uuid4())
    chapter["title"] = chapter.get("title") or ""
    chapter["content"] = _body(chapter.get("content"))
    chapter["order"] = chapter.get("order") or position
    chapter["sections"] = [
        _normalize_section(s, i) for i, s in enumerate(_list(chapter.get("sections"), "sections"), start=1)
    ]
    for key in ("figures", "tables", "citations", "references"):
        chapter[key] = _list(chapter.get(key), key)
    return chapter


def normalize_content(raw: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """
    Return a deep copy of *raw* with every expected key present.

    Accepts the JSON tree as a dict or a JSON string.  Missing ids get new
    UUIDs, missing scalars get empty defaults, missing collections become
    empty lists.  Unknown keys are preserved untouched.

    Raises:
        ValueError: *raw* is a string that is not valid JSON or not an object.
    """
    if raw is None:
        raw = {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Thesis content is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError("Thesis content must be a JSON object")

    content = copy.deepcopy(raw)
    metadata = content.get("metadata") if isinstance(content.get("metadata"), dict) else {}
    metadata.setdefault("description", "")
    metadata["keywords"] = parse_keywords(metadata.get("keywords"))
    metadata.setdefault("createdAt", _now_iso())
    for key in ("authors", "supervisors", "committeeMembers"):
        metadata[key] = _people(metadata.get(key), f"metadata.{key}")
    content["metadata"] = metadata

    content["frontMatter"] = [
        _normalize_section(s, i) for i, s in enumerate(_list(content.get("frontMatter"), "frontMatter"), start=1)
    ]
    content["backMatter"] = [
        _normalize_section(s, i) for i, s in enumerate(_list(content.get("backMatter"), "backMatter"), start=1)
    ]
    content["chapters"] = [
        _normalize_chapter(c, i) for i, c in enumerate(_list(content.get("chapters"), "chapters"), start=1)
    ]
    content["generalIntroduction"] = _normalize_section(
        content.get("generalIntroduction") or {"title": "General Introduction", "required": True},
        1,
        "general_introduction",
    )
    content["generalConclusion"] = _normalize_section(
        content.get("generalConclusion") or {"title": "General Conclusion", "required": True},
        1,
        "general_conclusion",
    )
    return content


# ---------------------------------------------------------------------------
# Traversal + statistics
# ---------------------------------------------------------------------------

def iter_sections(content: Dict[str, Any]):
    """
    Yield ``(location, section)`` pairs in reading order.

    *location* is ``frontMatter``, ``generalIntroduction``, a chapter id,
    ``generalConclusion`` or ``backMatter``.
    """
    for section in content.get("frontMatter", []):
        yield "frontMatter", section
    if content.get("generalIntroduction"):
        yield "generalIntroduction", content["generalIntroduction"]
    for chapter in content.get("chapters", []):
        for section in chapter.get("sections", []):
            yield chapter["id"], section
    if content.get("generalConclusion"):
        yield "generalConclusion", content["generalConclusion"]
    for section in content.get("backMatter", []):
        yield "backMatter", section


def content_statistics(content: Dict[str, Any]) -> Dict[str, Any]:
    """
    Completion statistics for the dashboard progress map.

    A section counts as complete when it has body text, or when its body is
    generated at export time (title page, table of contents, lists, references).
    """
    total = 0
    completed = 0
    missing_required: List[str] = []
    words = 0
    figures = tables = footnotes = 0

    for _, section in iter_sections(content):
        total += 1
        body = body_text(section.get("content"))
        words += count_words(body)
        figures += len(section.get("figures", []))
        tables += len(section.get("tables", []))
        footnotes += len(section.get("footnotes", []))
        if body.strip() or section.get("type") in GENERATED_SECTION_TYPES:
            completed += 1
        elif section.get("required"):
            missing_required.append(section.get("title") or section.get("type", ""))

    for chapter in content.get("chapters", []):
        words += count_words(body_text(chapter.get("content")))

    return {
        "total_sections": total,
        "completed_sections": completed,
        "completion_ratio": round(completed / total, 3) if total else 0.0,
        "missing_required": missing_required,
        "word_count": words,
        "chapter_count": len(content.get("chapters", [])),
        "figure_count": figures,
        "table_count": tables,
        "footnote_count": footnotes,
    }
