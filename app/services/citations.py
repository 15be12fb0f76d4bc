"""
Citation formatting, reference parsing and bibliography ordering.

Works on ``Citation`` rows or plain dicts with the same field names.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

CITATION_STYLES = ("apa", "mla", "chicago", "harvard", "vancouver")
SORT_FIELDS = ("year", "author", "text")

_AUTHOR_SPLIT_RE = re.compile(r",\s*(?:&|\band\b)?\s*")
_AUTHOR_RE = re.compile(r"^(.*?)\s*\(")
_YEAR_RE = re.compile(r"\((\d{4})\)")
_TITLE_RE = re.compile(r"\)\.\s*(.*?)\.")
_JOURNAL_RE = re.compile(r"^\s*(.*?),\s*\d")
_VOLUME_ISSUE_RE = re.compile(r",\s*(\d+)\((\d+)\)")
_PAGES_RE = re.compile(r",\s*(\d+(?:-\d+)?)\.")
_DOI_RE = re.compile(r"https://doi\.org/(.*?)(?:\s|$)")
_URL_RE = re.compile(r"(https?://[^\s]+)(?:\s|$)")


class ReferenceParseError(ValueError):
    """Raised when a reference string yields neither a title nor authors."""


def _get(citation: Any, field: str) -> Any:
    if isinstance(citation, dict):
        return citation.get(field)
    return getattr(citation, field, None)


def _authors(citation: Any) -> List[str]:
    return [a.strip() for a in (_get(citation, "authors") or []) if a and a.strip()]


def _split_name(author: str):
    """'Jane Q Doe' -> ('Jane Q', 'Doe'); a single word is a last name."""
    parts = author.split()
    if not parts:
        return "", ""
    return " ".join(parts[:-1]), parts[-1]


def _initials(first_names: str, sep: str = " ", dot: bool = True) -> str:
    marks = [f"{name[0]}." if dot else name[0] for name in first_names.split() if name]
    return sep.join(marks)


def _year(citation: Any) -> str:
    return str(_get(citation, "year") or "n.d.")


def last_name(author: str) -> str:
    return _split_name(author)[1]


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

def _format_apa(c: Any) -> str:
    authors = _authors(c)
    names = []
    for index, author in enumerate(authors):
        first, last = _split_name(author)
        name = f"{last}, {_initials(first)}".rstrip(", ") if first else last
        names.append(name if index == len(authors) - 1 else f"{name},")
    result = f"{' '.join(names)} ({_year(c)}). {_get(c, 'text') or ''}".strip()

    if _get(c, "type") == "article" and _get(c, "journal"):
        result += f". {_get(c, 'journal')}"
        if _get(c, "volume"):
            result += f", {_get(c, 'volume')}"
        if _get(c, "issue"):
            result += f"({_get(c, 'issue')})"
        if _get(c, "pages"):
            result += f", {_get(c, 'pages')}"
    elif _get(c, "type") == "book" and _get(c, "publisher"):
        result += f". {_get(c, 'publisher')}"

    if _get(c, "doi"):
        result += f". https://doi.org/{_get(c, 'doi')}"
    return result


def _inverted_first_author(authors: Sequence[str]) -> str:
    """First author 'Last, First'; others 'First Last'."""
    names = []
    for index, author in enumerate(authors):
        first, last = _split_name(author)
        if index == 0:
            names.append(f"{last}, {first}" if first else last)
        else:
            names.append(f"{first} {last}".strip())
    return ", ".join(names)


def _format_mla(c: Any) -> str:
    result = f'{_inverted_first_author(_authors(c))}. "{_get(c, "text") or ""}." '
    if _get(c, "type") == "article" and _get(c, "journal"):
        result += _get(c, "journal")
        if _get(c, "volume"):
            result += f" {_get(c, 'volume')}"
        if _get(c, "issue"):
            result += f".{_get(c, 'issue')}"
        if _get(c, "year"):
            result += f" ({_get(c, 'year')})"
        if _get(c, "pages"):
            result += f": {_get(c, 'pages')}"
    elif _get(c, "type") == "book" and _get(c, "publisher"):
        result += f"{_get(c, 'publisher')}, {_year(c)}"
    return result.strip()


def _format_chicago(c: Any) -> str:
    result = f"{_inverted_first_author(_authors(c))}. "
    title = _get(c, "text") or ""
    if _get(c, "type") == "article" and _get(c, "journal"):
        result += f'"{title}." {_get(c, "journal")}'
        if _get(c, "volume"):
            result += f" {_get(c, 'volume')}"
        if _get(c, "issue"):
            result += f", no. {_get(c, 'issue')}"
        if _get(c, "year"):
            result += f" ({_get(c, 'year')})"
        if _get(c, "pages"):
            result += f": {_get(c, 'pages')}"
    elif _get(c, "type") == "book" and _get(c, "publisher"):
        result += f"{title}. {_get(c, 'publisher')}, {_year(c)}"
    else:
        result += f"{title}."
    return result.strip()


def _format_harvard(c: Any) -> str:
    names = []
    for author in _authors(c):
        first, last = _split_name(author)
        names.append(f"{last}, {_initials(first, sep='')}" if first else last)
    if len(names) > 1:
        author_text = ", ".join(names[:-1]) + " and " + names[-1]
    else:
        author_text = "".join(names)

    result = f"{author_text} ({_year(c)}) {_get(c, 'text') or ''}.".strip()
    if _get(c, "type") == "article" and _get(c, "journal"):
        result += f" {_get(c, 'journal')}"
        if _get(c, "volume"):
            result += f", {_get(c, 'volume')}"
        if _get(c, "issue"):
            result += f"({_get(c, 'issue')})"
        if _get(c, "pages"):
            result += f", pp. {_get(c, 'pages')}"
        result += "."
    elif _get(c, "publisher"):
        result += f" {_get(c, 'publisher')}."
    if _get(c, "doi"):
        result += f" doi:{_get(c, 'doi')}"
    elif _get(c, "url"):
        result += f" Available at: {_get(c, 'url')}"
    return result


def _format_vancouver(c: Any) -> str:
    names = []
    for author in _authors(c):
        first, last = _split_name(author)
        names.append(f"{last} {_initials(first, sep='', dot=False)}".strip())
    result = f"{', '.join(names)}. {_get(c, 'text') or ''}.".lstrip(". ")
    if _get(c, "type") == "article" and _get(c, "journal"):
        result += f" {_get(c, 'journal')}. {_year(c)}"
        if _get(c, "volume"):
            result += f";{_get(c, 'volume')}"
        if _get(c, "issue"):
            result += f"({_get(c, 'issue')})"
        if _get(c, "pages"):
            result += f":{_get(c, 'pages')}"
        result += "."
    else:
        if _get(c, "publisher"):
            result += f" {_get(c, 'publisher')};"
        result += f" {_year(c)}."
    if _get(c, "doi"):
        result += f" doi:{_get(c, 'doi')}"
    return result


_FORMATTERS = {
    "apa": _format_apa,
    "mla": _format_mla,
    "chicago": _format_chicago,
    "harvard": _format_harvard,
    "vancouver": _format_vancouver,
}


def format_citation(citation: Any, style: str = "apa") -> str:
    """
    Render one citation as a reference-list entry.

    Args:
        citation: ``Citation`` row or dict
        style: One of ``CITATION_STYLES``

    Returns:
        Formatted reference string

    Raises:
        ValueError: unknown style
    """
    formatter = _FORMATTERS.get((style or "").lower())
    if formatter is None:
        raise ValueError(f"Unsupported citation style: {style}")
    return formatter(citation)


def bibliography_key(citation: Any):
    authors = _authors(citation)
    first_last = last_name(authors[0]).lower() if authors else ""
    return (first_last, str(_get(citation, "year") or ""), (_get(citation, "text") or "").lower())


def build_bibliography(citations: Iterable[Any], style: str = "apa") -> List[str]:
    """Formatted entries ordered by first author's last name, then year."""
    ordered = sorted(citations, key=bibliography_key)
    return [format_citation(c, style) for c in ordered]


# ---------------------------------------------------------------------------
# Search / sort
# ---------------------------------------------------------------------------

def filter_and_sort(
    citations: Iterable[Any],
    search: Optional[str] = None,
    citation_type: Optional[str] = None,
    sort: str = "year",
    direction: str = "desc",
) -> List[Any]:
    """
    Filter by case-insensitive substring on title or any author and by type,
    then stable-sort on year, first author or title.
    """
    items = list(citations)
    if search:
        needle = search.lower()
        items = [
            c for c in items
            if needle in (_get(c, "text") or "").lower()
            or any(needle in a.lower() for a in _authors(c))
        ]
    if citation_type and citation_type != "all":
        items = [c for c in items if _get(c, "type") == citation_type]

    if sort not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {sort}")

    def key(c: Any):
        if sort == "year":
            return str(_get(c, "year") or "")
        if sort == "author":
            authors = _authors(c)
            return authors[0].lower() if authors else ""
        return (_get(c, "text") or "").lower()

    return sorted(items, key=key, reverse=(direction == "desc"))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _match(pattern: re.Pattern, text: str, group: int = 1) -> str:
    found = pattern.search(text)
    return found.group(group).strip() if found else ""


def parse_reference(text: str) -> Dict[str, Any]:
    """
    Parse an APA-like reference string.

    ``Doe, J., & Roe, R. (2020). Title. Journal, 12(3), 45-67. https://doi.org/10.1/x``

    Args:
        text: Raw reference as pasted by the user

    Returns:
        Dict with title, authors, author_last_names, author_first_initials,
        author_middle_initials, year ("n.d." when absent), journal,
        container_title, volume, issue, pages, doi and url

    Raises:
        ReferenceParseError: nothing usable could be extracted
    """
    clean = re.sub(r"^[%\s]+", "", (text or "").strip())

    author_match = _AUTHOR_RE.search(clean)
    author_string = author_match.group(1) if author_match else ""
    authors = [name.strip() for name in _AUTHOR_SPLIT_RE.split(author_string) if name.strip()]

    last_names: List[str] = []
    first_initials: List[str] = []
    middle_initials: List[str] = []
    for name in authors:
        parts = name.split(",")[0].strip().split(" ")
        last_names.append(parts[-1])
        if len(parts) > 1:
            first_initials.append(parts[0][:1])
            middle_initials.append(parts[1][:1] if len(parts) > 2 else "")

    volume_issue = _VOLUME_ISSUE_RE.search(clean)
    title_match = _TITLE_RE.search(clean)
    title = title_match.group(1).strip() if title_match else ""
    # the container title follows the article title
    journal = _match(_JOURNAL_RE, clean[title_match.end():]) if title_match else ""

    parsed = {
        "title": title,
        "authors": authors,
        "author_last_names": last_names,
        "author_first_initials": first_initials,
        "author_middle_initials": middle_initials,
        "year": _match(_YEAR_RE, clean) or "n.d.",
        "journal": journal,
        "container_title": journal,
        "volume": volume_issue.group(1) if volume_issue else "",
        "issue": volume_issue.group(2) if volume_issue else "",
        "pages": _match(_PAGES_RE, clean),
        "doi": _match(_DOI_RE, clean),
        "url": _match(_URL_RE, clean),
    }
    if not parsed["title"] and not authors:
        raise ReferenceParseError("Could not extract a title or authors from the reference")

    logger.debug("Parsed reference: %s", parsed)
    return parsed


def parsed_to_citation_fields(parsed: Dict[str, Any], citation_type: str = "article") -> Dict[str, Any]:
    """Map a ``parse_reference`` result onto ``Citation`` column values."""
    year = parsed.get("year")
    return {
        "text": parsed.get("title") or "",
        "source": parsed.get("journal") or "",
        "authors": parsed.get("authors") or [],
        "year": "" if year in (None, "n.d.") else str(year),
        "type": citation_type,
        "doi": parsed.get("doi") or None,
        "url": parsed.get("url") or None,
        "journal": parsed.get("journal") or None,
        "volume": parsed.get("volume") or None,
        "issue": parsed.get("issue") or None,
        "pages": parsed.get("pages") or None,
    }
