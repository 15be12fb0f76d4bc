"""
Common utility functions and helpers.
"""
from datetime import datetime, timezone
from typing import List, Optional, Union
import logging
import os
import re
import unicodedata

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    """Lowercase and strip an email address."""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """
    Loose email syntax check (something@something.tld).

    Args:
        email: Candidate address

    Returns:
        True if the address looks deliverable
    """
    return bool(_EMAIL_RE.match(email or ""))


def parse_keywords(keywords: Union[str, List[str], None]) -> List[str]:
    """
    Split a comma-separated keyword string (or clean a list) into keywords.

    Args:
        keywords: "a, b, c" or ["a", "b"]

    Returns:
        List of non-empty, stripped keywords in input order

    Raises:
        ValueError: *keywords* is neither a string nor a list of strings
    """
    if keywords is None:
        return []
    if isinstance(keywords, str):
        keywords = keywords.split(",")
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise ValueError("keywords must be a comma-separated string or a list of strings")
    return [k.strip() for k in keywords if k.strip()]


def slugify(text: str, max_length: int = 80, default: str = "thesis") -> str:
    """
    Filesystem-safe slug used for export filenames.

    Args:
        text: Any title
        max_length: Maximum slug length
        default: Returned when the title has no usable characters

    Returns:
        Lowercase ASCII slug with dashes
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^\w\s-]", "", text).strip().lower()
    text = re.sub(r"[-\s_]+", "-", text)
    return text[:max_length].strip("-") or default


def count_words(text: str) -> int:
    """Count whitespace-separated words, ignoring markdown markers."""
    if not text:
        return 0
    text = re.sub(r"[#*_>`]+", " ", text)
    return len(text.split())


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def safe_remove(path: str) -> None:
    """Delete a file, ignoring errors (it may already be gone)."""
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", path, exc)
