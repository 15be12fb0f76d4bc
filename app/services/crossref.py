"""
Crossref works lookup.

Maps ``/works`` search hits onto citation drafts the editor can save.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class CrossrefError(RuntimeError):
    """Raised when Crossref is unreachable or answers with an error."""


def _first(values: Any) -> Optional[str]:
    if isinstance(values, list) and values:
        return str(values[0])
    return None


def work_to_citation(item: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert one Crossref work into citation fields.

    Authors become ``"given family"``; the year is the first date part of
    ``published`` (falling back to ``issued``).
    """
    authors = [
        f"{a.get('given', '')} {a.get('family', '')}".strip()
        for a in item.get("author") or []
    ]
    published = item.get("published") or item.get("issued") or {}
    date_parts = published.get("date-parts") or [[]]
    year = str(date_parts[0][0]) if date_parts and date_parts[0] and date_parts[0][0] else ""

    return {
        "text": _first(item.get("title")) or "",
        "source": item.get("publisher") or "",
        "authors": [a for a in authors if a],
        "year": year,
        "type": "article",
        "doi": item.get("DOI"),
        "url": item.get("URL"),
        "journal": _first(item.get("container-title")),
        "volume": item.get("volume"),
        "issue": item.get("issue"),
        "pages": item.get("page"),
        "publisher": item.get("publisher"),
    }


class CrossrefClient:
    """Thin async client for ``GET /works?query=``."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.CROSSREF_BASE_URL.rstrip("/")
        self.timeout = httpx.Timeout(settings.CROSSREF_TIMEOUT, connect=5.0)
        self._transport = transport

    async def search(self, query: str, rows: int = 5) -> List[Dict[str, Any]]:
        """
        Search Crossref and return citation drafts, best match first.

        Raises:
            CrossrefError: network failure, non-2xx status or malformed body
        """
        params: Dict[str, Any] = {"query": query, "rows": rows}
        if settings.CROSSREF_MAILTO:
            params["mailto"] = settings.CROSSREF_MAILTO

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/works", params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("Crossref returned HTTP %d for %r", exc.response.status_code, query)
            raise CrossrefError(f"Crossref returned HTTP {exc.response.status_code}") from exc
        except (httpx.RequestError, ValueError) as exc:
            logger.warning("Crossref lookup failed for %r: %s", query, exc)
            raise CrossrefError(f"Crossref lookup failed: {exc}") from exc

        items = (payload.get("message") or {}).get("items") or []
        logger.info("Crossref: %d hits for %r", len(items), query)
        return [work_to_citation(item) for item in items]


def get_crossref_client() -> CrossrefClient:
    """FastAPI dependency; overridden in tests."""
    return CrossrefClient()
