"""
Thesis version history.

Provides:
- generate_version_diff: flat add/remove/modify records between two content trees
- VersioningService: snapshot, list, compare and restore persisted versions
"""
from __future__ import annotations

import copy
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import Thesis, ThesisVersion
from app.services.thesis_structure import normalize_content

logger = logging.getLogger(__name__)

ADDITION = "addition"
DELETION = "deletion"
MODIFICATION = "modification"

INITIAL_VERSION_CHANGES = [{"type": ADDITION, "path": "root", "description": "Initial version"}]

_MISSING = object()


class VersionNotFound(LookupError):
    """Raised when a requested version number does not exist for the thesis."""


@dataclass
class VersionDiff:
    path: str
    type: str
    oldValue: Any = None
    newValue: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.type == ADDITION:
            data.pop("oldValue")
        elif self.type == DELETION:
            data.pop("newValue")
        return data


# ---------------------------------------------------------------------------
# Pure diffing
# ---------------------------------------------------------------------------

def _encode(value: Any) -> str:
    if value is _MISSING:
        return "\x00missing"
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _differs(a: Any, b: Any) -> bool:
    return _encode(a) != _encode(b)


def _as_blocks(value: Any) -> List[Any]:
    """Chapter/section bodies may be a markdown string or a list of blocks."""
    if isinstance(value, list):
        return value
    if value in (None, ""):
        return []
    return [value]


def _value(value: Any) -> Any:
    return None if value is _MISSING else value


def _diff_metadata(old: Dict[str, Any], new: Dict[str, Any], out: List[VersionDiff]) -> None:
    old_meta = old.get("metadata") or {}
    for key, new_value in (new.get("metadata") or {}).items():
        old_value = old_meta.get(key, _MISSING)
        if _differs(old_value, new_value):
            out.append(VersionDiff(f"metadata.{key}", MODIFICATION, _value(old_value), new_value))


def _diff_chapters(old: Dict[str, Any], new: Dict[str, Any], out: List[VersionDiff]) -> None:
    old_chapters = old.get("chapters") or []
    new_chapters = new.get("chapters") or []

    for index, chapter in enumerate(new_chapters):
        if index >= len(old_chapters):
            out.append(VersionDiff(f"chapters[{index}]", ADDITION, newValue=chapter))
            continue
        old_chapter = old_chapters[index]
        if chapter.get("title") != old_chapter.get("title"):
            out.append(
                VersionDiff(f"chapters[{index}].title", MODIFICATION, old_chapter.get("title"), chapter.get("title"))
            )
        old_blocks = _as_blocks(old_chapter.get("content"))
        for block_index, block in enumerate(_as_blocks(chapter.get("content"))):
            path = f"chapters[{index}].content[{block_index}]"
            if block_index >= len(old_blocks):
                out.append(VersionDiff(path, ADDITION, newValue=block))
            elif _differs(block, old_blocks[block_index]):
                out.append(VersionDiff(path, MODIFICATION, old_blocks[block_index], block))

    for index, chapter in enumerate(old_chapters):
        if index >= len(new_chapters):
            out.append(VersionDiff(f"chapters[{index}]", DELETION, oldValue=chapter))


def _diff_section(path: str, old: Dict[str, Any], new: Dict[str, Any], out: List[VersionDiff]) -> None:
    for field in ("title", "content"):
        if _differs(old.get(field), new.get(field)):
            out.append(VersionDiff(f"{path}.{field}", MODIFICATION, old.get(field), new.get(field)))


def _diff_section_list(
    path: str, old_sections: Sequence[Dict[str, Any]], new_sections: Sequence[Dict[str, Any]], out: List[VersionDiff]
) -> None:
    for index, section in enumerate(new_sections):
        if index >= len(old_sections):
            out.append(VersionDiff(f"{path}[{index}]", ADDITION, newValue=section))
        else:
            _diff_section(f"{path}[{index}]", old_sections[index], section, out)
    for index in range(len(new_sections), len(old_sections)):
        out.append(VersionDiff(f"{path}[{index}]", DELETION, oldValue=old_sections[index]))


def generate_version_diff(old: Dict[str, Any], new: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Compare two content trees position by position.

    Records come out in this order: metadata keys of *new*; the chapter walk
    (new chapters, title changes, chapter body blocks); chapters deleted from
    the end; then front matter, general introduction, the sections of
    chapters present in both trees, general conclusion and back matter.
    Values are compared by their JSON encoding.  Nothing is merged: a
    chapter inserted in the middle shows up as a run of modifications plus
    one trailing addition.
    """
    out: List[VersionDiff] = []
    _diff_metadata(old, new, out)
    _diff_chapters(old, new, out)

    _diff_section_list("frontMatter", old.get("frontMatter") or [], new.get("frontMatter") or [], out)
    for key in ("generalIntroduction",):
        if old.get(key) and new.get(key):
            _diff_section(key, old[key], new[key], out)

    old_chapters = old.get("chapters") or []
    for index, chapter in enumerate(new.get("chapters") or []):
        if index < len(old_chapters):
            _diff_section_list(
                f"chapters[{index}].sections",
                old_chapters[index].get("sections") or [],
                chapter.get("sections") or [],
                out,
            )

    if old.get("generalConclusion") and new.get("generalConclusion"):
        _diff_section("generalConclusion", old["generalConclusion"], new["generalConclusion"], out)
    _diff_section_list("backMatter", old.get("backMatter") or [], new.get("backMatter") or [], out)

    return [d.to_dict() for d in out]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class VersioningService:
    """Create, list, compare and restore thesis versions."""

    async def latest_number(self, thesis_id: str, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.max(ThesisVersion.version_number)).where(ThesisVersion.thesis_id == thesis_id)
        )
        return result.scalar() or 0

    async def get_version(self, thesis_id: str, version_number: int, db: AsyncSession) -> ThesisVersion:
        result = await db.execute(
            select(ThesisVersion).where(
                ThesisVersion.thesis_id == thesis_id,
                ThesisVersion.version_number == version_number,
            )
        )
        version = result.scalar_one_or_none()
        if version is None:
            raise VersionNotFound(f"Version {version_number} not found")
        return version

    async def list_versions(self, thesis_id: str, db: AsyncSession) -> List[ThesisVersion]:
        result = await db.execute(
            select(ThesisVersion)
            .where(ThesisVersion.thesis_id == thesis_id)
            .order_by(ThesisVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def create_version(
        self,
        thesis: Thesis,
        user_id: Optional[str],
        description: str,
        db: AsyncSession,
    ) -> ThesisVersion:
        """
        Snapshot the thesis content as version ``latest + 1``.

        The first version records a single ``root`` addition; later ones
        record the diff against the immediately preceding version.
        """
        content = normalize_content(thesis.content)
        number = await self.latest_number(thesis.id, db) + 1

        if number == 1:
            changes = copy.deepcopy(INITIAL_VERSION_CHANGES)
        else:
            previous = await self.get_version(thesis.id, number - 1, db)
            changes = generate_version_diff(normalize_content(previous.content), content)

        version = ThesisVersion(
            thesis_id=thesis.id,
            version_number=number,
            content=content,
            description=description,
            language=thesis.language,
            changes=changes,
            created_by=user_id,
        )
        db.add(version)
        await db.flush()
        logger.info(
            "Thesis %s: created version %d (%d changes) by %s", thesis.id, number, len(changes), user_id
        )
        return version

    async def compare_versions(
        self, thesis_id: str, version_a: int, version_b: int, db: AsyncSession
    ) -> Dict[str, Any]:
        """Diff two versions, always from the older to the newer."""
        older, newer = sorted((version_a, version_b))
        old_version = await self.get_version(thesis_id, older, db)
        new_version = await self.get_version(thesis_id, newer, db)
        changes = generate_version_diff(
            normalize_content(old_version.content), normalize_content(new_version.content)
        )
        return {"from_version": older, "to_version": newer, "changes": changes}

    async def restore_version(self, thesis: Thesis, version_number: int, db: AsyncSession) -> ThesisVersion:
        """Replace the thesis content with a copy of the given version's content."""
        version = await self.get_version(thesis.id, version_number, db)
        thesis.content = normalize_content(version.content)
        thesis.updated_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Thesis %s: restored version %d", thesis.id, version_number)
        return version


versioning_service = VersioningService()
