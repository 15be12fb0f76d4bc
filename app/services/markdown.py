"""
Minimal markdown block parser shared by the DOCX and PDF exporters.

Recognised blocks: ``#``/``##``/``###`` headings, ``-``/``*`` bullets,
``1.`` ordered items and blank-line separated paragraphs.  Inline
``**bold**`` and ``*italic*`` spans are split into runs.
"""
from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import List, Tuple

_HEADING_RE = re.compile(r"^(#{1,3})\s+(.*)$")
_BULLET_RE = re.compile(r"^[-*]\s+(.*)$")
_ORDERED_RE = re.compile(r"^(\d+)\.\s+(.*)$")
_INLINE_RE = re.compile(r"(\*\*[^*]+\*\*|\*[^*]+\*)")


@dataclass
class Run:
    text: str
    bold: bool = False
    italic: bool = False


@dataclass
class Block:
    kind: str  # heading | bullet | ordered | paragraph
    text: str
    level: int = 0
    number: int = 0
    runs: List[Run] = field(default_factory=list)


def parse_inline(text: str) -> List[Run]:
    """Split ``**bold**`` / ``*italic*`` spans into runs; markers are dropped."""
    runs: List[Run] = []
    for part in _INLINE_RE.split(text):
        if not part:
            continue
        if part.startswith("**") and part.endswith("**") and len(part) > 4:
            runs.append(Run(part[2:-2], bold=True))
        elif part.startswith("*") and part.endswith("*") and len(part) > 2:
            runs.append(Run(part[1:-1], italic=True))
        else:
            runs.append(Run(part))
    return runs


def _flush(paragraph: List[str], blocks: List[Block]) -> None:
    if paragraph:
        text = " ".join(line.strip() for line in paragraph)
        blocks.append(Block("paragraph", text, runs=parse_inline(text)))
        paragraph.clear()


def parse_blocks(text: str) -> List[Block]:
    """
    Parse markdown into a flat list of blocks.

    Consecutive non-empty lines that are not headings or list items join
    into one paragraph.
    """
    blocks: List[Block] = []
    paragraph: List[str] = []

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            _flush(paragraph, blocks)
            continue

        heading = _HEADING_RE.match(line)
        bullet = _BULLET_RE.match(line)
        ordered = _ORDERED_RE.match(line)
        if heading:
            _flush(paragraph, blocks)
            body = heading.group(2).strip()
            blocks.append(Block("heading", body, level=len(heading.group(1)), runs=parse_inline(body)))
        elif bullet:
            _flush(paragraph, blocks)
            body = bullet.group(1).strip()
            blocks.append(Block("bullet", body, runs=parse_inline(body)))
        elif ordered:
            _flush(paragraph, blocks)
            body = ordered.group(2).strip()
            blocks.append(Block("ordered", body, number=int(ordered.group(1)), runs=parse_inline(body)))
        else:
            paragraph.append(line)

    _flush(paragraph, blocks)
    return blocks


def runs_to_html(runs: List[Run]) -> str:
    parts = []
    for run in runs:
        text = html.escape(run.text)
        if run.bold:
            text = f"<b>{text}</b>"
        if run.italic:
            text = f"<i>{text}</i>"
        parts.append(text)
    return "".join(parts)


def blocks_to_html(blocks: List[Block], heading_offset: int = 2) -> str:
    """
    Render blocks as HTML; markdown ``#`` maps to ``<h{1 + heading_offset}>``.
    Consecutive list items share one ``<ul>``/``<ol>``.
    """
    out: List[str] = []
    open_list: Tuple[str, ...] = ()
    for block in blocks:
        list_tag = {"bullet": "ul", "ordered": "ol"}.get(block.kind)
        if open_list and open_list[0] != list_tag:
            out.append(f"</{open_list[0]}>")
            open_list = ()
        if list_tag and not open_list:
            out.append(f"<{list_tag}>")
            open_list = (list_tag,)

        body = runs_to_html(block.runs)
        if block.kind == "heading":
            level = min(block.level + heading_offset, 6)
            out.append(f"<h{level}>{body}</h{level}>")
        elif list_tag:
            out.append(f"<li>{body}</li>")
        else:
            out.append(f"<p>{body}</p>")
    if open_list:
        out.append(f"</{open_list[0]}>")
    return "\n".join(out)
