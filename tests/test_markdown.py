"""Unit tests for the markdown block parser used by the exporters."""
from app.services.markdown import Run, blocks_to_html, parse_blocks, parse_inline


def test_parse_inline_bold_and_italic():
    assert parse_inline("a **b** and *c*") == [
        Run("a "),
        Run("b", bold=True),
        Run(" and "),
        Run("c", italic=True),
    ]


def test_parse_blocks_kinds():
    text = "# Title\n\nfirst line\nsecond line\n\n- one\n* two\n3. three\n\n### Deep"
    blocks = parse_blocks(text)
    assert [(b.kind, b.text) for b in blocks] == [
        ("heading", "Title"),
        ("paragraph", "first line second line"),
        ("bullet", "one"),
        ("bullet", "two"),
        ("ordered", "three"),
        ("heading", "Deep"),
    ]
    assert blocks[0].level == 1
    assert blocks[4].number == 3
    assert blocks[5].level == 3


def test_parse_blocks_empty():
    assert parse_blocks("") == []
    assert parse_blocks(None) == []


def test_blocks_to_html_groups_lists_and_escapes():
    html = blocks_to_html(parse_blocks("## Part\n\n- a\n- b\n\n1. c\n\nx < y & **z**"), heading_offset=1)
    assert html.split("\n") == [
        "<h3>Part</h3>",
        "<ul>",
        "<li>a</li>",
        "<li>b</li>",
        "</ul>",
        "<ol>",
        "<li>c</li>",
        "</ol>",
        "<p>x &lt; y &amp; <b>z</b></p>",
    ]
