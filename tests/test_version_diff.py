"""Unit tests for the positional content diff."""
from app.services.versioning import generate_version_diff


def _tree(**overrides):
    tree = {
        "metadata": {"description": "", "keywords": ["ocr"]},
        "frontMatter": [{"id": "f1", "title": "Abstract", "content": "Old abstract"}],
        "generalIntroduction": {"id": "gi", "title": "General Introduction", "content": ""},
        "chapters": [{"id": "c1", "title": "Background", "content": "First paragraph", "sections": []}],
        "generalConclusion": {"id": "gc", "title": "General Conclusion", "content": ""},
        "backMatter": [{"id": "b1", "title": "References", "content": ""}],
    }
    tree.update(overrides)
    return tree


def test_identical_trees_have_no_changes():
    assert generate_version_diff(_tree(), _tree()) == []


def test_metadata_change():
    new = _tree(metadata={"description": "", "keywords": ["ocr", "arabic"]})
    assert generate_version_diff(_tree(), new) == [
        {"path": "metadata.keywords", "type": "modification", "oldValue": ["ocr"], "newValue": ["ocr", "arabic"]}
    ]


def test_new_metadata_key_has_no_old_value():
    new = _tree(metadata={"description": "", "keywords": ["ocr"], "degree": "MSc"})
    changes = generate_version_diff(_tree(), new)
    assert changes == [{"path": "metadata.degree", "type": "modification", "oldValue": None, "newValue": "MSc"}]


def test_chapter_title_and_body_changes():
    new = _tree(chapters=[{"id": "c1", "title": "Related Work", "content": "Rewritten", "sections": []}])
    changes = generate_version_diff(_tree(), new)
    assert [(c["path"], c["type"]) for c in changes] == [
        ("chapters[0].title", "modification"),
        ("chapters[0].content[0]", "modification"),
    ]
    assert changes[1]["oldValue"] == "First paragraph"


def test_chapter_added_and_removed():
    extra = {"id": "c2", "title": "Methods", "content": "", "sections": []}
    old = _tree()
    new = _tree(chapters=old["chapters"] + [extra])

    added = generate_version_diff(old, new)
    assert added == [{"path": "chapters[1]", "type": "addition", "newValue": extra}]

    removed = generate_version_diff(new, old)
    assert removed == [{"path": "chapters[1]", "type": "deletion", "oldValue": extra}]


def test_section_changes_in_reading_order():
    old = _tree()
    new = _tree(
        frontMatter=[
            {"id": "f1", "title": "Abstract", "content": "New abstract"},
            {"id": "f2", "title": "Acknowledgments", "content": ""},
        ],
        generalIntroduction={"id": "gi", "title": "General Introduction", "content": "Now written"},
        chapters=[
            {
                "id": "c1",
                "title": "Background",
                "content": "First paragraph",
                "sections": [{"id": "s1", "title": "Scope", "content": ""}],
            }
        ],
        backMatter=[],
    )
    paths = [(c["path"], c["type"]) for c in generate_version_diff(old, new)]
    assert paths == [
        ("frontMatter[0].content", "modification"),
        ("frontMatter[1]", "addition"),
        ("generalIntroduction.content", "modification"),
        ("chapters[0].sections[0]", "addition"),
        ("backMatter[0]", "deletion"),
    ]


def test_inserted_chapter_is_positional():
    first = {"id": "c1", "title": "Background", "content": "First paragraph", "sections": []}
    inserted = {"id": "c0", "title": "Preliminaries", "content": "First paragraph", "sections": []}
    changes = generate_version_diff(_tree(chapters=[first]), _tree(chapters=[inserted, first]))
    assert [(c["path"], c["type"]) for c in changes] == [
        ("chapters[0].title", "modification"),
        ("chapters[1]", "addition"),
    ]


def test_block_content_diffed_per_block():
    old_blocks = [{"type": "paragraph", "content": "Intro"}, {"type": "quote", "content": "Cited"}]
    new_blocks = [
        {"type": "paragraph", "content": "Intro"},
        {"type": "quote", "content": "Cited, revised"},
        {"type": "paragraph", "content": "Closing"},
    ]
    old = _tree(chapters=[{"id": "c1", "title": "Background", "content": old_blocks, "sections": []}])
    new = _tree(chapters=[{"id": "c1", "title": "Background", "content": new_blocks, "sections": []}])

    assert generate_version_diff(old, new) == [
        {
            "path": "chapters[0].content[1]",
            "type": "modification",
            "oldValue": old_blocks[1],
            "newValue": new_blocks[1],
        },
        {"path": "chapters[0].content[2]", "type": "addition", "newValue": new_blocks[2]},
    ]


def test_string_body_becoming_blocks():
    blocks = [{"type": "paragraph", "content": "First paragraph"}, {"type": "paragraph", "content": "More"}]
    new = _tree(chapters=[{"id": "c1", "title": "Background", "content": blocks, "sections": []}])
    changes = generate_version_diff(_tree(), new)
    assert [(c["path"], c["type"]) for c in changes] == [
        ("chapters[0].content[0]", "modification"),
        ("chapters[0].content[1]", "addition"),
    ]
    assert changes[0]["oldValue"] == "First paragraph"
