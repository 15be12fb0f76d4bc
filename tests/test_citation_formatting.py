"""Unit tests for citation formatting, bibliography ordering and reference parsing."""
import pytest

from app.services.citations import (
    ReferenceParseError,
    build_bibliography,
    filter_and_sort,
    format_citation,
    parse_reference,
    parsed_to_citation_fields,
)

ARTICLE = {
    "text": "Deep learning for OCR",
    "authors": ["John Smith", "Jane Doe"],
    "year": "2020",
    "type": "article",
    "journal": "Pattern Recognition",
    "volume": "12",
    "issue": "3",
    "pages": "45-67",
    "doi": "10.1016/j.patcog.2020.01",
}

BOOK = {
    "text": "Arabic Script Processing",
    "authors": ["Ali Benali"],
    "year": "2018",
    "type": "book",
    "publisher": "Springer",
}


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

def test_apa_article():
    assert format_citation(ARTICLE, "apa") == (
        "Smith, J., Doe, J. (2020). Deep learning for OCR. Pattern Recognition, 12(3), 45-67. "
        "https://doi.org/10.1016/j.patcog.2020.01"
    )


def test_apa_middle_initials_and_missing_year():
    citation = {"text": "Untitled notes", "authors": ["Jane Q Doe"], "type": "other"}
    assert format_citation(citation, "apa") == "Doe, J. Q. (n.d.). Untitled notes"


def test_apa_without_authors():
    assert format_citation({"text": "Anonymous report", "year": "2001"}, "apa") == "(2001). Anonymous report"


def test_mla_article_and_book():
    assert format_citation(ARTICLE, "mla") == (
        'Smith, John, Jane Doe. "Deep learning for OCR." Pattern Recognition 12.3 (2020): 45-67'
    )
    assert format_citation(BOOK, "mla") == 'Benali, Ali. "Arabic Script Processing." Springer, 2018'


def test_chicago_article():
    assert format_citation(ARTICLE, "chicago") == (
        'Smith, John, Jane Doe. "Deep learning for OCR." Pattern Recognition 12, no. 3 (2020): 45-67'
    )


def test_harvard_article():
    assert format_citation(ARTICLE, "harvard") == (
        "Smith, J and Doe, J (2020) Deep learning for OCR. Pattern Recognition, 12(3), pp. 45-67. "
        "doi:10.1016/j.patcog.2020.01"
    )


def test_vancouver_article_and_book():
    assert format_citation(ARTICLE, "vancouver") == (
        "Smith J, Doe J. Deep learning for OCR. Pattern Recognition. 2020;12(3):45-67. "
        "doi:10.1016/j.patcog.2020.01"
    )
    assert format_citation(BOOK, "vancouver") == "Benali A. Arabic Script Processing. Springer; 2018."


def test_style_is_case_insensitive_and_validated():
    assert format_citation(BOOK, "APA") == format_citation(BOOK, "apa")
    with pytest.raises(ValueError):
        format_citation(BOOK, "ieee")


def test_bibliography_orders_by_first_author_last_name():
    entries = build_bibliography([ARTICLE, BOOK], "apa")
    assert entries[0].startswith("Benali")
    assert entries[1].startswith("Smith")


# ---------------------------------------------------------------------------
# Filter / sort
# ---------------------------------------------------------------------------

def test_filter_and_sort():
    items = [ARTICLE, BOOK]
    assert filter_and_sort(items, search="DOE") == [ARTICLE]
    assert filter_and_sort(items, citation_type="book") == [BOOK]
    assert filter_and_sort(items, citation_type="all") == [ARTICLE, BOOK]
    assert filter_and_sort(items, sort="text", direction="asc") == [BOOK, ARTICLE]
    assert filter_and_sort(items, sort="year", direction="asc") == [BOOK, ARTICLE]
    with pytest.raises(ValueError):
        filter_and_sort(items, sort="color")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_parse_reference_fields():
    parsed = parse_reference("Jane Q Doe (2019). Some title. Journal of X, 4(2), 10-20.")
    assert parsed["authors"] == ["Jane Q Doe"]
    assert parsed["author_last_names"] == ["Doe"]
    assert parsed["author_first_initials"] == ["J"]
    assert parsed["author_middle_initials"] == ["Q"]
    assert parsed["year"] == "2019"
    assert parsed["title"] == "Some title"
    assert parsed["journal"] == "Journal of X"
    assert (parsed["volume"], parsed["issue"], parsed["pages"]) == ("4", "2", "10-20")
    assert parsed["doi"] == ""


def test_parse_reference_doi_and_url():
    parsed = parse_reference(
        "John Smith (2020). Deep learning for OCR. Pattern Recognition, 12(3), 45-67. "
        "https://doi.org/10.1016/j.patcog.2020.01"
    )
    assert parsed["doi"] == "10.1016/j.patcog.2020.01"
    assert parsed["url"] == "https://doi.org/10.1016/j.patcog.2020.01"


def test_parse_reference_rejects_noise():
    with pytest.raises(ReferenceParseError):
        parse_reference("just some words")


def test_parsed_fields_drop_unknown_year():
    fields = parsed_to_citation_fields({"title": "T", "authors": ["A B"], "year": "n.d."}, "book")
    assert fields["year"] == ""
    assert fields["type"] == "book"
    assert fields["doi"] is None
    assert fields["text"] == "T"
