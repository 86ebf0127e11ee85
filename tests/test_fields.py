from wikibib.core.dates import DateValue
from wikibib.core.errors import ErrorCollector, ErrorKind
from wikibib.core.fields import (
    IMPORT_FIELDS,
    STORE_FIELDS,
    STORE_NAME_FIELDS,
    FieldContext,
    decode_record,
    dedupe,
    encode_record,
    string_field,
)
from wikibib.core.model import CitationRecord, CitationType, PersonalName


def _decode_import(flat: dict, category: CitationType) -> CitationRecord:
    target = CitationRecord(type=category)
    return decode_record(flat, IMPORT_FIELDS, FieldContext(ErrorCollector()), target=target)


def test_merge_fields_take_first_non_blank() -> None:
    provider = string_field("container_title", "journaltitle", "journal", "booktitle")

    assert provider.merged({"journaltitle": " ", "journal": "Nature", "booktitle": "Proc."}) == "Nature"
    assert provider.merged({}) is None


def test_container_title_prefers_journal_spellings() -> None:
    record = _decode_import({"journal": "J", "booktitle": "B"}, CitationType.ARTICLE_JOURNAL)

    assert record.container_title == "J"


def test_number_feeds_issue_for_periodical_articles_only() -> None:
    article = _decode_import({"number": "4"}, CitationType.ARTICLE_JOURNAL)
    book = _decode_import({"number": "4"}, CitationType.BOOK)

    assert (article.issue, article.number) == ("4", None)
    assert (book.issue, book.number) == (None, "4")


def test_howpublished_is_a_publisher_fallback() -> None:
    misc = _decode_import({"howpublished": "Web"}, CitationType.ARTICLE)
    explicit = _decode_import({"publisher": "ACME", "howpublished": "Web"}, CitationType.ARTICLE)
    book = _decode_import({"howpublished": "Web"}, CitationType.BOOK)

    assert misc.publisher == "Web"
    assert explicit.publisher == "ACME"
    assert book.publisher is None


def test_issued_falls_back_to_year_month_day() -> None:
    parts = _decode_import({"year": "2020", "month": "mar"}, CitationType.BOOK)
    full = _decode_import({"date": "2021-01-02", "year": "2020"}, CitationType.BOOK)

    assert parts.issued == DateValue(((2020, 3),))
    assert full.issued == DateValue(((2021, 1, 2),))


def test_import_strips_grouping_braces_and_splits_keywords() -> None:
    record = _decode_import(
        {"title": "The {TeX}book", "keywords": "typesetting, tex, typesetting"},
        CitationType.BOOK,
    )

    assert record.title == "The TeXbook"
    assert record.categories == ["typesetting", "tex"]


def test_unknown_stored_type_is_reported() -> None:
    errors = ErrorCollector()

    record = decode_record({"type": "bogus", "id": "x1"}, STORE_FIELDS, FieldContext(errors))

    assert record.type is None
    assert record.id == "x1"
    assert errors.kinds() == [ErrorKind.TYPE_FROM_STRING]


def test_store_layout_without_resolver_keeps_literal_names() -> None:
    errors = ErrorCollector()
    record = CitationRecord(
        id="doe2020",
        type=CitationType.BOOK,
        title="Sample",
        author=[PersonalName(family="Doe", given="Jane")],
        issued=DateValue(((2020,),)),
        categories=["a", "b"],
    )

    flat = encode_record(record, STORE_FIELDS, FieldContext(errors))

    assert flat["type"] == "book"
    assert flat["authors"] == "Doe, Jane"
    assert flat["editors"] == ""
    assert flat["issued"] == "2020"
    assert flat["categories"] == "a|b"
    assert decode_record(flat, STORE_FIELDS, FieldContext(errors)) == record
    assert not errors


def test_store_name_fields_cover_every_role() -> None:
    assert "authors" in STORE_NAME_FIELDS
    assert "reviewed_authors" in STORE_NAME_FIELDS
    assert "title" not in STORE_NAME_FIELDS


def test_dedupe_keeps_first_occurrence() -> None:
    assert dedupe(["b", " a", "b", "", "c", "a"]) == ["b", "a", "c"]
