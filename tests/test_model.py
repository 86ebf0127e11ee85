import pytest

from wikibib.core.dates import DateValue
from wikibib.core.model import CitationRecord, CitationType, PersonalName
from wikibib.core.names import format_name, format_name_list, parse_name, parse_name_list


def test_citation_type_from_string_is_tolerant() -> None:
    assert CitationType.from_string("Article-Journal") is CitationType.ARTICLE_JOURNAL
    assert CitationType.from_string("legal-case") is CitationType.LEGAL_CASE
    assert CitationType.from_string("motion_picture") is CitationType.MOTION_PICTURE
    assert CitationType.from_string("nope") is None
    assert CitationType.from_string("  ") is None


def test_personal_name_renderings() -> None:
    name = PersonalName(family="Beethoven", given="Ludwig", non_dropping_particle="van")

    assert name.family_first() == "van Beethoven, Ludwig"
    assert name.given_first() == "Ludwig van Beethoven"
    assert str(name) == "van Beethoven, Ludwig"


def test_personal_name_identity_ignores_blanks() -> None:
    left = PersonalName(family=" Doe ", given="").normalised()
    right = PersonalName(family="Doe")

    assert left == right
    assert left.identity() == ("Doe", "", "", "", "")
    assert PersonalName(given=" ").is_empty()


def test_record_snapshot_survives_json() -> None:
    record = CitationRecord(
        id="doe2020",
        type=CitationType.BOOK,
        title="Sample",
        author=[PersonalName(family="Doe", given="Jane")],
        issued=DateValue(((2020, 5),)),
        categories=["physics", "history"],
    )

    payload = record.to_csl()

    assert payload["type"] == "book"
    assert payload["author"] == [{"family": "Doe", "given": "Jane"}]
    assert payload["issued"] == {"date-parts": [[2020, 5]]}
    assert "editor" not in payload
    assert CitationRecord.from_json(record.to_json()) == record


def test_record_snapshot_drops_out_of_range_dates() -> None:
    record = CitationRecord.from_csl({"id": "odd", "type": "book", "issued": {"date-parts": [[2020, 13]]}})

    assert record.id == "odd"
    assert record.issued is None


def test_record_from_json_rejects_non_objects() -> None:
    with pytest.raises(ValueError):
        CitationRecord.from_json("[]")


def test_record_copy_is_independent() -> None:
    record = CitationRecord(id="a1", author=[PersonalName(family="Doe")], categories=["x"])
    clone = record.copy()

    clone.author.append(PersonalName(family="Roe"))
    clone.categories.clear()

    assert len(record.author) == 1
    assert record.categories == ["x"]


def test_parse_name_forms() -> None:
    assert parse_name("Doe, Jane") == PersonalName(family="Doe", given="Jane")
    assert parse_name("Jane Doe") == PersonalName(family="Doe", given="Jane")
    assert parse_name("van Beethoven, Ludwig") == PersonalName(
        family="Beethoven", given="Ludwig", non_dropping_particle="van"
    )
    assert parse_name("{NASA Inc}") == PersonalName(family="NASA Inc")
    assert parse_name("  ") is None


def test_parse_name_list() -> None:
    names = parse_name_list("Doe, Jane and Smith, John")

    assert [name.family for name in names] == ["Doe", "Smith"]
    assert parse_name_list(None) == []


def test_format_name_orders_particles_suffix_and_given() -> None:
    name = PersonalName(family="Beethoven", given="Ludwig", non_dropping_particle="van", suffix="Jr")

    assert format_name(name) == "van Beethoven, Jr, Ludwig"
    assert format_name_list([PersonalName(family="Doe", given="Jane"), PersonalName(family="Roe")]) == (
        "Doe, Jane and Roe"
    )
