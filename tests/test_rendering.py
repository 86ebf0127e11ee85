import pytest

from wikibib.core.dates import DateValue
from wikibib.core.errors import RenderingError
from wikibib.core.model import CitationRecord, CitationType, PersonalName
from wikibib.core.rendering import PybtexRenderer, bibtex_entry
from wikibib.core.repository import Address
from wikibib.core.text import SortableAddress, parse_flag, strip_accents


def _article(key: str, title: str) -> CitationRecord:
    return CitationRecord(
        id=key,
        type=CitationType.ARTICLE_JOURNAL,
        title=title,
        container_title="Journal",
        author=[PersonalName(family="Doe", given="Jane")],
        issued=DateValue(((2020,),)),
    )


def test_bibtex_entry_maps_types_and_fields() -> None:
    entry = bibtex_entry(_article("doe2020", "Alpha"))
    thesis = bibtex_entry(CitationRecord(id="t1", type=CitationType.THESIS, genre="PhD thesis", publisher="MIT"))

    assert entry.type == "article"
    assert entry.fields["journal"] == "Journal"
    assert entry.fields["year"] == "2020"
    assert [str(person) for person in entry.persons["author"]] == ["Doe, Jane"]
    assert thesis.type == "phdthesis"
    assert thesis.fields["school"] == "MIT"


def test_bibtex_entry_ignores_out_of_range_months() -> None:
    record = CitationRecord(id="odd", type=CitationType.BOOK, title="Odd", issued=DateValue(((2020, 13),)))

    entry = bibtex_entry(record)

    assert entry.fields["year"] == "2020"
    assert "month" not in entry.fields


def test_render_entries_keeps_input_order() -> None:
    renderer = PybtexRenderer()

    lines = renderer.render_entries([_article("b1", "Beta"), _article("a1", "Alpha")], "unsrt")

    assert len(lines) == 2
    assert "Beta" in lines[0]
    assert "Alpha" in lines[1]
    assert "Doe" in lines[0]


def test_render_bibliography_labels_each_record() -> None:
    text = PybtexRenderer().render_bibliography([_article("b1", "Beta"), _article("a1", "Alpha")], "unsrt")

    lines = text.splitlines()
    assert lines[0].startswith("[1] ")
    assert lines[1].startswith("[2] ")
    assert "Beta" in lines[0]


def test_incomplete_records_fall_back_to_misc() -> None:
    record = CitationRecord(id="bare", type=CitationType.ARTICLE_JOURNAL, title="Lonely")

    assert "Lonely" in PybtexRenderer().render_entries([record], "unsrt")[0]


def test_unknown_style_raises() -> None:
    with pytest.raises(RenderingError):
        PybtexRenderer().render_entries([_article("a1", "Alpha")], "no-such-style")


def test_sortable_address_orders_accent_and_case_insensitively() -> None:
    items = [
        SortableAddress(description, Address.parse(f"wiki:Entries.E{position}"))
        for position, description in enumerate(["Zeta", "émile", "alpha", "Alpha"])
    ]

    assert [item.description for item in sorted(items)] == ["Alpha", "alpha", "émile", "Zeta"]


def test_text_helpers() -> None:
    assert strip_accents("Émile Zola") == "Emile Zola"
    assert parse_flag("Yes")
    assert parse_flag(1)
    assert not parse_flag("0")
    assert not parse_flag(None)
