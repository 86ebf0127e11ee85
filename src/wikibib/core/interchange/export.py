"""Export citation records to BibLaTeX text.

The export runs in four steps: classify the record into a BibLaTeX entry
type, project its attributes into BibLaTeX fields (some aliased by type),
escape case-sensitive values, then serialize with sorted field names.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from ..dates import DateValue
from ..model import CitationRecord, CitationType, PersonalName


ENTRY_TYPE_FIELD = "biblatex-type"
ENTRY_ID_FIELD = "id"

THESIS_TYPES = frozenset({"thesis", "mastersthesis", "phdthesis"})

_FIXED_TYPES: dict[CitationType, str] = {
    CitationType.ARTICLE_JOURNAL: "article",
    CitationType.ARTICLE_MAGAZINE: "article",
    CitationType.ARTICLE_NEWSPAPER: "article",
    CitationType.BROADCAST: "performance",
    CitationType.CHAPTER: "inbook",
    CitationType.BILL: "misc",
    CitationType.DATASET: "misc",
    CitationType.ENTRY: "misc",
    CitationType.ENTRY_DICTIONARY: "misc",
    CitationType.ENTRY_ENCYCLOPEDIA: "misc",
    CitationType.MAP: "misc",
    CitationType.FIGURE: "image",
    CitationType.GRAPHIC: "image",
    CitationType.LEGAL_CASE: "commentary",
    CitationType.LEGISLATION: "legislation",
    CitationType.MOTION_PICTURE: "movie",
    CitationType.SPEECH: "music",
    CitationType.SONG: "music",
    CitationType.MUSICAL_SCORE: "music",
    CitationType.PAMPHLET: "booklet",
    CitationType.PAPER_CONFERENCE: "inproceedings",
    CitationType.PATENT: "patent",
    CitationType.PERSONAL_COMMUNICATION: "letter",
    CitationType.REPORT: "techreport",
    CitationType.REVIEW: "review",
    CitationType.REVIEW_BOOK: "review",
    CitationType.POST: "online",
    CitationType.POST_WEBLOG: "online",
    CitationType.WEBPAGE: "online",
}


def _genre(record: CitationRecord) -> str:
    return (record.genre or "").strip()


def classify(record: CitationRecord) -> str:
    """Return the BibLaTeX entry type of a record."""
    category = record.type
    genre = _genre(record)

    if category is CitationType.ARTICLE:
        return {"software": "software", "unpublished": "unpublished"}.get(genre, "misc")

    if category in (CitationType.BOOK, CitationType.MANUSCRIPT):
        entry_type = "book"
        if record.container_title:
            entry_type = "periodical"
        if genre == "manual":
            entry_type = "manual"
        if record.event or record.event_place or record.event_date is not None:
            entry_type = "proceedings"
        return entry_type

    if category is CitationType.THESIS:
        return {"master's thesis": "mastersthesis", "phd thesis": "phdthesis"}.get(genre.lower(), "thesis")

    if category is CitationType.TREATY:
        return "standard" if genre.lower() == "standard" else "legal"

    if category is None:
        return "misc"
    return _FIXED_TYPES.get(category, "misc")


def escape_case(text: str) -> str:
    """Brace every uppercase letter so BibTeX keeps its case."""
    return "".join(f"{{{char}}}" if char.isupper() else char for char in text)


def escape_case_and_commas(text: str) -> str:
    """Brace every uppercase letter and every comma."""
    return "".join(f"{{{char}}}" if char.isupper() or char == "," else char for char in text)


def format_names(names: Sequence[PersonalName]) -> str:
    """Serialize names as `von Family, Suffix, Given` groups joined by `and`."""
    groups: list[str] = []
    for name in names:
        family = " ".join(
            escape_case_and_commas(part)
            for part in (
                name.dropping_particle,
                name.non_dropping_particle,
                name.family or name.literal,
            )
            if part
        )
        if not family and not name.given:
            continue
        segments = [family]
        if name.suffix:
            segments.append(escape_case_and_commas(name.suffix))
        if name.given:
            segments.append(escape_case_and_commas(name.given))
        groups.append(", ".join(segments))
    return " and ".join(groups)


class _FieldSink:
    """Collects non-blank output fields."""

    def __init__(self) -> None:
        self.fields: dict[str, str] = {}

    def add(self, name: str, value: str | None, escape: Callable[[str], str] | None = None) -> None:
        if value is None or not value.strip():
            return
        self.fields[name] = escape(value) if escape is not None else value

    def add_escaped(self, name: str, value: str | None) -> None:
        self.add(name, value, escape_case)

    def add_names(self, name: str, names: Sequence[PersonalName]) -> None:
        if names:
            self.add(name, format_names(names))

    def add_date(self, name: str, value: DateValue | None) -> None:
        if value is not None:
            self.fields[name] = value.to_string()


def _publisher_field(entry_type: str) -> str:
    if entry_type in ("booklet", "misc"):
        return "howpublished"
    if entry_type in THESIS_TYPES:
        return "school"
    if entry_type in ("report", "techreport"):
        return "institution"
    if entry_type in ("online", "manual"):
        return "organization"
    return "published"


_BOOKTITLE_ONLY_TYPES = frozenset(
    {
        "software",
        "misc",
        "legal",
        "standard",
        "legislation",
        "movie",
        "music",
        "commentary",
        "image",
        "letter",
        "performance",
    }
)


def _add_container_fields(sink: _FieldSink, entry_type: str, record: CitationRecord) -> None:
    if entry_type == "article":
        sink.add_escaped("journaltitle", record.collection_title)
        sink.add_escaped("issuetitle", record.container_title)
    elif entry_type == "inbook":
        sink.add_names("bookauthor", record.container_author)
        sink.add_escaped("booktitle", record.container_title)
    elif entry_type == "patent":
        sink.add_escaped("holder", record.publisher)
    elif entry_type == "periodical":
        sink.add_escaped("issuetitle", record.container_title)
    elif entry_type in ("proceedings", "inproceedings"):
        booktitle = record.event if entry_type == "proceedings" else record.container_title
        sink.add_escaped("booktitle", booktitle)
        sink.add_escaped("eventtitle", record.event)
        sink.add_escaped("venue", record.event_place)
        sink.add_date("eventdate", record.event_date)
    elif entry_type in _BOOKTITLE_ONLY_TYPES:
        sink.add_escaped("booktitle", record.container_title)
    elif entry_type == "review":
        sink.add_escaped("journaltitle", record.collection_title)
        sink.add_escaped("issuetitle", record.container_title)
        sink.add_escaped("booktitle", record.container_title)


def _add_issued(sink: _FieldSink, issued: DateValue | None) -> None:
    if issued is None:
        return
    sink.add_date("date", issued)
    start = issued.start
    end = issued.end
    year = str(start[0]) if end is None else f"{start[0]}/{end[0]}"
    sink.add("year", year)
    if len(start) >= 2:
        sink.add("month", str(start[1]))
    if len(start) >= 3:
        sink.add("day", str(start[2]))


def build_fields(record: CitationRecord) -> dict[str, str]:
    """Project a record onto BibLaTeX fields, including the type and id pseudo-fields."""
    entry_type = classify(record)
    sink = _FieldSink()
    sink.add(ENTRY_TYPE_FIELD, entry_type)
    sink.add(ENTRY_ID_FIELD, record.id)
    sink.add_names("author", record.author)
    sink.add_names("editor", record.editor)
    sink.add_escaped(_publisher_field(entry_type), record.publisher)
    sink.add_escaped("title", record.title)
    _add_issued(sink, record.issued)
    sink.add_names("translator", record.translator)
    sink.add_escaped("series", record.collection_title)
    sink.add("number", record.number)
    sink.add("volume", record.volume)
    sink.add("edition", record.edition)
    sink.add("volumes", record.number_of_volumes)
    sink.add_escaped("issue", record.issue)
    sink.add("isbn", record.isbn)
    sink.add("issn", record.issn)
    sink.add("pages", record.page)
    sink.add("pagetotal", record.number_of_pages)
    sink.add("type", record.genre)
    sink.add("version", record.version)
    sink.add_escaped("address", record.publisher_place)
    sink.add("status", record.status)
    sink.add("doi", record.doi)
    sink.add("url", record.url)
    sink.add_date("urldate", record.accessed)
    sink.add("language", record.language)
    sink.add_escaped("note", record.note)
    sink.add("abstract", record.abstract)
    if record.categories:
        sink.add("keywords", ", ".join(record.categories))
    _add_container_fields(sink, entry_type, record)
    return sink.fields


def serialize(fields: dict[str, str]) -> str:
    """Render projected fields as a `@type{id, ...}` block with sorted field names."""
    header = f"@{fields.get(ENTRY_TYPE_FIELD, 'misc')}{{{fields.get(ENTRY_ID_FIELD, '')}"
    lines = [header]
    for name in sorted(fields):
        if name in (ENTRY_TYPE_FIELD, ENTRY_ID_FIELD):
            continue
        lines.append(f"{name} = {{{fields[name]}}}")
    return ",\n    ".join(lines) + "\n}"


def export_record(record: CitationRecord) -> str:
    """Return the BibLaTeX rendering of one record."""
    return serialize(build_fields(record))


def export_records(records: Iterable[CitationRecord]) -> str:
    """Return the BibLaTeX rendering of several records separated by blank lines."""
    return "\n\n".join(export_record(record) for record in records)


__all__ = [
    "ENTRY_ID_FIELD",
    "ENTRY_TYPE_FIELD",
    "THESIS_TYPES",
    "build_fields",
    "classify",
    "escape_case",
    "escape_case_and_commas",
    "export_record",
    "export_records",
    "format_names",
    "serialize",
]
