"""Citation rendering engines.

The bibliography core only needs two operations from a renderer: one line
per record (used for the display title of entries) and a combined
bibliography. `PybtexRenderer` implements both on top of pybtex formatting
styles and its plain-text backend.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
import logging
from typing import Protocol

from pybtex.database import BibliographyData, Entry
from pybtex.exceptions import PybtexError
from pybtex.plugin import find_plugin
from pybtex.style.template import FieldIsMissing

from .errors import RenderingError
from .interchange.export import classify
from .model import CitationRecord, PersonalName
from .names import person_from_name


_log = logging.getLogger(__name__)

DEFAULT_STYLE = "unsrt"

# BibLaTeX types -> classic BibTeX types understood by pybtex styles
_BIBTEX_TYPES: dict[str, str] = {
    "article": "article",
    "book": "book",
    "periodical": "book",
    "inbook": "incollection",
    "booklet": "booklet",
    "manual": "manual",
    "proceedings": "proceedings",
    "inproceedings": "inproceedings",
    "mastersthesis": "mastersthesis",
    "phdthesis": "phdthesis",
    "techreport": "techreport",
    "unpublished": "unpublished",
}


class CitationRenderer(Protocol):
    """Formats citation records with a named style."""

    def render_entries(
        self,
        records: Sequence[CitationRecord],
        style: str,
        locale: str | None = None,
    ) -> list[str]: ...

    def render_bibliography(
        self,
        records: Sequence[CitationRecord],
        style: str,
        locale: str | None = None,
    ) -> str: ...


def _names(names: Sequence[PersonalName]) -> list:
    return [person_from_name(name) for name in names]


def bibtex_entry(record: CitationRecord) -> Entry:
    """Convert a record to the pybtex entry fed to formatting styles."""
    biblatex_type = classify(record)
    entry_type = _BIBTEX_TYPES.get(biblatex_type, "misc")
    fields: dict[str, str] = {}

    def put(name: str, value: str | None) -> None:
        if value and value.strip():
            fields[name] = value.strip()

    put("title", record.title)
    if entry_type == "article":
        put("journal", record.container_title or record.collection_title)
    elif entry_type in ("incollection", "inproceedings"):
        put("booktitle", record.container_title or record.event)
    if entry_type not in ("article",):
        put("series", record.collection_title)
    put("volume", record.volume)
    put("number", record.issue or record.number)
    put("pages", record.page)
    put("edition", record.edition)
    put("address", record.publisher_place)
    if entry_type in ("mastersthesis", "phdthesis"):
        put("school", record.publisher)
    elif entry_type == "techreport":
        put("institution", record.publisher)
    elif entry_type == "manual":
        put("organization", record.publisher)
    elif entry_type in ("misc", "booklet"):
        put("howpublished", record.publisher)
    else:
        put("publisher", record.publisher)
    if entry_type in ("techreport", "mastersthesis", "phdthesis"):
        put("type", record.genre)
    put("note", record.note)
    put("doi", record.doi)
    put("url", record.url)
    put("isbn", record.isbn)
    if record.issued is not None:
        start = record.issued.start
        put("year", str(start[0]))
        if len(start) >= 2 and 1 <= start[1] <= 12:
            put("month", calendar.month_name[start[1]])

    persons = {}
    if record.author:
        persons["author"] = _names(record.author)
    if record.editor:
        persons["editor"] = _names(record.editor)
    return Entry(entry_type, fields=fields, persons=persons)


class PybtexRenderer:
    """Render records with pybtex formatting styles and the text backend."""

    def __init__(self) -> None:
        self._backend = find_plugin("pybtex.backends", "text")()

    def _style(self, style: str):
        try:
            return find_plugin("pybtex.style.formatting", style or DEFAULT_STYLE)()
        except PybtexError as exc:
            raise RenderingError(f"Unknown rendering style '{style}': {exc}") from exc

    def _format(self, records: Sequence[CitationRecord], style: str) -> list[tuple[str, str]]:
        formatter = self._style(style)
        entries: dict[str, Entry] = {}
        for position, record in enumerate(records):
            key = record.id or f"entry-{position + 1}"
            entries[key] = bibtex_entry(record)
        bib_data = BibliographyData(entries=entries)
        try:
            ordered = formatter.sort(list(bib_data.entries.values()))
            labels = list(formatter.format_labels(ordered))
        except PybtexError as exc:
            raise RenderingError(f"Failed to label entries: {exc}") from exc

        rendered: list[tuple[str, str]] = []
        for label, entry in zip(labels, ordered):
            rendered.append((entry.key, label + "\t" + self._format_entry(formatter, label, entry, bib_data)))
        return rendered

    def _format_entry(self, formatter, label: str, entry: Entry, bib_data: BibliographyData) -> str:
        try:
            formatted = formatter.format_entry(label, entry, bib_data=bib_data)
        except FieldIsMissing as exc:
            # fall back to the permissive misc template
            _log.debug("Rendering %s as misc: %s", entry.key, exc)
            fallback = Entry("misc", fields=dict(entry.fields), persons=dict(entry.persons))
            fallback.key = entry.key
            try:
                formatted = formatter.format_entry(label, fallback, bib_data=bib_data)
            except PybtexError as inner:
                raise RenderingError(f"Failed to render '{entry.key}': {inner}") from inner
        except PybtexError as exc:
            raise RenderingError(f"Failed to render '{entry.key}': {exc}") from exc
        return formatted.text.render(self._backend).strip()

    def render_entries(
        self,
        records: Sequence[CitationRecord],
        style: str,
        locale: str | None = None,
    ) -> list[str]:
        """Return one rendered line per record, in input order."""
        by_key = {key: text.partition("\t")[2] for key, text in self._format(records, style)}
        result: list[str] = []
        for position, record in enumerate(records):
            key = record.id or f"entry-{position + 1}"
            result.append(by_key.get(key, ""))
        return result

    def render_bibliography(
        self,
        records: Sequence[CitationRecord],
        style: str,
        locale: str | None = None,
    ) -> str:
        """Return the combined bibliography, one labelled record per line."""
        lines = []
        for _key, text in self._format(records, style):
            label, _, body = text.partition("\t")
            lines.append(f"[{label}] {body}")
        return "\n".join(lines)


__all__ = ["DEFAULT_STYLE", "CitationRenderer", "PybtexRenderer", "bibtex_entry"]
