"""Import BibTeX/BibLaTeX text into citation records."""

from __future__ import annotations

import logging
from typing import Any

from pybtex.database import BibliographyData, Entry
from pybtex.database.input import bibtex
from pybtex.exceptions import PybtexError

from ..errors import ErrorCollector, ErrorKind
from ..fields import IMPORT_FIELDS, FieldContext, decode_record
from ..model import CitationRecord, CitationType


_log = logging.getLogger(__name__)


# BibTeX/BibLaTeX entry type -> (category, genre hint)
ENTRY_TYPES: dict[str, tuple[CitationType, str | None]] = {
    "article": (CitationType.ARTICLE_JOURNAL, None),
    "book": (CitationType.BOOK, None),
    "mvbook": (CitationType.BOOK, None),
    "collection": (CitationType.BOOK, None),
    "mvcollection": (CitationType.BOOK, None),
    "reference": (CitationType.BOOK, None),
    "mvreference": (CitationType.BOOK, None),
    "periodical": (CitationType.BOOK, None),
    "proceedings": (CitationType.BOOK, None),
    "mvproceedings": (CitationType.BOOK, None),
    "manual": (CitationType.BOOK, "manual"),
    "inbook": (CitationType.CHAPTER, None),
    "bookinbook": (CitationType.CHAPTER, None),
    "suppbook": (CitationType.CHAPTER, None),
    "incollection": (CitationType.CHAPTER, None),
    "suppcollection": (CitationType.CHAPTER, None),
    "inreference": (CitationType.ENTRY_ENCYCLOPEDIA, None),
    "booklet": (CitationType.PAMPHLET, None),
    "inproceedings": (CitationType.PAPER_CONFERENCE, None),
    "conference": (CitationType.PAPER_CONFERENCE, None),
    "misc": (CitationType.ARTICLE, None),
    "software": (CitationType.ARTICLE, "software"),
    "unpublished": (CitationType.ARTICLE, "unpublished"),
    "online": (CitationType.WEBPAGE, None),
    "electronic": (CitationType.WEBPAGE, None),
    "www": (CitationType.WEBPAGE, None),
    "patent": (CitationType.PATENT, None),
    "report": (CitationType.REPORT, None),
    "techreport": (CitationType.REPORT, None),
    "thesis": (CitationType.THESIS, None),
    "mastersthesis": (CitationType.THESIS, "Master's thesis"),
    "phdthesis": (CitationType.THESIS, "PhD thesis"),
    "dataset": (CitationType.DATASET, None),
    "letter": (CitationType.PERSONAL_COMMUNICATION, None),
    "movie": (CitationType.MOTION_PICTURE, None),
    "video": (CitationType.MOTION_PICTURE, None),
    "music": (CitationType.SONG, None),
    "audio": (CitationType.SONG, None),
    "image": (CitationType.GRAPHIC, None),
    "artwork": (CitationType.GRAPHIC, None),
    "legislation": (CitationType.LEGISLATION, None),
    "legal": (CitationType.TREATY, None),
    "standard": (CitationType.TREATY, "standard"),
    "commentary": (CitationType.LEGAL_CASE, None),
    "jurisdiction": (CitationType.LEGAL_CASE, None),
    "review": (CitationType.REVIEW, None),
    "performance": (CitationType.BROADCAST, None),
}


def flatten_entry(entry: Entry) -> dict[str, Any]:
    """Return the entry fields keyed by lowercase name, persons joined by `and`."""
    flat: dict[str, Any] = {str(name).lower(): value for name, value in entry.fields.items()}
    for role, persons in entry.persons.items():
        flat[str(role).lower()] = " and ".join(str(person) for person in persons)
    return flat


def record_from_entry(key: str, entry: Entry, errors: ErrorCollector) -> CitationRecord:
    """Build a citation record from one parsed entry."""
    entry_type = entry.type.lower()
    category, genre_hint = ENTRY_TYPES.get(entry_type, (None, None))
    if category is None:
        errors.add(ErrorKind.UNSUPPORTED_ENTRY_TYPE, key, entry_type)
        _log.warning("Unsupported entry type '%s' for '%s', importing as misc.", entry_type, key)
        category = CitationType.ARTICLE

    record = CitationRecord(id=key, type=category)
    decode_record(flatten_entry(entry), IMPORT_FIELDS, FieldContext(errors), target=record)
    if record.genre is None and genre_hint is not None:
        record.genre = genre_hint
    return record


def parse_bibliography(text: str, errors: ErrorCollector) -> BibliographyData | None:
    """Parse BibTeX text, recording a `parse-bibtex` error on failure."""
    parser = bibtex.Parser()
    try:
        return parser.parse_string(text)
    except PybtexError as exc:
        _log.warning("Failed to parse bibliography: %s", exc)
        errors.add(ErrorKind.PARSE_BIBTEX, str(exc))
        return None


def import_records(text: str, errors: ErrorCollector) -> list[CitationRecord]:
    """Parse BibTeX/BibLaTeX text into citation records in source order."""
    data = parse_bibliography(text, errors)
    if data is None:
        return []
    return [record_from_entry(key, entry, errors) for key, entry in data.entries.items()]


__all__ = [
    "ENTRY_TYPES",
    "flatten_entry",
    "import_records",
    "parse_bibliography",
    "record_from_entry",
]
