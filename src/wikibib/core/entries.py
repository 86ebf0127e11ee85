"""Entry documents: decoding, derived fields and validation."""

from __future__ import annotations

import logging
import re
from typing import Any

from .dates import is_valid_date_text
from .errors import EntryValidationError, ErrorCollector, ErrorKind, RenderingError, RepositoryError
from .fields import STORE_DATE_FIELDS, STORE_FIELDS, FieldContext, decode_record, encode_record
from .interchange.export import export_record
from .model import CitationRecord
from .rendering import CitationRenderer
from .repository import ENTRY_CLASS, Address, Document, Repository
from .text import strip_accents


_log = logging.getLogger(__name__)

ENTRIES_SPACE: tuple[str, ...] = ("Bibliography", "Data", "Entries")
ENTRY_PREFIX = "Entry-"

ID_PATTERN = re.compile(r"^[A-Za-z0-9:_.-]{2,50}$")


class Entry:
    """View over the `EntryClass` object of an entry document."""

    FIELD_ID = "id"
    FIELD_SNAPSHOT = "snapshot"
    FIELD_RENDERED = "rendered"
    FIELD_SEARCH_VALUE = "search_value"
    FIELD_BIBLATEX = "biblatex"

    def __init__(self, document: Document) -> None:
        self.document = document
        self.values: dict[str, Any] = document.objects.setdefault(ENTRY_CLASS, {})

    @property
    def address(self) -> Address:
        return self.document.address

    @property
    def id(self) -> str:
        value = self.values.get(self.FIELD_ID)
        return str(value).strip() if value is not None else ""

    @property
    def rendered(self) -> str:
        return str(self.values.get(self.FIELD_RENDERED) or "")

    @property
    def biblatex(self) -> str:
        return str(self.values.get(self.FIELD_BIBLATEX) or "")

    def fill_from_record(self, record: CitationRecord, context: FieldContext) -> None:
        """Encode every attribute of the record into the stored fields."""
        encode_record(record, STORE_FIELDS, context, self.values)

    def decode(self, context: FieldContext) -> CitationRecord:
        """Build the citation record from the stored fields."""
        return decode_record(self.values, STORE_FIELDS, context)

    def record(self, errors: ErrorCollector | None = None) -> CitationRecord | None:
        """Return the stored snapshot without decoding individual fields."""
        raw = self.values.get(self.FIELD_SNAPSHOT)
        if not raw:
            return None
        try:
            return CitationRecord.from_json(str(raw))
        except ValueError as exc:
            _log.warning("Invalid snapshot on %s: %s", self.address, exc)
            if errors is not None:
                errors.add(ErrorKind.JSON_DECODING, str(self.address))
            return None

    def update(self, context: FieldContext, renderer: CitationRenderer, entry_style: str) -> CitationRecord | None:
        """Recompute snapshot, display title, search value and BibLaTeX export.

        Failures are recorded on the context errors and leave the fields
        computed so far in place.
        """
        try:
            record = self.decode(context)
            self.values[self.FIELD_SNAPSHOT] = record.to_json()
        except (TypeError, ValueError) as exc:
            _log.warning("Failed to build citation data for %s: %s", self.address, exc)
            context.errors.add(ErrorKind.BUILD_ITEM, str(self.address), str(exc))
            return None

        self.document.title = record.id or ""
        self.values[self.FIELD_BIBLATEX] = export_record(record)
        try:
            rendered = renderer.render_entries([record], entry_style)[0].strip()
        except RenderingError as exc:
            _log.warning("Failed to render %s: %s", self.address, exc)
            context.errors.add(ErrorKind.RENDER, str(self.address), str(exc))
            return record
        self.values[self.FIELD_RENDERED] = rendered
        self.values[self.FIELD_SEARCH_VALUE] = strip_accents(rendered)
        return record


def is_entry_document(document: Document) -> bool:
    return document.has_object(ENTRY_CLASS)


def find_entries(repository: Repository, partition: str, key: str) -> list[Address]:
    """Return the entry documents of a partition whose id is exactly `key`."""

    def matches(document: Document) -> bool:
        return is_entry_document(document) and Entry(document).id == key

    return repository.query(partition, matches)


def validate_entry(document: Document, repository: Repository) -> None:
    """Reject an entry document that may not be persisted.

    Raises `EntryValidationError` for an empty or malformed id, an id used by
    another entry of the same partition, or an unparseable date field.
    """
    entry = Entry(document)
    key = entry.id
    if not key:
        raise EntryValidationError(ErrorKind.EMPTY_ID, str(document.address))
    if not ID_PATTERN.match(key):
        raise EntryValidationError(ErrorKind.INVALID_ID_FORMAT, key)

    try:
        existing = find_entries(repository, document.address.partition, key)
    except RepositoryError as exc:
        _log.warning("Failed to check id '%s': %s", key, exc)
        existing = []
    if document.is_new and existing:
        raise EntryValidationError(ErrorKind.ID_ALREADY_EXISTS, key)
    if not document.is_new and any(address != document.address for address in existing):
        raise EntryValidationError(ErrorKind.ID_ALREADY_EXISTS, key)
    if not document.is_new:
        stored = repository.get(document.address)
        previous = Entry(stored).id if stored is not None and is_entry_document(stored) else ""
        if previous and previous != key:
            raise EntryValidationError(ErrorKind.ID_IMMUTABLE, previous, key)

    for field_name in STORE_DATE_FIELDS:
        value = entry.values.get(field_name)
        if not is_valid_date_text(None if value is None else str(value)):
            raise EntryValidationError(ErrorKind.INVALID_DATE, field_name, value)


__all__ = [
    "ENTRIES_SPACE",
    "ENTRY_PREFIX",
    "ID_PATTERN",
    "Entry",
    "find_entries",
    "is_entry_document",
    "validate_entry",
]
