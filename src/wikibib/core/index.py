"""Per-subtree citation index.

An index is attached to a container document. It caches, for the whole
subtree below it:

- the ordered list of citation keys (pre-order walk, first occurrence wins),
- the address of the node designated as bibliography output page,
- the citation records those keys resolve to,
- an `expired` flag set whenever a contributing node changes.

Recomputation happens lazily on access and is serialized by a single
process-wide lock, so readers only ever see a complete cache.
"""

from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Any

from .config import BibliographyConfiguration, resolve_for
from .entries import Entry, find_entries
from .errors import ErrorCollector, ErrorKind, RepositoryError
from .fields import FieldContext, dedupe
from .local_index import LocalCitationCollector, index_lock
from .model import CitationRecord
from .persons import PersonResolver
from .repository import INDEX_CLASS, Address, Document, Repository
from .text import parse_flag
from .tree import Node, NodeStore


_log = logging.getLogger(__name__)

_RECOMPUTE_LOCK = index_lock()


def recompute_lock() -> Lock:
    """Return the lock serializing every index recomputation."""
    return _RECOMPUTE_LOCK


class Index:
    """Aggregation cache attached to an index document."""

    FIELD_EXPIRED = "expired"
    FIELD_KEYS = "keys"
    FIELD_BIBLIOGRAPHY_PAGE = "bibliography_page"
    FIELD_ENTRIES = "entries"

    def __init__(self, repository: Repository, address: Address, errors: ErrorCollector) -> None:
        self.repository = repository
        self.address = address
        self.errors = errors

    @classmethod
    def for_node(cls, node: Node, errors: ErrorCollector) -> Index | None:
        """Return the index owning a node, if any."""
        root = node.root
        if not root.is_index:
            return None
        return cls(node.repository, root.address, errors)

    @property
    def partition(self) -> str:
        return self.address.partition

    def _document(self) -> Document | None:
        try:
            return self.repository.get(self.address)
        except RepositoryError as exc:
            _log.warning("Failed to read index %s: %s", self.address, exc)
            self.errors.add(ErrorKind.GET_DOCUMENT, str(self.address))
            return None

    def _values(self) -> dict[str, Any]:
        document = self._document()
        if document is None:
            return {}
        return document.get_object(INDEX_CLASS) or {}

    @property
    def expired(self) -> bool:
        return parse_flag(self._values().get(self.FIELD_EXPIRED))

    def expire(self) -> None:
        with _RECOMPUTE_LOCK:
            document = self._document()
            if document is None:
                return
            document.get_object(INDEX_CLASS, create=True)[self.FIELD_EXPIRED] = True
            self._save(document)

    def _save(self, document: Document) -> bool:
        try:
            self.repository.save(document)
        except RepositoryError as exc:
            _log.warning("Failed to save index %s: %s", self.address, exc)
            self.errors.add(ErrorKind.SAVE_DOCUMENT, str(self.address))
            return False
        return True

    @property
    def configuration(self) -> BibliographyConfiguration:
        return resolve_for(self.repository, self.partition, self._document())

    def sources(self) -> list[str]:
        """Partitions searched for keys: own partition first, then extra sources."""
        return dedupe([self.partition, *self.configuration.extra_sources])

    # cached values, recomputed first when expired

    @property
    def keys(self) -> list[str]:
        self.update()
        raw = self._values().get(self.FIELD_KEYS)
        return dedupe(str(raw).split("|")) if raw else []

    @property
    def bibliography_page(self) -> Address | None:
        self.update()
        raw = self._values().get(self.FIELD_BIBLIOGRAPHY_PAGE)
        if not raw:
            return None
        try:
            return Address.parse(str(raw), self.partition)
        except ValueError:
            return None

    @property
    def records(self) -> list[CitationRecord]:
        self.update()
        raw = self._values().get(self.FIELD_ENTRIES)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            _log.warning("Invalid record cache on %s: %s", self.address, exc)
            self.errors.add(ErrorKind.JSON_DECODING, str(self.address))
            return []
        return [CitationRecord.from_csl(item) for item in payload if isinstance(item, dict)]

    def update(self) -> bool:
        """Recompute the cache when expired; return whether it was recomputed."""
        if not self.expired:
            return False
        with _RECOMPUTE_LOCK:
            document = self._document()
            if document is None:
                return False
            values = document.get_object(INDEX_CLASS, create=True)
            if not parse_flag(values.get(self.FIELD_EXPIRED)):
                # another caller finished the recompute while we waited
                return False

            keys, page = self._collect()
            sources = self.sources()
            records: list[CitationRecord] = []
            for key in keys:
                record = self.resolve_key(key, sources)
                if record is not None:
                    records.append(record)

            values[self.FIELD_KEYS] = "|".join(keys)
            values[self.FIELD_BIBLIOGRAPHY_PAGE] = page.local() if page is not None else ""
            try:
                values[self.FIELD_ENTRIES] = json.dumps(
                    [record.to_csl() for record in records], ensure_ascii=False
                )
            except (TypeError, ValueError) as exc:
                _log.warning("Failed to encode record cache of %s: %s", self.address, exc)
                self.errors.add(ErrorKind.JSON_ENCODING, str(self.address))
                values[self.FIELD_ENTRIES] = "[]"
            values[self.FIELD_EXPIRED] = False
            saved = self._save(document)
        _log.debug("Index %s recomputed: %d keys, %d records.", self.address, len(keys), len(records))
        return saved

    def _collect(self) -> tuple[list[str], Address | None]:
        store = NodeStore(self.repository)
        keys: list[str] = []
        seen: set[str] = set()
        page: Address | None = None
        for node in store.node(self.address).walk():
            collector = LocalCitationCollector(node, self.errors)
            for key in collector.keys:
                if key not in seen:
                    seen.add(key)
                    keys.append(key)
            if collector.is_bibliography_page:
                if page is not None:
                    _log.warning(
                        "Several bibliography pages under %s: %s and %s, keeping the last.",
                        self.address,
                        page,
                        node.address,
                    )
                page = node.address
        return keys, page

    def resolve_key(self, key: str, sources: list[str] | None = None) -> CitationRecord | None:
        """Resolve a key in the own partition, then in each extra source."""
        for partition in sources if sources is not None else self.sources():
            try:
                found = find_entries(self.repository, partition, key)
            except RepositoryError as exc:
                _log.warning("Failed to search '%s' in %s: %s", key, partition, exc)
                self.errors.add(ErrorKind.QUERY, partition, key)
                continue
            if not found:
                continue
            if len(found) > 1:
                _log.warning("Several entries use id '%s' in %s, using %s.", key, partition, found[0])
            record = self._load_record(found[0])
            if record is not None:
                return record
        _log.debug("Citation key '%s' is unresolved for %s.", key, self.address)
        return None

    def _load_record(self, address: Address) -> CitationRecord | None:
        try:
            document = self.repository.get(address)
        except RepositoryError as exc:
            _log.warning("Failed to read entry %s: %s", address, exc)
            self.errors.add(ErrorKind.GET_DOCUMENT, str(address))
            return None
        if document is None:
            return None
        entry = Entry(document)
        record = entry.record(self.errors)
        if record is None:
            resolver = PersonResolver(self.repository, address.partition, self.errors, create=False)
            record = entry.decode(FieldContext(self.errors, resolver))
        return record


__all__ = ["Index", "recompute_lock"]
