"""Bibliography service: the request-scoped entry point of the core.

A `BibliographyService` is bound to a repository, a current partition and an
`ErrorCollector`. Every document write goes through `save`, which runs the
pipeline keeping derived data consistent:

before persisting
: person documents recompute their renderings, entry documents are
  validated (rejections raise `EntryValidationError`) then recompute their
  snapshot, display line and BibLaTeX export, index documents are marked
  expired, and a new document placed in an indexed subtree receives the next
  sibling order.

after persisting
: saving a new document expires the nearest index. Deleting a document does
  the same.

Content edits expire the index through the local citation collector.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging

from .config import BibliographyConfiguration, Scope, resolve_default
from .entries import ENTRIES_SPACE, ENTRY_PREFIX, Entry, find_entries, is_entry_document, validate_entry
from .errors import (
    EntryValidationError,
    ErrorCollector,
    ErrorKind,
    PersonInUseError,
    RenderingError,
    RepositoryError,
    WikibibError,
)
from .fields import STORE_NAME_FIELDS, FieldContext, dedupe
from .index import Index
from .interchange.export import export_records
from .interchange.importer import import_records
from .local_index import LocalCitationCollector, expire_nearest_index, index_lock, scan_citations
from .model import CitationRecord, PersonalName
from .persons import Person, PersonResolver, is_person_document
from .rendering import CitationRenderer, PybtexRenderer
from .repository import (
    INDEX_CLASS,
    LOCAL_INDEX_CLASS,
    ORDER_CLASS,
    Address,
    Document,
    Repository,
    next_numbered_container,
)
from .text import SortableAddress
from .tree import NodeStore


_log = logging.getLogger(__name__)


class BibliographyService:
    """Operations on persons, entries and indexes of one partition."""

    def __init__(
        self,
        repository: Repository,
        partition: str,
        *,
        errors: ErrorCollector | None = None,
        renderer: CitationRenderer | None = None,
    ) -> None:
        self.repository = repository
        self.partition = partition
        self.errors = errors if errors is not None else ErrorCollector()
        self.renderer = renderer if renderer is not None else PybtexRenderer()

    # helpers

    def person_resolver(self, partition: str | None = None, *, create: bool = True) -> PersonResolver:
        return PersonResolver(self.repository, partition or self.partition, self.errors, create=create)

    def field_context(self, partition: str | None = None, *, create: bool = True) -> FieldContext:
        return FieldContext(self.errors, self.person_resolver(partition, create=create))

    def default_configuration(self, partition: str | None = None) -> BibliographyConfiguration:
        return resolve_default(self.repository, partition or self.partition)

    def get_document(self, address: Address) -> Document | None:
        try:
            return self.repository.get(address)
        except RepositoryError as exc:
            _log.warning("Failed to read %s: %s", address, exc)
            self.errors.add(ErrorKind.GET_DOCUMENT, str(address))
            return None

    # save pipeline

    def save(self, document: Document) -> None:
        """Persist a document through the save pipeline.

        Raises `EntryValidationError` when an entry is rejected; the error is
        also recorded on the collector.
        """
        was_new = document.is_new
        self._before_save(document)
        if document.has_object(INDEX_CLASS):
            # index documents are also written by recomputation
            with index_lock():
                self.repository.save(document)
        else:
            self.repository.save(document)
        if was_new:
            expire_nearest_index(NodeStore(self.repository).node(document.address), self.errors)

    def _before_save(self, document: Document) -> None:
        if document.has_object(INDEX_CLASS):
            document.get_object(INDEX_CLASS, create=True)[Index.FIELD_EXPIRED] = True
        if is_person_document(document):
            Person(document).update()
        if is_entry_document(document):
            try:
                validate_entry(document, self.repository)
            except EntryValidationError as exc:
                self.errors.extend([exc.error])
                raise
            entry_style = self.default_configuration(document.address.partition).entry_style
            Entry(document).update(self.field_context(document.address.partition), self.renderer, entry_style)
        if document.is_new and not document.has_object(ORDER_CLASS):
            self._assign_order(document)

    def _assign_order(self, document: Document) -> None:
        parent = NodeStore(self.repository).node(document.address).parent
        if parent is None or not parent.root.is_index:
            return
        document.get_object(ORDER_CLASS, create=True)["order"] = parent.next_child_order()

    def delete(self, address: Address) -> bool:
        """Delete a document, refusing persons still referenced by entries."""
        document = self.get_document(address)
        if document is None:
            return False
        if is_person_document(document):
            referencing = self.entries_referencing_person(address)
            if referencing:
                raise PersonInUseError(
                    f"Person {address} is referenced by {', '.join(str(item) for item in referencing)}."
                )
        deleted = self.repository.delete(address)
        if deleted:
            expire_nearest_index(NodeStore(self.repository).node(address), self.errors)
        return deleted

    # content

    def save_content(
        self,
        address: Address,
        content: str,
        *,
        title: str | None = None,
        bibliography_page: bool | None = None,
    ) -> list[str]:
        """Store page content and refresh the keys it cites; return those keys."""
        document = self.get_document(address) or Document(address)
        document.content = content
        if title is not None:
            document.title = title
        self.save(document)
        keys = scan_citations(content)
        node = NodeStore(self.repository).node(address)
        collector = LocalCitationCollector(node, self.errors)
        collector.set_keys(keys)
        if bibliography_page is not None:
            collector.set_bibliography_page(bibliography_page)
        collector.save()
        return keys

    def set_bibliography_page(self, address: Address, flag: bool = True) -> bool:
        collector = LocalCitationCollector(NodeStore(self.repository).node(address), self.errors)
        collector.set_bibliography_page(flag)
        return collector.save()

    # entries

    def find_entry(self, key: str, partition: str | None = None) -> Address | None:
        """Return the entry with the given id, first match when several exist."""
        partition = partition or self.partition
        try:
            found = find_entries(self.repository, partition, key)
        except RepositoryError as exc:
            _log.warning("Failed to search '%s' in %s: %s", key, partition, exc)
            self.errors.add(ErrorKind.QUERY, partition, key)
            return None
        if len(found) > 1:
            _log.warning("Several entries use id '%s' in %s, using %s.", key, partition, found[0])
        return found[0] if found else None

    def find_entry_in_sources(self, key: str, sources: Sequence[str] | None = None) -> Address | None:
        """Search the current partition first, then the configured extra sources."""
        if sources is None:
            sources = dedupe([self.partition, *self.default_configuration().extra_sources])
        for partition in sources:
            address = self.find_entry(key, partition)
            if address is not None:
                return address
        return None

    def entry(self, key: str, partition: str | None = None) -> Entry | None:
        address = self.find_entry(key, partition)
        if address is None:
            return None
        document = self.get_document(address)
        return Entry(document) if document is not None else None

    def save_record(self, record: CitationRecord, *, overwrite: bool = False) -> Address:
        """Store a citation record as an entry document.

        A new entry document is created unless `overwrite` is set and an entry
        with the same id exists, in which case that entry is updated.
        """
        document: Document | None = None
        if overwrite and record.id:
            existing = self.find_entry(record.id)
            if existing is not None:
                document = self.get_document(existing)
        if document is None:
            address = next_numbered_container(self.repository, self.partition, ENTRIES_SPACE, ENTRY_PREFIX)
            document = Document(address)
        entry = Entry(document)
        entry.fill_from_record(record, self.field_context())
        self.save(document)
        return document.address

    def import_bibtex(self, text: str, *, overwrite: bool = False) -> list[Address]:
        """Import BibTeX/BibLaTeX text; rejected records are reported, not raised."""
        saved: list[Address] = []
        for record in import_records(text, self.errors):
            try:
                saved.append(self.save_record(record, overwrite=overwrite))
            except EntryValidationError as exc:
                _log.warning("Skipping '%s': %s", record.id, exc)
            except RepositoryError as exc:
                _log.warning("Failed to save '%s': %s", record.id, exc)
                self.errors.add(ErrorKind.SAVE_DOCUMENT, record.id or "")
        return saved

    def entry_records(self, addresses: Iterable[Address]) -> list[CitationRecord]:
        records: list[CitationRecord] = []
        for address in addresses:
            document = self.get_document(address)
            if document is None or not is_entry_document(document):
                continue
            entry = Entry(document)
            record = entry.record(self.errors)
            if record is None:
                record = entry.decode(self.field_context(address.partition, create=False))
            records.append(record)
        return records

    def export_bibtex(self, keys: Sequence[str] | None = None) -> str:
        """Export the given entry ids, or every entry of the partition, to BibLaTeX."""
        if keys is None:
            addresses = [item.address for item in self.list_entries()]
        else:
            addresses = [address for address in (self.find_entry(key) for key in keys) if address is not None]
        return export_records(self.entry_records(addresses))

    def list_entries(self, partitions: Sequence[str] | None = None) -> list[SortableAddress]:
        """List entries of the partitions, sorted by display title."""
        results: list[SortableAddress] = []
        for partition in partitions or [self.partition]:
            try:
                addresses = self.repository.query(partition, is_entry_document)
            except RepositoryError as exc:
                _log.warning("Failed to list entries of %s: %s", partition, exc)
                self.errors.add(ErrorKind.QUERY, partition)
                continue
            for address in addresses:
                document = self.get_document(address)
                if document is not None:
                    results.append(SortableAddress(document.title or Entry(document).id, address))
        return sorted(results)

    def refresh_entries(self, partition: str | None = None) -> int:
        """Recompute derived fields of every entry, e.g. after a style change."""
        partition = partition or self.partition
        refreshed = 0
        for item in self.list_entries([partition]):
            document = self.get_document(item.address)
            if document is None:
                continue
            try:
                self.save(document)
            except WikibibError as exc:
                _log.warning("Failed to refresh %s: %s", item.address, exc)
                continue
            refreshed += 1
        return refreshed

    # persons

    def find_person(self, name: PersonalName, partition: str | None = None) -> Address | None:
        return self.person_resolver(partition, create=False).find(name)

    def find_or_create_person(self, name: PersonalName) -> Address | None:
        return self.person_resolver().find_or_create(name)

    def entries_referencing_person(self, person: Address) -> list[Address]:
        """Return the entries of the person's partition that reference it."""
        reference = person.local()

        def references(document: Document) -> bool:
            if not is_entry_document(document):
                return False
            values = Entry(document).values
            return any(
                reference in str(values.get(field_name) or "").split("|") for field_name in STORE_NAME_FIELDS
            )

        try:
            return self.repository.query(person.partition, references)
        except RepositoryError as exc:
            _log.warning("Failed to search references to %s: %s", person, exc)
            self.errors.add(ErrorKind.QUERY, person.partition, str(person))
            return []

    def merge_persons(self, source: Address, destination: Address) -> list[Address]:
        """Replace every reference to `source` by `destination`; return updated entries."""
        target = self.get_document(destination)
        if target is None or not is_person_document(target):
            raise WikibibError(f"{destination} is not a person.")
        if source == destination:
            return []
        old, new = source.local(), destination.local()
        updated: list[Address] = []
        for address in self.entries_referencing_person(source):
            document = self.get_document(address)
            if document is None:
                continue
            values = Entry(document).values
            for field_name in STORE_NAME_FIELDS:
                tokens = str(values.get(field_name) or "").split("|")
                if old in tokens:
                    values[field_name] = "|".join(dedupe(new if token == old else token for token in tokens))
            self.save(document)
            updated.append(address)
        _log.info("Merged %s into %s (%d entries).", source, destination, len(updated))
        return updated

    # indexes

    def create_index(self, address: Address) -> Index:
        """Attach an index to a container document."""
        if not address.is_container:
            raise WikibibError(f"An index must be attached to a container, not {address}.")
        document = self.get_document(address) or Document(address)
        document.get_object(INDEX_CLASS, create=True)
        self.save(document)
        return Index(self.repository, address, self.errors)

    def index_for(self, address: Address) -> Index | None:
        """Return the index owning a document."""
        return Index.for_node(NodeStore(self.repository).node(address), self.errors)

    def index_records(self, index: Index) -> list[CitationRecord]:
        """Return the records an index renders according to its scope."""
        configuration = index.configuration
        if configuration.scope is Scope.ALL:
            visible = self.list_entries(index.sources())
            return self.entry_records(item.address for item in visible)
        return index.records

    def bibliography(self, index: Index) -> str:
        """Render the bibliography of an index; failures are recorded, not raised."""
        records = self.index_records(index)
        if not records:
            return ""
        try:
            return self.renderer.render_bibliography(records, index.configuration.style)
        except RenderingError as exc:
            _log.warning("Failed to render bibliography of %s: %s", index.address, exc)
            self.errors.add(ErrorKind.RENDER, str(index.address), str(exc))
            return ""

    def documents_citing(self, key: str) -> dict[str, list[Address]]:
        """Return, per partition, the documents whose citations include `key`."""
        results: dict[str, list[Address]] = {}
        for partition in self.repository.partitions():

            def cites(document: Document) -> bool:
                values = document.get_object(LOCAL_INDEX_CLASS)
                return bool(values) and key in str(values.get("keys") or "").split("|")

            try:
                found = self.repository.query(partition, cites)
            except RepositoryError as exc:
                _log.warning("Failed to search citations in %s: %s", partition, exc)
                self.errors.add(ErrorKind.QUERY, partition, key)
                continue
            if found:
                results[partition] = found
        return results


__all__ = ["BibliographyService"]
