"""Person documents and the find-or-create identity resolver."""

from __future__ import annotations

import json
import logging
from typing import Any

from .errors import ErrorCollector, ErrorKind, RepositoryError
from .model import PersonalName
from .names import format_name, parse_name
from .repository import (
    PERSON_CLASS,
    Address,
    Document,
    Repository,
    next_numbered_container,
)
from .text import strip_accents


_log = logging.getLogger(__name__)

PERSONS_SPACE: tuple[str, ...] = ("Bibliography", "Data", "Persons")
PERSON_PREFIX = "Person-"

_TITLE_LIMIT = 250


class Person:
    """View over the `PersonClass` object of a person document."""

    FIELD_FAMILY = "family"
    FIELD_GIVEN = "given"
    FIELD_DROPPING_PARTICLE = "dropping_particle"
    FIELD_NON_DROPPING_PARTICLE = "non_dropping_particle"
    FIELD_SUFFIX = "suffix"
    FIELD_RENDERED_FAMILY_FIRST = "rendered_family_first"
    FIELD_RENDERED_GIVEN_FIRST = "rendered_given_first"
    FIELD_SEARCH_VALUE = "search_value"
    FIELD_SNAPSHOT = "snapshot"

    _NAME_FIELDS = {
        "family": FIELD_FAMILY,
        "given": FIELD_GIVEN,
        "dropping_particle": FIELD_DROPPING_PARTICLE,
        "non_dropping_particle": FIELD_NON_DROPPING_PARTICLE,
        "suffix": FIELD_SUFFIX,
    }

    def __init__(self, document: Document) -> None:
        self.document = document
        self.values: dict[str, Any] = document.objects.setdefault(PERSON_CLASS, {})

    @property
    def address(self) -> Address:
        return self.document.address

    def _get(self, field_name: str) -> str:
        value = self.values.get(field_name)
        return str(value).strip() if value is not None else ""

    def fill_from_name(self, name: PersonalName) -> None:
        """Copy a structured name into the stored fields."""
        family = name.family or name.literal
        self.values[self.FIELD_FAMILY] = family or ""
        self.values[self.FIELD_GIVEN] = name.given or ""
        self.values[self.FIELD_DROPPING_PARTICLE] = name.dropping_particle or ""
        self.values[self.FIELD_NON_DROPPING_PARTICLE] = name.non_dropping_particle or ""
        self.values[self.FIELD_SUFFIX] = name.suffix or ""

    @property
    def name(self) -> PersonalName:
        """Return the name built from the stored fields."""
        return PersonalName(
            **{attribute: self._get(field_name) for attribute, field_name in self._NAME_FIELDS.items()}
        ).normalised()

    def snapshot(self) -> PersonalName | None:
        """Decode the serialized name, `None` when absent or malformed."""
        raw = self.values.get(self.FIELD_SNAPSHOT)
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            return None
        return PersonalName.from_csl(payload) if isinstance(payload, dict) else None

    def update(self) -> None:
        """Recompute renderings, search value and snapshot from the fields."""
        name = self.name
        family_first = name.family_first()
        self.document.title = family_first[:_TITLE_LIMIT]
        self.values[self.FIELD_RENDERED_FAMILY_FIRST] = family_first
        self.values[self.FIELD_RENDERED_GIVEN_FIRST] = name.given_first()
        self.values[self.FIELD_SEARCH_VALUE] = strip_accents(family_first)
        self.values[self.FIELD_SNAPSHOT] = json.dumps(name.to_csl(), ensure_ascii=False, sort_keys=True)


def is_person_document(document: Document) -> bool:
    return document.has_object(PERSON_CLASS)


class PersonResolver:
    """Resolve person references and deduplicate names by exact identity.

    Implements the name resolution used by the stored entry fields: entries
    reference persons by the local address of their document.
    """

    def __init__(
        self,
        repository: Repository,
        partition: str,
        errors: ErrorCollector,
        *,
        create: bool = True,
    ) -> None:
        self.repository = repository
        self.partition = partition
        self.errors = errors
        self.create_missing = create
        self._names: dict[Address, PersonalName | None] = {}
        self._addresses: dict[tuple[str, ...], Address] = {}

    def parse_reference(self, reference: str) -> Address | None:
        """Return the person address a token refers to, or `None` for a literal name."""
        try:
            address = Address.parse(reference, self.partition)
        except ValueError:
            return None
        if address.spaces[: len(PERSONS_SPACE)] != PERSONS_SPACE:
            return None
        return address

    def load(self, address: Address) -> Person | None:
        try:
            document = self.repository.get(address)
        except RepositoryError as exc:
            _log.warning("Failed to read person %s: %s", address, exc)
            self.errors.add(ErrorKind.GET_DOCUMENT, str(address))
            return None
        if document is None or not is_person_document(document):
            return None
        return Person(document)

    def find(self, name: PersonalName) -> Address | None:
        """Return the person whose five name components match exactly."""
        identity = name.normalised().identity()
        cached = self._addresses.get(identity)
        if cached is not None:
            return cached

        def matches(document: Document) -> bool:
            return is_person_document(document) and Person(document).name.identity() == identity

        try:
            found = self.repository.query(self.partition, matches)
        except RepositoryError as exc:
            _log.warning("Person query failed in %s: %s", self.partition, exc)
            self.errors.add(ErrorKind.QUERY, self.partition, format_name(name))
            return None
        if not found:
            return None
        if len(found) > 1:
            _log.warning(
                "Several persons match '%s' in %s, using %s.", format_name(name), self.partition, found[0]
            )
        self._addresses[identity] = found[0]
        return found[0]

    def create(self, name: PersonalName) -> Address | None:
        """Create a new person document for the name."""
        address = next_numbered_container(self.repository, self.partition, PERSONS_SPACE, PERSON_PREFIX)
        document = Document(address)
        person = Person(document)
        person.fill_from_name(name)
        person.update()
        try:
            self.repository.save(document)
        except RepositoryError as exc:
            _log.warning("Failed to save person %s: %s", address, exc)
            self.errors.add(ErrorKind.SAVE_DOCUMENT, str(address))
            return None
        _log.debug("Created person %s for '%s'.", address, format_name(name))
        self._addresses[name.normalised().identity()] = address
        self._names[address] = person.name
        return address

    def find_or_create(self, name: PersonalName) -> Address | None:
        address = self.find(name)
        if address is None and self.create_missing:
            address = self.create(name)
        return address

    def name_for(self, reference: str) -> PersonalName | None:
        address = self.parse_reference(reference)
        if address is None:
            name = parse_name(reference)
            if name is None:
                self.errors.add(ErrorKind.PERSON_NOT_FOUND, reference)
                return None
            if self.create_missing and self.find_or_create(name) is None:
                self.errors.add(ErrorKind.GET_OR_ADD_PERSON, reference)
            return name
        if address not in self._names:
            person = self.load(address)
            self._names[address] = (person.snapshot() or person.name) if person is not None else None
        name = self._names[address]
        if name is None:
            self.errors.add(ErrorKind.PERSON_NOT_FOUND, reference)
        return name

    def reference_for(self, name: PersonalName) -> str | None:
        address = self.find_or_create(name)
        return address.local() if address is not None else None


__all__ = [
    "PERSONS_SPACE",
    "PERSON_PREFIX",
    "Person",
    "PersonResolver",
    "is_person_document",
]
