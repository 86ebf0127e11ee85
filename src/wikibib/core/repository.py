"""Hierarchical document repository.

Documents are addressed by `Address(partition, spaces, name)`. A document named
`WebHome` is the *container* of its space: it is the only kind of node able to
hold children. For a container `A.B.WebHome` the children are the plain pages
of space `A.B` (`A.B.Page`) and the containers of its direct sub-spaces
(`A.B.C.WebHome`).

Documents carry typed objects, each a flat mapping of field names to scalar
values. The bibliography code only relies on the `Repository` protocol; the
in-memory implementation below backs the tests and the CLI (through YAML
snapshots).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import copy
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Protocol, runtime_checkable

import yaml

from .errors import RepositoryError


CONTAINER_NAME = "WebHome"

ENTRY_CLASS = "EntryClass"
PERSON_CLASS = "PersonClass"
INDEX_CLASS = "IndexClass"
LOCAL_INDEX_CLASS = "LocalIndexClass"
CONFIGURATION_CLASS = "ConfigurationClass"
ORDER_CLASS = "OrderClass"


@dataclass(frozen=True, slots=True, order=True)
class Address:
    """Stable address of a document inside a partition."""

    partition: str
    spaces: tuple[str, ...]
    name: str = CONTAINER_NAME

    def __post_init__(self) -> None:
        if not self.spaces:
            raise ValueError("An address needs at least one space.")
        for segment in (*self.spaces, self.name):
            if not segment or "." in segment or ":" in segment:
                raise ValueError(f"Invalid address segment: {segment!r}")

    @property
    def is_container(self) -> bool:
        return self.name == CONTAINER_NAME

    @property
    def parent(self) -> Address | None:
        """Return the container one level up, derived from the address alone."""
        if not self.is_container:
            return Address(self.partition, self.spaces)
        if len(self.spaces) == 1:
            return None
        return Address(self.partition, self.spaces[:-1])

    @property
    def space_name(self) -> str:
        return self.spaces[-1]

    def page(self, name: str) -> Address:
        """Return the address of a plain page inside this container's space."""
        return Address(self.partition, self.spaces, name)

    def subspace(self, name: str) -> Address:
        """Return the container address of a direct sub-space."""
        return Address(self.partition, (*self.spaces, name))

    def local(self) -> str:
        """Return the address without its partition, e.g. `A.B.WebHome`."""
        return ".".join((*self.spaces, self.name))

    @classmethod
    def parse(cls, text: str, partition: str | None = None) -> Address:
        """Parse `partition:A.B.Name` or, with a default partition, `A.B.Name`."""
        text = text.strip()
        if ":" in text:
            partition, _, text = text.partition(":")
        if not partition:
            raise ValueError(f"Address '{text}' has no partition.")
        segments = text.split(".")
        if len(segments) < 2:
            raise ValueError(f"Address '{text}' must contain a space and a name.")
        return cls(partition, tuple(segments[:-1]), segments[-1])

    def __str__(self) -> str:
        return f"{self.partition}:{self.local()}"


@dataclass(slots=True)
class Document:
    """A repository document holding typed flat-field objects."""

    address: Address
    title: str = ""
    content: str = ""
    hidden: bool = False
    objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    is_new: bool = True

    def get_object(self, class_name: str, *, create: bool = False) -> dict[str, Any] | None:
        """Return the object of the given class, creating an empty one if asked."""
        obj = self.objects.get(class_name)
        if obj is None and create:
            obj = {}
            self.objects[class_name] = obj
        return obj

    def has_object(self, class_name: str) -> bool:
        return class_name in self.objects

    def remove_object(self, class_name: str) -> bool:
        return self.objects.pop(class_name, None) is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "title": self.title,
            "content": self.content,
            "hidden": self.hidden,
            "objects": copy.deepcopy(self.objects),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Document:
        raw_objects = payload.get("objects") or {}
        if not isinstance(raw_objects, Mapping):
            raise ValueError("Document objects must be a mapping.")
        return cls(
            address=Address.parse(str(payload["address"])),
            title=str(payload.get("title") or ""),
            content=str(payload.get("content") or ""),
            hidden=bool(payload.get("hidden", False)),
            objects={str(name): dict(values or {}) for name, values in raw_objects.items()},
            is_new=False,
        )


DocumentPredicate = Callable[[Document], bool]


@runtime_checkable
class Repository(Protocol):
    """Storage collaborator consumed by the bibliography core."""

    def get(self, address: Address) -> Document | None: ...

    def save(self, document: Document) -> None: ...

    def delete(self, address: Address) -> bool: ...

    def exists(self, address: Address) -> bool: ...

    def query(self, partition: str, predicate: DocumentPredicate) -> list[Address]: ...

    def children(self, address: Address, *, include_hidden: bool = False) -> list[Address]: ...

    def rename(self, source: Address, target: Address) -> None: ...

    def partitions(self) -> list[str]: ...


class MemoryRepository:
    """Thread-safe in-memory repository storing private copies of documents."""

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self._lock = RLock()
        self._documents: dict[Address, Document] = {}
        self._partitions: set[str] = set()
        for document in documents:
            self.save(document)

    def add_partition(self, partition: str) -> None:
        """Declare a partition even if it holds no document yet."""
        with self._lock:
            self._partitions.add(partition)

    def get(self, address: Address) -> Document | None:
        with self._lock:
            stored = self._documents.get(address)
            if stored is None:
                return None
            document = copy.deepcopy(stored)
        document.is_new = False
        return document

    def save(self, document: Document) -> None:
        snapshot = copy.deepcopy(document)
        snapshot.is_new = False
        with self._lock:
            self._documents[document.address] = snapshot
            self._partitions.add(document.address.partition)
        document.is_new = False

    def delete(self, address: Address) -> bool:
        with self._lock:
            return self._documents.pop(address, None) is not None

    def exists(self, address: Address) -> bool:
        with self._lock:
            return address in self._documents

    def query(self, partition: str, predicate: DocumentPredicate) -> list[Address]:
        with self._lock:
            candidates = [
                document
                for address, document in self._documents.items()
                if address.partition == partition
            ]
        return sorted(document.address for document in candidates if predicate(document))

    def children(self, address: Address, *, include_hidden: bool = False) -> list[Address]:
        if not address.is_container:
            return []
        depth = len(address.spaces)
        found: set[Address] = set()
        with self._lock:
            for candidate, document in self._documents.items():
                if candidate.partition != address.partition or candidate == address:
                    continue
                if candidate.spaces[:depth] != address.spaces:
                    continue
                if document.hidden and not include_hidden:
                    continue
                if len(candidate.spaces) == depth:
                    found.add(candidate)
                else:
                    # any document below a sub-space implies that sub-space container
                    found.add(address.subspace(candidate.spaces[depth]))
        return sorted(found)

    def rename(self, source: Address, target: Address) -> None:
        """Move a document; moving a container moves its whole space."""
        with self._lock:
            if source not in self._documents:
                raise RepositoryError(f"Cannot rename missing document {source}.")
            if target in self._documents:
                raise RepositoryError(f"Cannot rename {source}: {target} already exists.")
            if source.is_container and not target.is_container:
                raise RepositoryError(f"Container {source} can only be moved as a container.")
            moves: dict[Address, Address] = {source: target}
            if source.is_container:
                depth = len(source.spaces)
                for candidate in self._documents:
                    if candidate.partition == source.partition and candidate.spaces[:depth] == source.spaces:
                        moves[candidate] = Address(
                            target.partition,
                            (*target.spaces, *candidate.spaces[depth:]),
                            candidate.name,
                        )
            for old, new in moves.items():
                if new != old and new in self._documents and new not in moves:
                    raise RepositoryError(f"Cannot rename {old}: {new} already exists.")
            moved = {new: self._documents.pop(old) for old, new in moves.items()}
            for new, document in moved.items():
                document.address = new
                self._documents[new] = document
                self._partitions.add(new.partition)

    def partitions(self) -> list[str]:
        with self._lock:
            return sorted(self._partitions)

    def addresses(self) -> list[Address]:
        with self._lock:
            return sorted(self._documents)

    @classmethod
    def load(cls, path: Path | str) -> MemoryRepository:
        """Load a YAML snapshot; a missing file yields an empty repository."""
        file_path = Path(path)
        try:
            raw = file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls()
        except OSError as exc:
            raise RepositoryError(f"Failed to read '{file_path}': {exc}") from exc
        try:
            payload = yaml.safe_load(raw) or {}
        except yaml.YAMLError as exc:
            raise RepositoryError(f"Invalid repository snapshot '{file_path}': {exc}") from exc
        repository = cls()
        for name in payload.get("partitions") or []:
            repository.add_partition(str(name))
        try:
            for item in payload.get("documents") or []:
                repository.save(Document.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Invalid document in '{file_path}': {exc}") from exc
        return repository

    def dump(self, path: Path | str) -> None:
        """Persist the repository as a YAML snapshot."""
        file_path = Path(path)
        with self._lock:
            payload = {
                "partitions": sorted(self._partitions),
                "documents": [self._documents[address].to_dict() for address in sorted(self._documents)],
            }
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(
                yaml.safe_dump(payload, allow_unicode=True, sort_keys=False),
                encoding="utf-8",
            )
        except OSError as exc:
            raise RepositoryError(f"Failed to write '{file_path}': {exc}") from exc


def next_numbered_container(
    repository: Repository,
    partition: str,
    space: tuple[str, ...],
    prefix: str,
) -> Address:
    """Return `space.<prefix>N.WebHome` with `N` one above the highest in use."""
    depth = len(space)

    def number_of(address: Address) -> int | None:
        if len(address.spaces) <= depth or address.spaces[:depth] != space:
            return None
        segment = address.spaces[depth]
        if not segment.startswith(prefix):
            return None
        suffix = segment[len(prefix):]
        return int(suffix) if suffix.isdigit() else None

    numbers = [
        number
        for number in (number_of(address) for address in repository.query(partition, lambda document: True))
        if number is not None
    ]
    highest = max(numbers, default=0)
    return Address(partition, (*space, f"{prefix}{highest + 1}"))


__all__ = [
    "CONFIGURATION_CLASS",
    "CONTAINER_NAME",
    "ENTRY_CLASS",
    "INDEX_CLASS",
    "LOCAL_INDEX_CLASS",
    "ORDER_CLASS",
    "PERSON_CLASS",
    "Address",
    "Document",
    "DocumentPredicate",
    "MemoryRepository",
    "Repository",
    "next_numbered_container",
]
