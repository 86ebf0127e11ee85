"""Error channel and exception hierarchy for the bibliography core.

Two reporting paths coexist:

`ErrorCollector`
: A request-scoped accumulator of `BibliographyError` records. Components
  append to it when an operation can continue in degraded form (an unresolved
  person reference, a rendering failure, a failed query). The caller drains it
  at the end of the operation and decides how to present the errors.

`WikibibError` and subclasses
: Raised when a mutating operation must be rejected outright, such as saving
  an entry whose identifier is malformed or already taken.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable identifiers of the errors surfaced to callers."""

    IO = "bibliography.error.ioexception"
    JSON_DECODING = "bibliography.error.json-decoding"
    JSON_ENCODING = "bibliography.error.json-encoding"
    GET_DOCUMENT = "bibliography.error.get-document"
    SAVE_DOCUMENT = "bibliography.error.save-document"
    TYPE_FROM_STRING = "bibliography.error.type-from-string"
    PERSON_NOT_FOUND = "bibliography.error.person-not-found"
    GET_OR_ADD_PERSON = "bibliography.error.get-or-add-person"
    BUILD_ITEM = "bibliography.error.build-item"
    RENDER = "bibliography.error.render"
    QUERY = "bibliography.error.query"
    PARSE_BIBTEX = "bibliography.error.parse-bibtex"
    EMPTY_ID = "bibliography.error.empty-id"
    ID_ALREADY_EXISTS = "bibliography.error.id-already-exists"
    ID_IMMUTABLE = "bibliography.error.id-immutable"
    INVALID_ID_FORMAT = "bibliography.error.invalid-id-format"
    UNSUPPORTED_ENTRY_TYPE = "bibliography.error.unsupported-entry-type"
    INVALID_DATE = "bibliography.error.invalid-date"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class BibliographyError:
    """A structured error: its kind plus the context parameters."""

    kind: ErrorKind
    params: tuple[Any, ...] = ()

    def __str__(self) -> str:
        if not self.params:
            return self.kind.value
        return f"{self.kind.value} {list(self.params)}"


@dataclass(slots=True)
class ErrorCollector:
    """Accumulate structured errors produced while serving one request."""

    _errors: list[BibliographyError] = field(default_factory=list)

    def add(self, kind: ErrorKind, *params: Any) -> BibliographyError:
        """Record a new error and return it."""
        error = BibliographyError(kind, tuple(params))
        self._errors.append(error)
        return error

    def extend(self, errors: Iterable[BibliographyError]) -> None:
        """Append errors gathered elsewhere, preserving their order."""
        self._errors.extend(errors)

    def kinds(self) -> list[ErrorKind]:
        """Return the kinds of the recorded errors in insertion order."""
        return [error.kind for error in self._errors]

    def drain(self) -> list[BibliographyError]:
        """Return every recorded error and reset the collector."""
        drained = list(self._errors)
        self._errors.clear()
        return drained

    def clear(self) -> None:
        self._errors.clear()

    def __iter__(self) -> Iterator[BibliographyError]:
        return iter(tuple(self._errors))

    def __len__(self) -> int:
        return len(self._errors)


class WikibibError(RuntimeError):
    """Base exception for bibliography failures."""


class RepositoryError(WikibibError):
    """Raised by repositories when a document cannot be read or written."""


class EntryValidationError(WikibibError):
    """Raised when an entry is rejected before being persisted."""

    def __init__(self, kind: ErrorKind, *params: Any) -> None:
        self.kind = kind
        self.params = tuple(params)
        detail = ", ".join(str(param) for param in params)
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def error(self) -> BibliographyError:
        return BibliographyError(self.kind, self.params)


class PersonInUseError(WikibibError):
    """Raised when deleting a person still referenced by entries."""


class RenderingError(WikibibError):
    """Raised when the rendering engine cannot format a record."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


__all__ = [
    "BibliographyError",
    "EntryValidationError",
    "ErrorCollector",
    "ErrorKind",
    "PersonInUseError",
    "RenderingError",
    "RepositoryError",
    "WikibibError",
    "exception_messages",
]
