"""Wiki bibliography: citation entries, persons and per-subtree citation indexes."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from wikibib.core import (
    Address,
    BibliographyConfiguration,
    BibliographyService,
    CitationRecord,
    CitationType,
    Document,
    ErrorCollector,
    ErrorKind,
    Index,
    MemoryRepository,
    PersonalName,
    WikibibError,
)


try:
    __version__ = _pkg_version("wikibib")
except PackageNotFoundError:
    __version__ = "0.0.0"


__all__ = [
    "Address",
    "BibliographyConfiguration",
    "BibliographyService",
    "CitationRecord",
    "CitationType",
    "Document",
    "ErrorCollector",
    "ErrorKind",
    "Index",
    "MemoryRepository",
    "PersonalName",
    "WikibibError",
    "__version__",
]
