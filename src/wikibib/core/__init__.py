"""Bibliography core: citation data model, storage mappers, indexes and services."""

from __future__ import annotations

from .config import BibliographyConfiguration, ConfigurationLayer, Scope, resolve, resolve_for
from .entries import Entry, validate_entry
from .errors import (
    BibliographyError,
    EntryValidationError,
    ErrorCollector,
    ErrorKind,
    PersonInUseError,
    RenderingError,
    RepositoryError,
    WikibibError,
)
from .index import Index
from .local_index import LocalCitationCollector, scan_citations
from .model import CitationRecord, CitationType, PersonalName
from .persons import Person, PersonResolver
from .rendering import CitationRenderer, PybtexRenderer
from .repository import Address, Document, MemoryRepository, Repository
from .service import BibliographyService
from .tree import Node, NodeStore


__all__ = [
    "Address",
    "BibliographyConfiguration",
    "BibliographyError",
    "BibliographyService",
    "CitationRecord",
    "CitationRenderer",
    "CitationType",
    "ConfigurationLayer",
    "Document",
    "Entry",
    "EntryValidationError",
    "ErrorCollector",
    "ErrorKind",
    "Index",
    "LocalCitationCollector",
    "MemoryRepository",
    "Node",
    "NodeStore",
    "Person",
    "PersonInUseError",
    "PersonResolver",
    "PersonalName",
    "PybtexRenderer",
    "RenderingError",
    "Repository",
    "RepositoryError",
    "Scope",
    "WikibibError",
    "resolve",
    "resolve_for",
    "scan_citations",
    "validate_entry",
]
