"""BibTeX/BibLaTeX interchange: import through pybtex, export to BibLaTeX text."""

from __future__ import annotations

from .export import build_fields, classify, escape_case, escape_case_and_commas, export_record, export_records
from .importer import import_records, record_from_entry


__all__ = [
    "build_fields",
    "classify",
    "escape_case",
    "escape_case_and_commas",
    "export_record",
    "export_records",
    "import_records",
    "record_from_entry",
]
