"""CLI command implementations exposed via `wikibib.ui.cli`."""

from __future__ import annotations

from .citations import bibliography, cite, create_index, scan_page
from .entries import export_entries, import_entries, list_entries, refresh_entries


__all__ = [
    "bibliography",
    "cite",
    "create_index",
    "export_entries",
    "import_entries",
    "list_entries",
    "refresh_entries",
    "scan_page",
]
