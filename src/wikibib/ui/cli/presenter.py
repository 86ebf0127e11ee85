"""Rich presenters for CLI output and diagnostics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from rich import box
from rich.table import Table
from rich.text import Text

from wikibib.core.errors import BibliographyError, ErrorKind
from wikibib.core.repository import Address
from wikibib.core.text import SortableAddress

from .state import CLIState


REJECTION_KINDS = frozenset(
    {
        ErrorKind.EMPTY_ID,
        ErrorKind.INVALID_ID_FORMAT,
        ErrorKind.ID_ALREADY_EXISTS,
        ErrorKind.ID_IMMUTABLE,
        ErrorKind.INVALID_DATE,
    }
)


def _build_table(*, title: str | None, columns: Sequence[str], header_style: str = "bold cyan") -> Table:
    """Create a Rich table with the house style."""
    table = Table(title=title or None, box=box.SQUARE, show_edge=True, header_style=header_style)
    for column in columns:
        table.add_column(column)
    return table


def has_rejections(errors: Iterable[BibliographyError]) -> bool:
    """Return whether any error stems from a rejected entry."""
    return any(error.kind in REJECTION_KINDS for error in errors)


def present_errors(state: CLIState, errors: Sequence[BibliographyError]) -> None:
    """Print collected errors as a table on stderr."""
    if not errors:
        return
    table = _build_table(title="Errors", columns=("Kind", "Details"), header_style="bold red")
    for error in errors:
        style = "red" if error.kind in REJECTION_KINDS else "yellow"
        details = ", ".join(str(param) for param in error.params) or "-"
        table.add_row(Text(error.kind.value, style=style), Text(details))
    state.err_console.print(table)


def present_entries(state: CLIState, entries: Sequence[SortableAddress], rendered: Mapping[Address, str]) -> None:
    table = _build_table(title="Entries", columns=("Id", "Citation", "Document"))
    if not entries:
        table.add_row("-", "No entries found", "-")
    for item in entries:
        table.add_row(Text(item.description), Text(rendered.get(item.address, "")), Text(str(item.address)))
    state.console.print(table)


def present_citing(state: CLIState, key: str, citing: Mapping[str, Sequence[Address]]) -> None:
    table = _build_table(title=f"Documents citing '{key}'", columns=("Partition", "Document"))
    if not citing:
        table.add_row("-", "No documents found")
    for partition, addresses in citing.items():
        for address in addresses:
            table.add_row(partition, address.local())
    state.console.print(table)


__all__ = ["REJECTION_KINDS", "has_rejections", "present_citing", "present_entries", "present_errors"]
