"""Commands managing the entries of a partition."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from wikibib.core.entries import Entry

from ..presenter import present_entries
from ..state import emit_error, get_cli_state, render_message
from ..utils import service_session


def import_entries(
    source: Annotated[
        Path,
        typer.Argument(
            help="BibTeX or BibLaTeX file to import.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Update entries whose id already exists instead of rejecting them."),
    ] = False,
) -> None:
    """Import the records of a bibliography file as entries."""
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        emit_error(f"Failed to read '{source}'.", exception=exc)
        raise typer.Exit(code=1) from exc
    with service_session(persist=True) as service:
        saved = service.import_bibtex(text, overwrite=overwrite)
        render_message("info", f"Imported {len(saved)} entries into '{service.partition}'.")


def export_entries(
    keys: Annotated[
        list[str] | None,
        typer.Argument(metavar="KEY...", help="Entry ids to export; every entry when omitted."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the export to a file instead of stdout."),
    ] = None,
) -> None:
    """Export entries as BibLaTeX."""
    with service_session() as service:
        text = service.export_bibtex(keys or None)
        if output is None:
            typer.echo(text)
        else:
            try:
                output.write_text(text + "\n", encoding="utf-8")
            except OSError as exc:
                emit_error(f"Failed to write '{output}'.", exception=exc)
                raise typer.Exit(code=1) from exc


def list_entries(
    sources: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Partition to list; repeat for several. Defaults to the current one."),
    ] = None,
) -> None:
    """List entries sorted by display title."""
    state = get_cli_state()
    with service_session() as service:
        entries = service.list_entries(sources or None)
        rendered = {}
        for item in entries:
            document = service.get_document(item.address)
            if document is not None:
                rendered[item.address] = Entry(document).rendered
        present_entries(state, entries, rendered)


def refresh_entries() -> None:
    """Recompute derived fields of every entry of the partition."""
    with service_session(persist=True) as service:
        count = service.refresh_entries()
        render_message("info", f"Refreshed {count} entries in '{service.partition}'.")


__all__ = ["export_entries", "import_entries", "list_entries", "refresh_entries"]
