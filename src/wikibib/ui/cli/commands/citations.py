"""Commands dealing with cited keys, indexes and rendered bibliographies."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from wikibib.core.errors import WikibibError

from ..presenter import present_citing
from ..state import emit_error, get_cli_state, render_message
from ..utils import parse_address, service_session


def scan_page(
    address: Annotated[str, typer.Argument(help="Document receiving the content, e.g. Notes.Chapter1.")],
    source: Annotated[
        Path,
        typer.Argument(help="Text file holding the page content.", exists=True, dir_okay=False, readable=True),
    ],
    title: Annotated[str | None, typer.Option("--title", help="Document title.")] = None,
    bibliography_page: Annotated[
        bool | None,
        typer.Option(
            "--bibliography-page/--no-bibliography-page",
            help="Mark the document as the bibliography output page of its index.",
        ),
    ] = None,
) -> None:
    """Store page content and record the citation keys it contains."""
    target = parse_address(address)
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        emit_error(f"Failed to read '{source}'.", exception=exc)
        raise typer.Exit(code=1) from exc
    with service_session(persist=True) as service:
        keys = service.save_content(target, content, title=title, bibliography_page=bibliography_page)
        for key in keys:
            typer.echo(key)


def create_index(
    address: Annotated[str, typer.Argument(help="Container document owning the index, e.g. Notes.WebHome.")],
) -> None:
    """Attach a citation index to a container document."""
    target = parse_address(address)
    with service_session(persist=True) as service:
        try:
            index = service.create_index(target)
        except WikibibError as exc:
            emit_error(str(exc), exception=exc)
            raise typer.Exit(code=1) from exc
        render_message("info", f"Index created on {index.address}.")


def cite(key: Annotated[str, typer.Argument(help="Entry id to look up.")]) -> None:
    """List the documents citing an entry, per partition."""
    state = get_cli_state()
    with service_session() as service:
        present_citing(state, key, service.documents_citing(key))


def bibliography(
    address: Annotated[str, typer.Argument(help="Any document inside the indexed subtree.")],
) -> None:
    """Render the bibliography of the index owning a document."""
    target = parse_address(address)
    with service_session(persist=True) as service:
        index = service.index_for(target)
        if index is None:
            emit_error(f"No index owns {target}.")
            raise typer.Exit(code=1)
        text = service.bibliography(index)
        if text:
            typer.echo(text)


__all__ = ["bibliography", "cite", "create_index", "scan_page"]
