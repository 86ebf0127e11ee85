"""Typer application wiring for the wikibib CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .commands import (
    bibliography,
    cite,
    create_index,
    export_entries,
    import_entries,
    list_entries,
    refresh_entries,
    scan_page,
)
from .state import DEFAULT_PARTITION, DEFAULT_STORE, configure_logging, debug_enabled, emit_error, set_cli_state


DIAGNOSTICS_PANEL = "Diagnostics"

app = typer.Typer(
    help="Manage wiki bibliography entries and per-subtree citation indexes.",
    context_settings={"help_option_names": ["--help"]},
    no_args_is_help=True,
)


@app.callback()
def configure(
    ctx: typer.Context,
    store: Annotated[
        Path,
        typer.Option("--store", help="YAML repository snapshot to operate on.", envvar="WIKIBIB_STORE"),
    ] = DEFAULT_STORE,
    partition: Annotated[
        str,
        typer.Option("--partition", "-p", help="Partition (wiki) holding the data.", envvar="WIKIBIB_PARTITION"),
    ] = DEFAULT_PARTITION,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
            rich_help_panel=DIAGNOSTICS_PANEL,
        ),
    ] = 0,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Show full tracebacks when an unexpected error occurs.",
            rich_help_panel=DIAGNOSTICS_PANEL,
        ),
    ] = False,
) -> None:
    """Select the store and partition shared by every command."""
    state = set_cli_state(ctx=ctx, verbosity=verbose, debug=debug, store=store, partition=partition)
    configure_logging(state)


app.command("import")(import_entries)
app.command("export")(export_entries)
app.command("entries")(list_entries)
app.command("refresh")(refresh_entries)
app.command("scan")(scan_page)
app.command("index")(create_index)
app.command("cite")(cite)
app.command("bibliography")(bibliography)


def main() -> None:
    """Entry point compatible with console scripts."""
    try:
        app()
    except typer.Exit:
        raise
    except KeyboardInterrupt as exc:
        if debug_enabled():
            raise
        emit_error("Operation cancelled by user.", exception=exc)
        raise typer.Exit(code=1) from exc
    except SystemExit:
        raise
    except Exception as exc:  # pragma: no cover - last-resort reporting
        from .state import get_cli_state

        state = get_cli_state()
        if state.show_tracebacks:
            from rich.traceback import Traceback

            tb = Traceback.from_exception(
                type(exc),
                exc,
                exc.__traceback__,
                show_locals=state.verbosity >= 2,
            )
            state.err_console.print(tb)
        else:
            emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc


__all__ = ["app", "main"]
