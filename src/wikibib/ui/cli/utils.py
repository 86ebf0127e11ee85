"""Helpers shared by the CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import typer

from wikibib.core.errors import RepositoryError
from wikibib.core.repository import Address
from wikibib.core.service import BibliographyService

from .presenter import has_rejections, present_errors
from .state import emit_error, get_cli_state


def parse_address(value: str) -> Address:
    """Parse an address argument, defaulting to the selected partition."""
    state = get_cli_state()
    try:
        return Address.parse(value, state.partition)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@contextmanager
def service_session(*, persist: bool = False) -> Iterator[BibliographyService]:
    """Open the store, yield a service, then report errors and save.

    Collected errors are printed on stderr once the command body finishes.
    The command exits with code 1 when an entry was rejected.
    """
    state = get_cli_state()
    try:
        repository = state.repository
    except RepositoryError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc
    service = BibliographyService(repository, state.partition)
    yield service
    errors = service.errors.drain()
    present_errors(state, errors)
    if persist:
        try:
            state.persist()
        except RepositoryError as exc:
            emit_error(str(exc), exception=exc)
            raise typer.Exit(code=1) from exc
    if has_rejections(errors):
        raise typer.Exit(code=1)


__all__ = ["parse_address", "service_session"]
