"""Conversions between textual personal names, pybtex persons and `PersonalName`."""

from __future__ import annotations

from collections.abc import Iterable

from pybtex.bibtex.utils import split_name_list
from pybtex.database import Person
from pybtex.exceptions import PybtexError

from .model import PersonalName


def _strip_braces(value: str) -> str:
    return value.replace("{", "").replace("}", "").strip()


def _join(parts: Iterable[str]) -> str | None:
    text = " ".join(_strip_braces(part) for part in parts if part)
    return text.strip() or None


def name_from_person(person: Person) -> PersonalName:
    """Convert a parsed pybtex person into a `PersonalName`."""
    given = _join([*person.first_names, *person.middle_names])
    return PersonalName(
        family=_join(person.last_names),
        given=given,
        non_dropping_particle=_join(person.prelast_names),
        suffix=_join(person.lineage_names),
    ).normalised()


def parse_name(text: str) -> PersonalName | None:
    """Parse `Family, Given`, `Given Family` or `von Family, Jr, Given` forms.

    A name fully wrapped in braces is an institutional name and is kept whole.
    """
    text = text.strip()
    if not text:
        return None
    if text.startswith("{") and text.endswith("}") and text.count("{") == 1:
        literal = text[1:-1].strip()
        return PersonalName(family=literal) if literal else None
    try:
        person = Person(text)
    except PybtexError:
        return None
    name = name_from_person(person)
    return None if name.is_empty() else name


def parse_name_list(text: str | None) -> list[PersonalName]:
    """Split an `and`-joined name list and parse every name."""
    if text is None or not text.strip():
        return []
    names: list[PersonalName] = []
    for chunk in split_name_list(text):
        name = parse_name(chunk)
        if name is not None:
            names.append(name)
    return names


def person_from_name(name: PersonalName) -> Person:
    """Convert a `PersonalName` into a pybtex person for formatting."""
    particles = " ".join(
        part for part in (name.dropping_particle, name.non_dropping_particle) if part
    )
    family = name.family or name.literal or ""
    if " " in family and not (name.given or particles):
        # keep multi-word institutional names together
        family = "{" + family + "}"
    return Person(
        first=name.given or "",
        prelast=particles,
        last=family,
        lineage=name.suffix or "",
    )


def format_name(name: PersonalName) -> str:
    """Render a name in the BibTeX `von Family, Jr, Given` form."""
    family = " ".join(
        part
        for part in (name.dropping_particle, name.non_dropping_particle, name.family or name.literal)
        if part
    )
    segments = [family]
    if name.suffix:
        segments.append(name.suffix)
    if name.given:
        segments.append(name.given)
    return ", ".join(segments)


def format_name_list(names: Iterable[PersonalName]) -> str:
    """Render names as a BibTeX `and`-joined list."""
    return " and ".join(format_name(name) for name in names)


__all__ = [
    "format_name",
    "format_name_list",
    "name_from_person",
    "parse_name",
    "parse_name_list",
    "person_from_name",
]
