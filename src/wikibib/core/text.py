"""Text normalisation helpers used for search values and sorting."""

from __future__ import annotations

from dataclasses import dataclass
import unicodedata

from .repository import Address


def strip_accents(text: str) -> str:
    """Remove combining marks, keeping the base characters."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def parse_flag(value: object) -> bool:
    """Read a stored boolean that may have been written as text."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


@dataclass(frozen=True, slots=True)
class SortableAddress:
    """A document address ordered by its human description.

    Descriptions compare accent-insensitively then case-insensitively; the
    raw description and finally the address break remaining ties.
    """

    description: str
    address: Address

    def sort_key(self) -> tuple[str, str, str, str, Address]:
        stripped = strip_accents(self.description)
        return (
            stripped.casefold(),
            stripped,
            self.description.casefold(),
            self.description,
            self.address,
        )

    def __lt__(self, other: SortableAddress) -> bool:
        return self.sort_key() < other.sort_key()


__all__ = ["SortableAddress", "parse_flag", "strip_accents"]
