"""Date values attached to citation records and their textual parsing.

A date is one or two *date parts*; each part is a `(year, month, day)` prefix,
so `(2020,)`, `(2020, 5)` and `(2020, 5, 12)` are all valid parts. Two parts
describe a range.

Parsing accepts ISO-like forms (`2020`, `2020-05`, `2020-05-12`), month names
(`May 2020`, `12 May 2020`, `May 12, 2020`) and ranges separated by `/`, `--`,
an en dash or a spaced hyphen (`2019/2020`, `2019 - 2020-03`). Anything else is
considered unparseable and yields `None`, never an exception.
"""

from __future__ import annotations

import calendar
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import re
from typing import Any


DatePart = tuple[int, ...]


_MONTH_NAME_TO_INT: dict[str, int] = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "sept": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

_ISO_RE = re.compile(r"^(?P<year>-?\d{1,4})(?:-(?P<month>\d{1,2})(?:-(?P<day>\d{1,2}))?)?$")
_TOKEN_RE = re.compile(r"[^\W\d_]+|\d+")
_RANGE_SEPARATORS = ("/", "--", "–", " - ")


@dataclass(frozen=True, slots=True)
class DateValue:
    """A single date or a date range."""

    parts: tuple[DatePart, ...]

    def __post_init__(self) -> None:
        if not 1 <= len(self.parts) <= 2:
            raise ValueError("A date holds one part or a range of two parts.")
        for part in self.parts:
            if not 1 <= len(part) <= 3:
                raise ValueError(f"Invalid date part: {part!r}")

    @property
    def is_range(self) -> bool:
        return len(self.parts) == 2

    @property
    def start(self) -> DatePart:
        return self.parts[0]

    @property
    def end(self) -> DatePart | None:
        return self.parts[1] if self.is_range else None

    def to_string(self) -> str:
        """Return the ISO 8601 rendering, ranges joined with `/`."""
        return "/".join(_format_part(part) for part in self.parts)

    def to_csl(self) -> dict[str, Any]:
        return {"date-parts": [list(part) for part in self.parts]}

    @classmethod
    def from_csl(cls, payload: Mapping[str, Any]) -> DateValue | None:
        """Build a date from its CSL-JSON form, ignoring malformed payloads."""
        raw_parts = payload.get("date-parts")
        if not isinstance(raw_parts, Sequence) or not raw_parts:
            literal = payload.get("literal")
            return parse_date(literal) if isinstance(literal, str) else None
        parts: list[DatePart] = []
        for raw in raw_parts[:2]:
            if not isinstance(raw, Sequence) or isinstance(raw, str) or not raw:
                return None
            try:
                part = _validated_part(*(int(value) for value in raw[:3]))
            except (TypeError, ValueError):
                return None
            if part is None:
                return None
            parts.append(part)
        return cls(tuple(parts))

    def __str__(self) -> str:
        return self.to_string()


def _format_part(part: DatePart) -> str:
    year = f"{part[0]:04d}" if part[0] >= 0 else str(part[0])
    segments = [year] + [f"{value:02d}" for value in part[1:]]
    return "-".join(segments)


def month_from_text(value: str | int | None) -> int | None:
    """Convert a month number or (abbreviated) month name to `1..12`."""
    if value is None:
        return None
    if isinstance(value, int):
        return value if 1 <= value <= 12 else None
    candidate = value.strip().strip("{}\"'.").lower()
    if not candidate:
        return None
    if candidate.isdigit():
        month = int(candidate)
        return month if 1 <= month <= 12 else None
    return _MONTH_NAME_TO_INT.get(candidate)


def _validated_part(year: int, month: int | None = None, day: int | None = None) -> DatePart | None:
    if month is None:
        return (year,)
    if not 1 <= month <= 12:
        return None
    if day is None:
        return (year, month)
    # monthrange needs a positive year; fall back to a leap year otherwise
    days_in_month = calendar.monthrange(year if year > 0 else 2000, month)[1]
    if not 1 <= day <= days_in_month:
        return None
    return (year, month, day)


def _parse_single(text: str) -> DatePart | None:
    text = text.strip().strip(",")
    if not text:
        return None

    iso = _ISO_RE.match(text)
    if iso:
        year = int(iso.group("year"))
        month = int(iso.group("month")) if iso.group("month") else None
        day = int(iso.group("day")) if iso.group("day") else None
        return _validated_part(year, month, day)

    year: int | None = None
    month: int | None = None
    day: int | None = None
    for token in _TOKEN_RE.findall(text):
        if token.isdigit():
            if len(token) >= 3:
                if year is not None:
                    return None
                year = int(token)
            else:
                if day is not None:
                    return None
                day = int(token)
            continue
        named = _MONTH_NAME_TO_INT.get(token.lower())
        if named is None or month is not None:
            return None
        month = named

    if year is None or (day is not None and month is None):
        return None
    return _validated_part(year, month, day)


def parse_date(text: str | None) -> DateValue | None:
    """Parse a free-text date expression; return `None` when unparseable."""
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None

    for separator in _RANGE_SEPARATORS:
        if separator not in text:
            continue
        pieces = text.split(separator)
        if len(pieces) != 2:
            return None
        start = _parse_single(pieces[0])
        end = _parse_single(pieces[1])
        if start is None or end is None:
            return None
        return DateValue((start, end))

    single = _parse_single(text)
    return DateValue((single,)) if single is not None else None


def compose_date(
    year: str | None,
    month: str | None = None,
    day: str | None = None,
) -> DateValue | None:
    """Build a date from separate year/month/day fields."""
    if year is None or not year.strip():
        return None
    year_text = year.strip().strip("{}")
    if "/" in year_text or "--" in year_text:
        # BibLaTeX style year ranges such as 2019/2020
        return parse_date(year_text)
    try:
        year_value = int(year_text)
    except ValueError:
        return None

    month_value = month_from_text(month) if month and month.strip() else None
    if month and month.strip() and month_value is None:
        return None
    day_value: int | None = None
    if day and day.strip() and month_value is not None:
        try:
            day_value = int(day.strip())
        except ValueError:
            return None

    part = _validated_part(year_value, month_value, day_value)
    return DateValue((part,)) if part is not None else None


def is_valid_date_text(text: str | None) -> bool:
    """Return whether a stored date field is blank or parseable."""
    if text is None or not text.strip():
        return True
    return parse_date(text) is not None


__all__ = [
    "DatePart",
    "DateValue",
    "compose_date",
    "is_valid_date_text",
    "month_from_text",
    "parse_date",
]
