"""Citation data model.

`CitationRecord` mirrors the CSL item data model: a typed category, a stable
identifier, scalar string variables, ordered name lists, dates and free-text
categories. Records serialise to and from CSL-JSON so that a full snapshot can
be stored next to the individually encoded fields and reloaded without
decoding every field again.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
import json
from typing import Any, ClassVar

from .dates import DateValue


class CitationType(str, Enum):
    """Categories of bibliographic records (CSL item types)."""

    ARTICLE = "article"
    ARTICLE_JOURNAL = "article-journal"
    ARTICLE_MAGAZINE = "article-magazine"
    ARTICLE_NEWSPAPER = "article-newspaper"
    BILL = "bill"
    BOOK = "book"
    BROADCAST = "broadcast"
    CHAPTER = "chapter"
    DATASET = "dataset"
    ENTRY = "entry"
    ENTRY_DICTIONARY = "entry-dictionary"
    ENTRY_ENCYCLOPEDIA = "entry-encyclopedia"
    FIGURE = "figure"
    GRAPHIC = "graphic"
    INTERVIEW = "interview"
    LEGAL_CASE = "legal_case"
    LEGISLATION = "legislation"
    MANUSCRIPT = "manuscript"
    MAP = "map"
    MOTION_PICTURE = "motion_picture"
    MUSICAL_SCORE = "musical_score"
    PAMPHLET = "pamphlet"
    PAPER_CONFERENCE = "paper-conference"
    PATENT = "patent"
    PERSONAL_COMMUNICATION = "personal_communication"
    POST = "post"
    POST_WEBLOG = "post-weblog"
    REPORT = "report"
    REVIEW = "review"
    REVIEW_BOOK = "review-book"
    SONG = "song"
    SPEECH = "speech"
    THESIS = "thesis"
    TREATY = "treaty"
    WEBPAGE = "webpage"

    @classmethod
    def from_string(cls, value: str | None) -> CitationType | None:
        """Resolve a type name, tolerant to case and `-`/`_` spelling."""
        if value is None:
            return None
        candidate = value.strip().lower()
        if not candidate:
            return None
        for member in cls:
            if candidate in (member.value, member.value.replace("_", "-"), member.value.replace("-", "_")):
                return member
        return None

    def __str__(self) -> str:
        return self.value


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True, slots=True)
class PersonalName:
    """A structured personal name; identity is the normalised field tuple."""

    family: str | None = None
    given: str | None = None
    dropping_particle: str | None = None
    non_dropping_particle: str | None = None
    suffix: str | None = None
    literal: str | None = None

    CSL_KEYS: ClassVar[dict[str, str]] = {
        "family": "family",
        "given": "given",
        "dropping_particle": "dropping-particle",
        "non_dropping_particle": "non-dropping-particle",
        "suffix": "suffix",
        "literal": "literal",
    }

    def normalised(self) -> PersonalName:
        """Return a copy with blank components replaced by `None`."""
        return PersonalName(
            family=_blank_to_none(self.family),
            given=_blank_to_none(self.given),
            dropping_particle=_blank_to_none(self.dropping_particle),
            non_dropping_particle=_blank_to_none(self.non_dropping_particle),
            suffix=_blank_to_none(self.suffix),
            literal=_blank_to_none(self.literal),
        )

    def identity(self) -> tuple[str, str, str, str, str]:
        """Return the tuple used to decide whether two names are the same person."""
        family = self.family or self.literal
        return (
            (family or "").strip(),
            (self.given or "").strip(),
            (self.dropping_particle or "").strip(),
            (self.non_dropping_particle or "").strip(),
            (self.suffix or "").strip(),
        )

    def is_empty(self) -> bool:
        return not any(self.identity())

    def family_first(self) -> str:
        """Render as `von Family, Given, Suffix`."""
        head = " ".join(
            part for part in (self.non_dropping_particle, self.family or self.literal) if part
        )
        segments = [head] if head else []
        if self.given:
            segments.append(self.given)
        if self.suffix:
            segments.append(self.suffix)
        return ", ".join(segments).strip()

    def given_first(self) -> str:
        """Render as `Given de von Family Suffix`."""
        parts = (
            self.given,
            self.dropping_particle,
            self.non_dropping_particle,
            self.family or self.literal,
            self.suffix,
        )
        return " ".join(part for part in parts if part).strip()

    def to_csl(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        for attribute, key in self.CSL_KEYS.items():
            value = getattr(self, attribute)
            if value:
                payload[key] = value
        return payload

    @classmethod
    def from_csl(cls, payload: Mapping[str, Any]) -> PersonalName:
        values = {
            attribute: str(payload[key])
            for attribute, key in cls.CSL_KEYS.items()
            if payload.get(key) not in (None, "")
        }
        return cls(**values).normalised()

    def __str__(self) -> str:
        return self.family_first()


# attribute name -> CSL-JSON variable name
STRING_VARIABLES: dict[str, str] = {
    "title": "title",
    "title_short": "title-short",
    "container_title": "container-title",
    "collection_title": "collection-title",
    "publisher": "publisher",
    "publisher_place": "publisher-place",
    "event": "event",
    "event_place": "event-place",
    "genre": "genre",
    "medium": "medium",
    "volume": "volume",
    "issue": "issue",
    "number": "number",
    "number_of_volumes": "number-of-volumes",
    "number_of_pages": "number-of-pages",
    "edition": "edition",
    "page": "page",
    "version": "version",
    "status": "status",
    "isbn": "ISBN",
    "issn": "ISSN",
    "doi": "DOI",
    "url": "URL",
    "language": "language",
    "note": "note",
    "abstract": "abstract",
    "source": "source",
}

NAME_VARIABLES: dict[str, str] = {
    "author": "author",
    "editor": "editor",
    "translator": "translator",
    "container_author": "container-author",
    "collection_editor": "collection-editor",
    "composer": "composer",
    "director": "director",
    "editorial_director": "editorial-director",
    "illustrator": "illustrator",
    "interviewer": "interviewer",
    "recipient": "recipient",
    "reviewed_author": "reviewed-author",
}

DATE_VARIABLES: dict[str, str] = {
    "issued": "issued",
    "accessed": "accessed",
    "event_date": "event-date",
    "original_date": "original-date",
    "submitted": "submitted",
}


@dataclass(slots=True)
class CitationRecord:
    """The canonical bibliographic unit."""

    id: str | None = None
    type: CitationType | None = None

    title: str | None = None
    title_short: str | None = None
    container_title: str | None = None
    collection_title: str | None = None
    publisher: str | None = None
    publisher_place: str | None = None
    event: str | None = None
    event_place: str | None = None
    genre: str | None = None
    medium: str | None = None
    volume: str | None = None
    issue: str | None = None
    number: str | None = None
    number_of_volumes: str | None = None
    number_of_pages: str | None = None
    edition: str | None = None
    page: str | None = None
    version: str | None = None
    status: str | None = None
    isbn: str | None = None
    issn: str | None = None
    doi: str | None = None
    url: str | None = None
    language: str | None = None
    note: str | None = None
    abstract: str | None = None
    source: str | None = None

    author: list[PersonalName] = field(default_factory=list)
    editor: list[PersonalName] = field(default_factory=list)
    translator: list[PersonalName] = field(default_factory=list)
    container_author: list[PersonalName] = field(default_factory=list)
    collection_editor: list[PersonalName] = field(default_factory=list)
    composer: list[PersonalName] = field(default_factory=list)
    director: list[PersonalName] = field(default_factory=list)
    editorial_director: list[PersonalName] = field(default_factory=list)
    illustrator: list[PersonalName] = field(default_factory=list)
    interviewer: list[PersonalName] = field(default_factory=list)
    recipient: list[PersonalName] = field(default_factory=list)
    reviewed_author: list[PersonalName] = field(default_factory=list)

    issued: DateValue | None = None
    accessed: DateValue | None = None
    event_date: DateValue | None = None
    original_date: DateValue | None = None
    submitted: DateValue | None = None

    categories: list[str] = field(default_factory=list)

    def copy(self) -> CitationRecord:
        return replace(
            self,
            **{name: list(getattr(self, name)) for name in NAME_VARIABLES},
            categories=list(self.categories),
        )

    def to_csl(self) -> dict[str, Any]:
        """Return the CSL-JSON representation, omitting unset variables."""
        payload: dict[str, Any] = {}
        if self.id is not None:
            payload["id"] = self.id
        if self.type is not None:
            payload["type"] = self.type.value
        for attribute, key in STRING_VARIABLES.items():
            value = getattr(self, attribute)
            if value:
                payload[key] = value
        for attribute, key in NAME_VARIABLES.items():
            names = getattr(self, attribute)
            if names:
                payload[key] = [name.to_csl() for name in names]
        for attribute, key in DATE_VARIABLES.items():
            date = getattr(self, attribute)
            if date is not None:
                payload[key] = date.to_csl()
        if self.categories:
            payload["categories"] = list(self.categories)
        return payload

    @classmethod
    def from_csl(cls, payload: Mapping[str, Any]) -> CitationRecord:
        """Build a record from CSL-JSON; unknown variables are ignored."""
        record = cls()
        identifier = payload.get("id")
        record.id = str(identifier) if identifier not in (None, "") else None
        raw_type = payload.get("type")
        record.type = CitationType.from_string(raw_type) if isinstance(raw_type, str) else None
        for attribute, key in STRING_VARIABLES.items():
            value = payload.get(key)
            if value not in (None, ""):
                setattr(record, attribute, str(value))
        for attribute, key in NAME_VARIABLES.items():
            raw_names = payload.get(key)
            if isinstance(raw_names, list):
                setattr(
                    record,
                    attribute,
                    [PersonalName.from_csl(item) for item in raw_names if isinstance(item, Mapping)],
                )
        for attribute, key in DATE_VARIABLES.items():
            raw_date = payload.get(key)
            if isinstance(raw_date, Mapping):
                setattr(record, attribute, DateValue.from_csl(raw_date))
        raw_categories = payload.get("categories")
        if isinstance(raw_categories, list):
            record.categories = [str(item) for item in raw_categories if str(item).strip()]
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_csl(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, payload: str) -> CitationRecord:
        """Decode a JSON snapshot; raises `ValueError` on malformed input."""
        data = json.loads(payload)
        if not isinstance(data, Mapping):
            raise ValueError("Citation snapshot must be a JSON object.")
        return cls.from_csl(data)


__all__ = [
    "DATE_VARIABLES",
    "NAME_VARIABLES",
    "STRING_VARIABLES",
    "CitationRecord",
    "CitationType",
    "PersonalName",
]
