"""Declarative field providers between flat records and `CitationRecord`.

A provider binds one citation attribute to one or more flat field names in
priority order. Decoding reads the first non-blank bound field ("merge
fields"), so several historical spellings can feed the same attribute.
Encoding always writes the first bound field.

Two tables are defined:

`STORE_FIELDS`
: the layout of entry objects persisted in the repository. Personal names are
  stored as `|`-joined references to person documents.

`IMPORT_FIELDS`
: BibTeX/BibLaTeX field spellings, as produced by the interchange parser.
  Names are `and`-joined name lists.

Providers never raise on bad data: problems are recorded on the
`ErrorCollector` carried by the `FieldContext` and the value is left unset.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .dates import DateValue, compose_date, parse_date
from .errors import ErrorCollector, ErrorKind
from .model import DATE_VARIABLES, NAME_VARIABLES, CitationRecord, CitationType, PersonalName
from .names import format_name, format_name_list, parse_name, parse_name_list


class NameResolver(Protocol):
    """Maps stored person references to names and back."""

    def name_for(self, reference: str) -> PersonalName | None: ...

    def reference_for(self, name: PersonalName) -> str | None: ...


@dataclass(slots=True)
class FieldContext:
    """State shared by the providers while mapping one record."""

    errors: ErrorCollector
    names: NameResolver | None = None


ValueDecoder = Callable[[str | None, Mapping[str, Any], FieldContext], Any]
ValueEncoder = Callable[[Any, FieldContext], str]
Condition = Callable[[CitationRecord], bool]


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True, slots=True)
class FieldProvider:
    """Binding between a citation attribute and its flat fields."""

    attribute: str
    bib_fields: tuple[str, ...]
    decode_value: ValueDecoder
    encode_value: ValueEncoder
    when: Condition | None = None

    def merged(self, record: Mapping[str, Any]) -> str | None:
        """Return the first non-blank value among the bound fields."""
        for name in self.bib_fields:
            value = _text(record.get(name))
            if value is not None:
                return value
        return None

    def applies_to(self, target: CitationRecord) -> bool:
        return self.when is None or self.when(target)

    def decode(self, record: Mapping[str, Any], context: FieldContext) -> Any:
        return self.decode_value(self.merged(record), record, context)

    def encode(self, value: Any, record: MutableMapping[str, Any], context: FieldContext) -> None:
        if value is None or value == [] or value == "":
            record[self.bib_fields[0]] = ""
            return
        record[self.bib_fields[0]] = self.encode_value(value, context)


def _strip_braces(text: str) -> str:
    return " ".join(text.replace("{", "").replace("}", "").split())


def _decode_string(text: str | None, record: Mapping[str, Any], context: FieldContext) -> str | None:
    return text


def _decode_braced_string(text: str | None, record: Mapping[str, Any], context: FieldContext) -> str | None:
    if text is None:
        return None
    return _strip_braces(text) or None


def string_field(
    attribute: str,
    *bib_fields: str,
    braced: bool = False,
    when: Condition | None = None,
) -> FieldProvider:
    """Copy a string verbatim; `braced` drops BibTeX grouping braces."""
    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields or (attribute,),
        decode_value=_decode_braced_string if braced else _decode_string,
        encode_value=lambda value, context: str(value),
        when=when,
    )


def type_field(attribute: str = "type", *bib_fields: str) -> FieldProvider:
    """Decode a `CitationType`, reporting unknown names."""

    def decode(text: str | None, record: Mapping[str, Any], context: FieldContext) -> CitationType | None:
        if text is None:
            return None
        value = CitationType.from_string(text)
        if value is None:
            context.errors.add(ErrorKind.TYPE_FROM_STRING, text)
        return value

    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields or (attribute,),
        decode_value=decode,
        encode_value=lambda value, context: value.value,
    )


def person_references_field(attribute: str, *bib_fields: str, separator: str = "|") -> FieldProvider:
    """Names stored as references to person documents.

    A token that is not a known reference is read as a literal name so that
    hand-edited records keep working.
    """

    def decode(text: str | None, record: Mapping[str, Any], context: FieldContext) -> list[PersonalName] | None:
        if text is None:
            return None
        names: list[PersonalName] = []
        for token in text.split(separator):
            token = token.strip()
            if not token:
                continue
            if context.names is not None:
                name = context.names.name_for(token)
            else:
                name = parse_name(token)
            if name is not None:
                names.append(name)
        return names or None

    def encode(value: Sequence[PersonalName], context: FieldContext) -> str:
        references: list[str] = []
        for name in value:
            reference = context.names.reference_for(name) if context.names is not None else format_name(name)
            if reference is None:
                context.errors.add(ErrorKind.GET_OR_ADD_PERSON, format_name(name))
                continue
            references.append(reference)
        return separator.join(references)

    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields,
        decode_value=decode,
        encode_value=encode,
    )


def name_list_field(attribute: str, *bib_fields: str) -> FieldProvider:
    """Names written inline as a BibTeX `and`-joined list."""

    def decode(text: str | None, record: Mapping[str, Any], context: FieldContext) -> list[PersonalName] | None:
        return parse_name_list(text) or None

    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields or (attribute,),
        decode_value=decode,
        encode_value=lambda value, context: format_name_list(value),
    )


def date_field(
    attribute: str,
    *bib_fields: str,
    part_fields: tuple[str, str, str] | None = None,
) -> FieldProvider:
    """Parse a free-text date, falling back to separate year/month/day fields."""

    def decode(text: str | None, record: Mapping[str, Any], context: FieldContext) -> DateValue | None:
        if text is not None:
            return parse_date(_strip_braces(text))
        if part_fields is None:
            return None
        year, month, day = (_text(record.get(name)) for name in part_fields)
        return compose_date(year, month, day)

    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields or (attribute,),
        decode_value=decode,
        encode_value=lambda value, context: value.to_string(),
    )


def categories_field(attribute: str, *bib_fields: str, separator: str = "|") -> FieldProvider:
    """A delimiter-joined tag set; order kept, duplicates dropped."""

    def decode(text: str | None, record: Mapping[str, Any], context: FieldContext) -> list[str] | None:
        if text is None:
            return None
        tags = dedupe(_strip_braces(token) for token in text.split(separator))
        return tags or None

    return FieldProvider(
        attribute=attribute,
        bib_fields=bib_fields or (attribute,),
        decode_value=decode,
        encode_value=lambda value, context: separator.join(dedupe(value)),
    )


def dedupe(values: Iterable[str]) -> list[str]:
    """Return the non-blank values in first-occurrence order without duplicates."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


STORE_FIELDS: tuple[FieldProvider, ...] = (
    type_field("type"),
    string_field("id"),
    string_field("title"),
    string_field("title_short"),
    string_field("container_title"),
    string_field("collection_title"),
    string_field("publisher"),
    string_field("publisher_place"),
    string_field("event"),
    string_field("event_place"),
    string_field("genre"),
    string_field("medium"),
    string_field("volume"),
    string_field("issue"),
    string_field("number"),
    string_field("number_of_volumes"),
    string_field("number_of_pages"),
    string_field("edition"),
    string_field("page"),
    string_field("version"),
    string_field("status"),
    string_field("isbn"),
    string_field("issn"),
    string_field("doi"),
    string_field("url"),
    string_field("language"),
    string_field("note"),
    string_field("abstract"),
    string_field("source"),
    person_references_field("author", "authors"),
    person_references_field("editor", "editors"),
    person_references_field("translator", "translators"),
    person_references_field("container_author", "container_authors"),
    person_references_field("collection_editor", "collection_editors"),
    person_references_field("composer", "composers"),
    person_references_field("director", "directors"),
    person_references_field("editorial_director", "editorial_directors"),
    person_references_field("illustrator", "illustrators"),
    person_references_field("interviewer", "interviewers"),
    person_references_field("recipient", "recipients"),
    person_references_field("reviewed_author", "reviewed_authors"),
    date_field("issued"),
    date_field("accessed"),
    date_field("event_date"),
    date_field("original_date"),
    date_field("submitted"),
    categories_field("categories"),
)

STORE_DATE_FIELDS: tuple[str, ...] = tuple(DATE_VARIABLES)

# entry fields holding person references, used by reverse lookups and merges
STORE_NAME_FIELDS: tuple[str, ...] = tuple(
    provider.bib_fields[0] for provider in STORE_FIELDS if provider.attribute in NAME_VARIABLES
)


_ARTICLE_TYPES = frozenset(
    {CitationType.ARTICLE_JOURNAL, CitationType.ARTICLE_MAGAZINE, CitationType.ARTICLE_NEWSPAPER}
)
_HOWPUBLISHED_TYPES = frozenset({CitationType.ARTICLE, CitationType.PAMPHLET})


def _is_periodical_article(record: CitationRecord) -> bool:
    return record.type in _ARTICLE_TYPES


IMPORT_FIELDS: tuple[FieldProvider, ...] = (
    string_field("title", "title", braced=True),
    string_field("title_short", "shorttitle", braced=True),
    string_field("container_title", "journaltitle", "journal", "booktitle", "maintitle", braced=True),
    string_field("collection_title", "series", braced=True),
    string_field("publisher", "publisher", "institution", "school", "organization", braced=True),
    string_field(
        "publisher",
        "howpublished",
        braced=True,
        when=lambda record: record.type in _HOWPUBLISHED_TYPES and record.publisher is None,
    ),
    string_field("publisher_place", "location", "address", braced=True),
    string_field("event", "eventtitle", braced=True),
    string_field("event_place", "venue", braced=True),
    string_field("genre", "type", braced=True),
    string_field("volume", "volume", braced=True),
    # BibLaTeX stores the issue of a periodical article in `number`
    string_field("issue", "issue", "number", braced=True, when=_is_periodical_article),
    string_field("issue", "issue", braced=True, when=lambda record: not _is_periodical_article(record)),
    string_field("number", "number", braced=True, when=lambda record: not _is_periodical_article(record)),
    string_field("number_of_volumes", "volumes", braced=True),
    string_field("number_of_pages", "pagetotal", braced=True),
    string_field("edition", "edition", braced=True),
    string_field("page", "pages", braced=True),
    string_field("version", "version", braced=True),
    string_field("status", "pubstate", braced=True),
    string_field("isbn", "isbn", braced=True),
    string_field("issn", "issn", braced=True),
    string_field("doi", "doi"),
    string_field("url", "url"),
    string_field("language", "language", "langid", braced=True),
    string_field("note", "note", "addendum", braced=True),
    string_field("abstract", "abstract", braced=True),
    name_list_field("author", "author"),
    name_list_field("editor", "editor"),
    name_list_field("translator", "translator"),
    name_list_field("container_author", "bookauthor"),
    date_field("issued", "date", part_fields=("year", "month", "day")),
    date_field("accessed", "urldate"),
    date_field("event_date", "eventdate"),
    date_field("original_date", "origdate"),
    categories_field("categories", "keywords", separator=","),
)


def decode_record(
    record: Mapping[str, Any],
    providers: Iterable[FieldProvider],
    context: FieldContext,
    *,
    target: CitationRecord | None = None,
) -> CitationRecord:
    """Apply every provider in table order and build a citation record.

    Providers only fill attributes that are still unset, so a later provider
    bound to the same attribute acts as a fallback.
    """
    result = target if target is not None else CitationRecord()
    for provider in providers:
        if not provider.applies_to(result):
            continue
        current = getattr(result, provider.attribute)
        if current not in (None, []):
            continue
        value = provider.decode(record, context)
        if value is not None:
            setattr(result, provider.attribute, value)
    return result


def encode_record(
    source: CitationRecord,
    providers: Iterable[FieldProvider],
    context: FieldContext,
    record: MutableMapping[str, Any] | None = None,
) -> MutableMapping[str, Any]:
    """Write every provider's attribute into the flat record."""
    target: MutableMapping[str, Any] = record if record is not None else {}
    written: set[str] = set()
    for provider in providers:
        if provider.bib_fields[0] in written or not provider.applies_to(source):
            continue
        provider.encode(getattr(source, provider.attribute), target, context)
        written.add(provider.bib_fields[0])
    return target


__all__ = [
    "IMPORT_FIELDS",
    "STORE_DATE_FIELDS",
    "STORE_FIELDS",
    "STORE_NAME_FIELDS",
    "FieldContext",
    "FieldProvider",
    "NameResolver",
    "categories_field",
    "date_field",
    "decode_record",
    "dedupe",
    "encode_record",
    "name_list_field",
    "person_references_field",
    "string_field",
    "type_field",
]
