"""Bibliography configuration and its layered resolution.

BibliographyConfiguration

`style` (`str`)
: Name of the rendering style used for the combined bibliography of an index.

`entry_style` (`str`)
: Name of the rendering style used to compute the one-line display of every
  entry. Only read from the partition-wide layers.

`scope` (`Scope`)
: `cited` renders the keys collected in the subtree, `all` renders every
  entry visible from the index. `undefined` defers to the next layer.

`extra_sources` (`list[str]`)
: Partitions searched, in order, when a key is not found in the index's own
  partition.

Each attribute resolves independently: the index document, then the
partition default document `Bibliography.Configuration.Configuration`, then
the packaged `resources/configuration.yaml`. The first non-blank value wins,
except `extra_sources` which concatenates the index and partition layers.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from functools import lru_cache
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .errors import RepositoryError
from .repository import CONFIGURATION_CLASS, Address, Document, Repository


_log = logging.getLogger(__name__)

CONFIGURATION_SPACE: tuple[str, ...] = ("Bibliography", "Configuration")
CONFIGURATION_NAME = "Configuration"
DEFAULT_RESOURCE = Path(__file__).with_name("resources") / "configuration.yaml"


class Scope(str, Enum):
    """Which entries an index renders."""

    UNDEFINED = "undefined"
    CITED = "cited"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


class ConfigurationLayer(BaseModel):
    """One layer of configuration, every attribute optional."""

    model_config = ConfigDict(extra="forbid")

    style: str | None = None
    entry_style: str | None = None
    scope: Scope = Scope.UNDEFINED
    extra_sources: list[str] = Field(default_factory=list)

    @field_validator("style", "entry_style", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("scope", mode="before")
    @classmethod
    def _blank_scope(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Scope.UNDEFINED
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("extra_sources", mode="before")
    @classmethod
    def _split_sources(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.replace(",", "|").split("|")
        return [str(item).strip() for item in value if str(item).strip()]

    @classmethod
    def from_object(cls, values: Mapping[str, Any] | None) -> ConfigurationLayer:
        """Read a layer from a stored configuration object, ignoring bad values."""
        if not values:
            return cls()
        known = {key: values.get(key) for key in cls.model_fields if key in values}
        try:
            return cls.model_validate(known)
        except ValidationError as exc:
            _log.warning("Ignoring invalid configuration values: %s", exc)
            return cls()

    def to_object(self) -> dict[str, Any]:
        return {
            "style": self.style or "",
            "entry_style": self.entry_style or "",
            "scope": self.scope.value,
            "extra_sources": "|".join(self.extra_sources),
        }


class BibliographyConfiguration(BaseModel):
    """Fully resolved configuration of an index."""

    model_config = ConfigDict(extra="forbid")

    style: str
    entry_style: str
    scope: Scope
    extra_sources: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def default_layer() -> ConfigurationLayer:
    """Load the packaged default configuration."""
    payload = yaml.safe_load(DEFAULT_RESOURCE.read_text(encoding="utf-8")) or {}
    return ConfigurationLayer.model_validate(payload)


def configuration_address(partition: str) -> Address:
    """Return the partition default configuration document address."""
    return Address(partition, CONFIGURATION_SPACE, CONFIGURATION_NAME)


def partition_layer(repository: Repository, partition: str) -> ConfigurationLayer:
    """Read the partition default configuration, empty when missing or unreadable."""
    try:
        document = repository.get(configuration_address(partition))
    except RepositoryError as exc:
        _log.warning("Failed to read configuration of %s: %s", partition, exc)
        return ConfigurationLayer()
    if document is None:
        return ConfigurationLayer()
    return ConfigurationLayer.from_object(document.get_object(CONFIGURATION_CLASS))


def document_layer(document: Document | None) -> ConfigurationLayer:
    if document is None:
        return ConfigurationLayer()
    return ConfigurationLayer.from_object(document.get_object(CONFIGURATION_CLASS))


def _merge_sources(*layers: ConfigurationLayer) -> list[str]:
    seen: set[str] = set()
    merged: list[str] = []
    for layer in layers:
        for source in layer.extra_sources:
            if source not in seen:
                seen.add(source)
                merged.append(source)
    return merged


def resolve(*layers: ConfigurationLayer) -> BibliographyConfiguration:
    """Resolve layers given from most to least specific, ending with the default."""
    chain = (*layers, default_layer())

    def first(attribute: str) -> Any:
        for layer in chain:
            value = getattr(layer, attribute)
            if value is not None and value is not Scope.UNDEFINED:
                return value
        return None

    scope = first("scope") or Scope.CITED
    return BibliographyConfiguration(
        style=first("style") or "unsrt",
        entry_style=first("entry_style") or "unsrt",
        scope=scope,
        extra_sources=_merge_sources(*layers),
    )


def resolve_for(
    repository: Repository,
    partition: str,
    document: Document | None = None,
) -> BibliographyConfiguration:
    """Resolve the configuration seen by an index document of a partition."""
    return resolve(document_layer(document), partition_layer(repository, partition))


def resolve_default(repository: Repository, partition: str) -> BibliographyConfiguration:
    """Resolve the partition-wide configuration, ignoring any index layer."""
    return resolve(partition_layer(repository, partition))


__all__ = [
    "CONFIGURATION_NAME",
    "CONFIGURATION_SPACE",
    "BibliographyConfiguration",
    "ConfigurationLayer",
    "Scope",
    "configuration_address",
    "default_layer",
    "document_layer",
    "partition_layer",
    "resolve",
    "resolve_default",
    "resolve_for",
]
