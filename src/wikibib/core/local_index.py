"""Per-node citation collection and content scanning."""

from __future__ import annotations

from collections.abc import Iterable
import logging
import re
from threading import Lock

from .errors import ErrorCollector, ErrorKind, RepositoryError
from .fields import dedupe
from .repository import INDEX_CLASS, LOCAL_INDEX_CLASS, Document
from .text import parse_flag
from .tree import Node


_log = logging.getLogger(__name__)

# Shared by index recomputation and every expiration write.
_INDEX_LOCK = Lock()

_KEY_RE = re.compile(r"^[0-9A-Za-z_:.-]+$")
_CITATION_RE = re.compile(r"(?:\[\^|\^\[)(?P<keys>[^\]\[]+)\]")


def scan_citations(text: str | None) -> list[str]:
    """Extract citation keys written as `[^key]`, `[^a,b]` or `^[a,b]`.

    Keys are returned in first-occurrence order without duplicates; tokens
    that cannot be citation keys are ignored.
    """
    if not text:
        return []
    keys: list[str] = []
    for match in _CITATION_RE.finditer(text):
        for candidate in match.group("keys").split(","):
            candidate = candidate.strip()
            if candidate and _KEY_RE.match(candidate):
                keys.append(candidate)
    return dedupe(keys)


def _split_keys(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return dedupe(str(item) for item in value)
    return dedupe(str(value).split("|"))


def index_lock() -> Lock:
    """Return the lock serializing index recomputation and expiration."""
    return _INDEX_LOCK


def expire_nearest_index(node: Node, errors: ErrorCollector | None = None) -> Node | None:
    """Mark the index owning `node` as expired and return its node.

    The flag is written under the index lock, so an edit made while a
    recompute runs is applied after it and is never lost.
    """
    root = node.root
    if not root.is_index:
        return None
    with _INDEX_LOCK:
        try:
            document = root.repository.get(root.address)
        except RepositoryError as exc:
            _log.warning("Failed to read index %s: %s", root.address, exc)
            if errors is not None:
                errors.add(ErrorKind.GET_DOCUMENT, str(root.address))
            return None
        if document is None:
            return None
        values = document.get_object(INDEX_CLASS, create=True)
        if parse_flag(values.get("expired")):
            return root
        values["expired"] = True
        try:
            root.repository.save(document)
        except RepositoryError as exc:
            _log.warning("Failed to expire index %s: %s", root.address, exc)
            if errors is not None:
                errors.add(ErrorKind.SAVE_DOCUMENT, str(root.address))
            return None
    _log.debug("Index %s expired by %s.", root.address, node.address)
    return root


class LocalCitationCollector:
    """Keys cited on one node and its bibliography-output flag."""

    FIELD_KEYS = "keys"
    FIELD_BIBLIOGRAPHY_PAGE = "bibliography_page"

    def __init__(self, node: Node, errors: ErrorCollector | None = None) -> None:
        self.node = node
        self.errors = errors
        values = node.object(LOCAL_INDEX_CLASS) or {}
        self._keys = _split_keys(values.get(self.FIELD_KEYS))
        self._bibliography_page = parse_flag(values.get(self.FIELD_BIBLIOGRAPHY_PAGE))
        self._dirty = False

    @property
    def keys(self) -> list[str]:
        return list(self._keys)

    def set_keys(self, keys: Iterable[str]) -> None:
        values = dedupe(keys)
        if values != self._keys:
            self._keys = values
            self._dirty = True

    @property
    def is_bibliography_page(self) -> bool:
        return self._bibliography_page

    def set_bibliography_page(self, flag: bool) -> None:
        flag = bool(flag)
        if flag != self._bibliography_page:
            self._bibliography_page = flag
            self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def is_empty(self) -> bool:
        return not self._keys and not self._bibliography_page

    def save(self) -> bool:
        """Persist a dirty collector and expire the owning index.

        An empty collector that is not the output page is removed from its
        node. Returns whether anything was written.
        """
        if not self._dirty:
            return False
        document = self.node.document
        if document is None:
            document = Document(self.node.address)
        if self.is_empty:
            document.remove_object(LOCAL_INDEX_CLASS)
        else:
            values = document.get_object(LOCAL_INDEX_CLASS, create=True)
            values[self.FIELD_KEYS] = "|".join(self._keys)
            values[self.FIELD_BIBLIOGRAPHY_PAGE] = self._bibliography_page
        try:
            self.node.repository.save(document)
        except RepositoryError as exc:
            _log.warning("Failed to save citations of %s: %s", self.node.address, exc)
            if self.errors is not None:
                self.errors.add(ErrorKind.SAVE_DOCUMENT, str(self.node.address))
            return False
        self.node.refresh()
        self._dirty = False
        expire_nearest_index(self.node, self.errors)
        return True


__all__ = ["LocalCitationCollector", "expire_nearest_index", "index_lock", "scan_citations"]
