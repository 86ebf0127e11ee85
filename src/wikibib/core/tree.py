"""Hierarchical navigation over repository documents.

A `NodeStore` owns every `Node` created during one walk, keyed by address.
Nodes only reference each other by address and go through the store, so
relocating a node or refreshing a subtree is a matter of dropping store
entries rather than chasing object references.
"""

from __future__ import annotations

from collections.abc import Iterator
import logging
from typing import Any

from .errors import RepositoryError
from .repository import INDEX_CLASS, ORDER_CLASS, Address, Document, Repository


_log = logging.getLogger(__name__)


class NodeStore:
    """Arena of tree nodes shared by one traversal."""

    def __init__(self, repository: Repository) -> None:
        self.repository = repository
        self._nodes: dict[Address, Node] = {}

    def node(self, address: Address) -> Node:
        """Return the node for an address, creating it on first use."""
        node = self._nodes.get(address)
        if node is None:
            node = Node(self, address)
            self._nodes[address] = node
        return node

    def forget(self, address: Address) -> None:
        """Drop a node so the next access refetches it."""
        self._nodes.pop(address, None)

    def reset(self) -> None:
        self._nodes.clear()

    def __contains__(self, address: object) -> bool:
        return address in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


class Node:
    """A lazily resolved repository document seen as a tree node."""

    __slots__ = ("_children", "_document", "_fetched", "address", "store")

    def __init__(self, store: NodeStore, address: Address) -> None:
        self.store = store
        self.address = address
        self._document: Document | None = None
        self._fetched = False
        self._children: list[Address] | None = None

    def __repr__(self) -> str:
        return f"Node({self.address})"

    @property
    def repository(self) -> Repository:
        return self.store.repository

    @property
    def document(self) -> Document | None:
        """Fetch the underlying document once; `None` when missing or unreadable."""
        if not self._fetched:
            self._fetched = True
            try:
                self._document = self.repository.get(self.address)
            except RepositoryError as exc:
                _log.warning("Failed to fetch %s: %s", self.address, exc)
                self._document = None
        return self._document

    def refresh(self) -> None:
        """Forget the fetched document and children."""
        self._document = None
        self._fetched = False
        self._children = None

    @property
    def exists(self) -> bool:
        return self.document is not None

    @property
    def is_container(self) -> bool:
        return self.address.is_container

    @property
    def is_index(self) -> bool:
        document = self.document
        return document is not None and document.has_object(INDEX_CLASS)

    def object(self, class_name: str) -> dict[str, Any] | None:
        document = self.document
        return document.get_object(class_name) if document is not None else None

    @property
    def order(self) -> int | None:
        """Return the explicit sibling order, if any."""
        values = self.object(ORDER_CLASS)
        if not values:
            return None
        raw = values.get("order")
        if raw is None or raw == "":
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    def set_order(self, order: int | None) -> None:
        """Persist a new explicit order, `None` removing it."""
        document = self.document
        if document is None:
            raise RepositoryError(f"Cannot order missing document {self.address}.")
        if order is None:
            document.remove_object(ORDER_CLASS)
        else:
            document.get_object(ORDER_CLASS, create=True)["order"] = int(order)
        self.repository.save(document)

    def _sort_key(self) -> tuple[bool, int, Address]:
        order = self.order
        return (order is None, order or 0, self.address)

    @property
    def children(self) -> list[Node]:
        """Return the ordered child nodes; non-containers have none."""
        if not self.is_container:
            return []
        if self._children is None:
            try:
                addresses = self.repository.children(self.address)
            except RepositoryError as exc:
                _log.warning("Failed to list children of %s: %s", self.address, exc)
                addresses = []
            nodes = sorted((self.store.node(address) for address in addresses), key=Node._sort_key)
            self._children = [node.address for node in nodes]
        return [self.store.node(address) for address in self._children]

    def reset_children(self) -> None:
        self._children = None

    @property
    def parent(self) -> Node | None:
        parent_address = self.address.parent
        return self.store.node(parent_address) if parent_address is not None else None

    def walk(self) -> Iterator[Node]:
        """Yield this node and its descendants in pre-order."""
        visited: set[Address] = set()
        stack: list[Node] = [self]
        while stack:
            node = stack.pop()
            if node.address in visited:
                continue
            visited.add(node.address)
            yield node
            stack.extend(reversed(node.children))

    def nodes_to_root(self) -> list[Node]:
        """Return the ancestor chain up to the nearest index node or top container."""
        chain: list[Node] = []
        visited: set[Address] = set()
        current: Node | None = self
        while current is not None and current.address not in visited:
            visited.add(current.address)
            chain.append(current)
            if current.is_index:
                break
            current = current.parent
        return chain

    @property
    def root(self) -> Node:
        return self.nodes_to_root()[-1]

    @property
    def siblings(self) -> list[Node]:
        parent = self.parent
        if parent is None:
            return [self]
        return parent.children

    def _sibling(self, offset: int) -> Node | None:
        siblings = self.siblings
        for position, sibling in enumerate(siblings):
            if sibling.address == self.address:
                target = position + offset
                return siblings[target] if 0 <= target < len(siblings) else None
        return None

    @property
    def next_sibling(self) -> Node | None:
        return self._sibling(1)

    @property
    def previous_sibling(self) -> Node | None:
        return self._sibling(-1)

    def next_child_order(self) -> int:
        """Return the order placing a new child after every ordered child."""
        orders = [child.order for child in self.children if child.order is not None]
        return max(orders) + 1 if orders else 0

    def move_as_child(self, parent: Node) -> Node:
        """Move this node under another container and return its new node."""
        if not parent.is_container:
            raise RepositoryError(f"{parent.address} cannot hold children.")
        if self.is_container:
            target = parent.address.subspace(self.address.space_name)
        else:
            target = parent.address.page(self.address.name)
        if target == self.address:
            return self
        old_parent = self.parent
        self.repository.rename(self.address, target)
        self.store.forget(self.address)
        self.refresh()
        if old_parent is not None:
            old_parent.reset_children()
        parent.reset_children()
        return self.store.node(target)

    def set_children(self, children: list[Node]) -> None:
        """Persist the given order of children as explicit sibling orders."""
        for position, child in enumerate(children):
            if child.order != position:
                child.set_order(position)
        self.reset_children()


__all__ = ["Node", "NodeStore"]
