from wikibib.core.repository import INDEX_CLASS, ORDER_CLASS, Address, Document, MemoryRepository
from wikibib.core.tree import NodeStore


def _addr(text: str) -> Address:
    return Address.parse(text, "wiki")


def _repository() -> MemoryRepository:
    return MemoryRepository(
        [
            Document(_addr("Top.WebHome")),
            Document(_addr("Top.Book.WebHome"), objects={INDEX_CLASS: {"expired": True}}),
            Document(_addr("Top.Book.P1"), objects={ORDER_CLASS: {"order": 1}}),
            Document(_addr("Top.Book.P0"), objects={ORDER_CLASS: {"order": 0}}),
            Document(_addr("Top.Book.Part.WebHome")),
            Document(_addr("Top.Book.Part.Leaf")),
        ]
    )


def test_children_are_ordered_explicitly_then_by_address() -> None:
    store = NodeStore(_repository())
    book = store.node(_addr("Top.Book.WebHome"))

    assert [child.address for child in book.children] == [
        _addr("Top.Book.P0"),
        _addr("Top.Book.P1"),
        _addr("Top.Book.Part.WebHome"),
    ]
    assert store.node(_addr("Top.Book.P0")).children == []


def test_walk_is_pre_order() -> None:
    store = NodeStore(_repository())

    walked = [node.address.local() for node in store.node(_addr("Top.Book.WebHome")).walk()]

    assert walked == [
        "Top.Book.WebHome",
        "Top.Book.P0",
        "Top.Book.P1",
        "Top.Book.Part.WebHome",
        "Top.Book.Part.Leaf",
    ]


def test_nodes_to_root_stops_at_the_index() -> None:
    store = NodeStore(_repository())
    leaf = store.node(_addr("Top.Book.Part.Leaf"))

    chain = [node.address.local() for node in leaf.nodes_to_root()]

    assert chain == ["Top.Book.Part.Leaf", "Top.Book.Part.WebHome", "Top.Book.WebHome"]
    assert leaf.root.is_index
    assert store.node(_addr("Top.WebHome")).root.address == _addr("Top.WebHome")


def test_missing_documents_are_tolerated() -> None:
    store = NodeStore(_repository())
    ghost = store.node(_addr("Top.Book.Ghost"))

    assert not ghost.exists
    assert ghost.order is None
    assert ghost.parent is not None
    assert ghost.root.address == _addr("Top.Book.WebHome")


def test_siblings_and_next_child_order() -> None:
    store = NodeStore(_repository())
    p0 = store.node(_addr("Top.Book.P0"))

    assert p0.next_sibling is not None
    assert p0.next_sibling.address == _addr("Top.Book.P1")
    assert p0.previous_sibling is None
    assert store.node(_addr("Top.Book.WebHome")).next_child_order() == 2


def test_set_children_persists_orders() -> None:
    repository = _repository()
    store = NodeStore(repository)
    book = store.node(_addr("Top.Book.WebHome"))
    part, p0, p1 = (store.node(_addr(text)) for text in ("Top.Book.Part.WebHome", "Top.Book.P0", "Top.Book.P1"))

    book.set_children([part, p1, p0])

    fresh = NodeStore(repository).node(_addr("Top.Book.WebHome"))
    assert [child.address.local() for child in fresh.children] == [
        "Top.Book.Part.WebHome",
        "Top.Book.P1",
        "Top.Book.P0",
    ]


def test_move_as_child_relocates_subtree() -> None:
    repository = _repository()
    store = NodeStore(repository)
    part = store.node(_addr("Top.Book.Part.WebHome"))
    top = store.node(_addr("Top.WebHome"))

    moved = part.move_as_child(top)

    assert moved.address == _addr("Top.Part.WebHome")
    assert repository.exists(_addr("Top.Part.Leaf"))
    assert not repository.exists(_addr("Top.Book.Part.Leaf"))
    assert _addr("Top.Part.WebHome") in [child.address for child in top.children]
