from pathlib import Path

import pytest

from wikibib.core.errors import RepositoryError
from wikibib.core.repository import (
    ENTRY_CLASS,
    Address,
    Document,
    MemoryRepository,
    next_numbered_container,
)


def _addr(text: str) -> Address:
    return Address.parse(text, "wiki")


def test_address_parsing_and_hierarchy() -> None:
    container = Address.parse("wiki:A.B.WebHome")
    page = _addr("A.B.Page")

    assert container.is_container
    assert not page.is_container
    assert str(container) == "wiki:A.B.WebHome"
    assert page.local() == "A.B.Page"
    assert page.parent == container
    assert container.parent == _addr("A.WebHome")
    assert _addr("A.WebHome").parent is None
    assert container.page("Other") == _addr("A.B.Other")
    assert container.subspace("C") == _addr("A.B.C.WebHome")


@pytest.mark.parametrize("text", ["wiki:Page", "Page.With.", "wiki:A..WebHome"])
def test_address_rejects_malformed_text(text: str) -> None:
    with pytest.raises(ValueError):
        Address.parse(text, "wiki")


def test_address_needs_a_partition() -> None:
    with pytest.raises(ValueError):
        Address.parse("A.WebHome")


def test_repository_returns_private_copies() -> None:
    repository = MemoryRepository()
    document = Document(_addr("A.Page"), title="Original")
    repository.save(document)

    assert not document.is_new
    fetched = repository.get(_addr("A.Page"))
    assert fetched is not None
    fetched.title = "Changed"

    stored = repository.get(_addr("A.Page"))
    assert stored is not None
    assert stored.title == "Original"
    assert repository.get(_addr("A.Missing")) is None


def test_children_include_implied_subspaces_and_skip_hidden() -> None:
    repository = MemoryRepository(
        [
            Document(_addr("A.WebHome")),
            Document(_addr("A.Page")),
            Document(_addr("A.Secret"), hidden=True),
            Document(_addr("A.B.C.WebHome")),
            Document(_addr("Other.WebHome")),
        ]
    )

    assert repository.children(_addr("A.WebHome")) == [_addr("A.Page"), _addr("A.B.WebHome")]
    assert _addr("A.Secret") in repository.children(_addr("A.WebHome"), include_hidden=True)
    assert repository.children(_addr("A.Page")) == []


def test_query_filters_by_partition_and_predicate() -> None:
    repository = MemoryRepository(
        [
            Document(_addr("A.Entry"), objects={ENTRY_CLASS: {"id": "x1"}}),
            Document(_addr("A.Page")),
            Document(Address.parse("other:A.Entry"), objects={ENTRY_CLASS: {"id": "x1"}}),
        ]
    )

    found = repository.query("wiki", lambda document: document.has_object(ENTRY_CLASS))

    assert found == [_addr("A.Entry")]
    assert repository.partitions() == ["other", "wiki"]


def test_rename_container_moves_its_space() -> None:
    repository = MemoryRepository(
        [Document(_addr("A.WebHome")), Document(_addr("A.Page")), Document(_addr("A.B.WebHome"))]
    )

    repository.rename(_addr("A.WebHome"), _addr("Z.A.WebHome"))

    assert repository.addresses() == [_addr("Z.A.Page"), _addr("Z.A.WebHome"), _addr("Z.A.B.WebHome")]


def test_rename_refuses_existing_target() -> None:
    repository = MemoryRepository([Document(_addr("A.One")), Document(_addr("A.Two"))])

    with pytest.raises(RepositoryError):
        repository.rename(_addr("A.One"), _addr("A.Two"))
    with pytest.raises(RepositoryError):
        repository.rename(_addr("A.Missing"), _addr("A.Three"))


def test_yaml_snapshot_round_trip(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    repository = MemoryRepository([Document(_addr("A.Page"), title="Été", content="[^key]")])
    repository.add_partition("empty")

    repository.dump(store)
    loaded = MemoryRepository.load(store)

    assert loaded.partitions() == ["empty", "wiki"]
    document = loaded.get(_addr("A.Page"))
    assert document is not None
    assert (document.title, document.content) == ("Été", "[^key]")
    assert MemoryRepository.load(tmp_path / "missing.yaml").addresses() == []


def test_invalid_snapshot_raises(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    store.write_text("documents:\n  - title: no address\n", encoding="utf-8")

    with pytest.raises(RepositoryError):
        MemoryRepository.load(store)


def test_next_numbered_container() -> None:
    space = ("Bibliography", "Data", "Entries")
    repository = MemoryRepository()

    assert next_numbered_container(repository, "wiki", space, "Entry-") == Address("wiki", (*space, "Entry-1"))

    repository.save(Document(Address("wiki", (*space, "Entry-7"))))
    repository.save(Document(Address("wiki", (*space, "Entry-x"))))

    assert next_numbered_container(repository, "wiki", space, "Entry-") == Address("wiki", (*space, "Entry-8"))
