import textwrap
import threading

from wikibib.core.errors import ErrorKind
from wikibib.core.index import Index, recompute_lock
from wikibib.core.local_index import LocalCitationCollector, index_lock, scan_citations
from wikibib.core.repository import CONFIGURATION_CLASS, LOCAL_INDEX_CLASS, Address, MemoryRepository
from wikibib.core.service import BibliographyService
from wikibib.core.tree import NodeStore


LIBRARY = textwrap.dedent(
    """
    @article{alpha,
        author = {Doe, Jane},
        title = {Alpha},
        journal = {Journal},
        year = {2020},
    }
    @article{beta,
        author = {Roe, Richard},
        title = {Beta},
        journal = {Journal},
        year = {2021},
    }
    @book{gamma,
        author = {Poe, Edgar},
        title = {Gamma},
        publisher = {ACME},
        year = {2019},
    }
    """
)


def _addr(text: str, partition: str = "wiki") -> Address:
    return Address.parse(text, partition)


def _service(repository: MemoryRepository | None = None, partition: str = "wiki") -> BibliographyService:
    service = BibliographyService(repository or MemoryRepository(), partition)
    if not service.list_entries():
        assert len(service.import_bibtex(LIBRARY)) == 3
    return service


def test_scan_citations_forms() -> None:
    text = "See [^smith2020] and ^[a1,b1] then [^smith2020, c d] or [plain]."

    assert scan_citations(text) == ["smith2020", "a1", "b1"]
    assert scan_citations("") == []


def test_index_collects_keys_in_walk_order() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^beta] then [^alpha]")
    service.save_content(_addr("Book.Ch2"), "[^beta] [^gamma] [^alpha]")

    assert index.expired
    assert index.keys == ["beta", "alpha", "gamma"]
    assert [record.id for record in index.records] == ["beta", "alpha", "gamma"]
    assert not index.expired


def test_new_pages_are_appended_in_order() -> None:
    service = _service()
    service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Zed"), "[^alpha]")
    service.save_content(_addr("Book.Abc"), "[^beta]")

    index = service.index_for(_addr("Book.Abc"))

    assert index is not None
    assert index.keys == ["alpha", "beta"]


def test_content_changes_expire_the_index() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    service.save_content(_addr("Book.Ch2"), "[^beta]")
    assert index.keys == ["alpha", "beta"]

    service.save_content(_addr("Book.Ch1"), "[^gamma]")

    assert index.expired
    assert index.keys == ["gamma", "beta"]


def test_unchanged_content_keeps_the_cache() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    assert index.keys == ["alpha"]

    service.save_content(_addr("Book.Ch1"), "Reworded, still [^alpha]")

    assert not index.expired


def test_deleting_a_page_expires_the_index() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    service.save_content(_addr("Book.Ch2"), "[^beta]")
    assert index.keys == ["alpha", "beta"]

    assert service.delete(_addr("Book.Ch1"))

    assert index.expired
    assert index.keys == ["beta"]


def test_unresolved_keys_stay_listed_and_resolve_later() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha] [^later]")

    assert index.keys == ["alpha", "later"]
    assert [record.id for record in index.records] == ["alpha"]

    service.import_bibtex("@book{later, title = {Later}, publisher = {ACME}, year = {2022}}\n")
    index.expire()

    assert [record.id for record in index.records] == ["alpha", "later"]


def test_local_partition_wins_over_extra_sources() -> None:
    repository = MemoryRepository()
    shared = BibliographyService(repository, "shared")
    shared.import_bibtex(
        "@book{alpha, title = {Shared}, publisher = {X}, year = {2000}}\n"
        "@book{delta, title = {Delta}, publisher = {X}, year = {2001}}\n"
    )
    service = _service(repository)
    service.create_index(_addr("Book.WebHome"))
    document = repository.get(_addr("Book.WebHome"))
    assert document is not None
    document.get_object(CONFIGURATION_CLASS, create=True)["extra_sources"] = "shared"
    service.save(document)
    service.save_content(_addr("Book.Ch1"), "[^alpha] [^delta]")

    index = service.index_for(_addr("Book.Ch1"))

    assert index is not None
    assert index.sources() == ["wiki", "shared"]
    assert [record.title for record in index.records] == ["Alpha", "Delta"]


def test_bibliography_page_designation() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    service.save_content(_addr("Book.References"), "", bibliography_page=True)

    assert index.bibliography_page == _addr("Book.References")
    assert index.keys == ["alpha"]


def test_collector_without_keys_is_removed() -> None:
    service = _service()
    service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    service.save_content(_addr("Book.Ch1"), "no citations left")

    document = service.repository.get(_addr("Book.Ch1"))

    assert document is not None
    assert not document.has_object(LOCAL_INDEX_CLASS)


def test_collector_save_reports_whether_it_wrote() -> None:
    service = _service()
    service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    node = NodeStore(service.repository).node(_addr("Book.Ch1"))
    collector = LocalCitationCollector(node, service.errors)

    assert not collector.save()
    collector.set_keys(["alpha"])
    assert not collector.dirty
    collector.set_keys(["alpha", "beta"])
    assert collector.save()


def test_scope_all_lists_every_visible_entry() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    document = service.repository.get(_addr("Book.WebHome"))
    assert document is not None
    document.get_object(CONFIGURATION_CLASS, create=True)["scope"] = "all"
    service.save(document)
    service.save_content(_addr("Book.Ch1"), "[^beta]")

    assert [record.id for record in service.index_records(index)] == ["alpha", "beta", "gamma"]


def test_bibliography_rendering() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^beta] [^alpha]")

    text = service.bibliography(index)

    lines = text.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("[1] ")
    assert "Beta" in lines[0]
    assert "Alpha" in lines[1]
    assert ErrorKind.RENDER not in service.errors.kinds()


def test_rendering_failures_are_collected() -> None:
    service = _service()
    index = service.create_index(_addr("Book.WebHome"))
    document = service.repository.get(_addr("Book.WebHome"))
    assert document is not None
    document.get_object(CONFIGURATION_CLASS, create=True)["style"] = "no-such-style"
    service.save(document)
    service.save_content(_addr("Book.Ch1"), "[^alpha]")

    assert service.bibliography(index) == ""
    assert ErrorKind.RENDER in service.errors.kinds()


def test_index_for_outside_any_index() -> None:
    service = _service()

    assert service.index_for(_addr("Loose.Page")) is None
    assert isinstance(service.create_index(_addr("Book.WebHome")), Index)


class _PausingRepository(MemoryRepository):
    """Blocks the first read of one address until released."""

    def __init__(self) -> None:
        super().__init__()
        self.pause_on: Address | None = None
        self.reached = threading.Event()
        self.resume = threading.Event()

    def get(self, address: Address):
        document = super().get(address)
        if address == self.pause_on:
            self.pause_on = None
            self.reached.set()
            self.resume.wait(timeout=5)
        return document


def _paused_recompute(
    repository: _PausingRepository, index: Index, address: Address
) -> tuple[list[bool], threading.Thread]:
    results: list[bool] = []
    index.expire()
    repository.pause_on = address
    worker = threading.Thread(target=lambda: results.append(index.update()))
    worker.start()
    assert repository.reached.wait(timeout=5)
    return results, worker


def test_recompute_lock_is_shared_with_expiration() -> None:
    assert recompute_lock() is recompute_lock()
    assert recompute_lock() is index_lock()


def test_edit_during_recompute_expires_the_index() -> None:
    repository = _PausingRepository()
    service = _service(repository)
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    assert index.keys == ["alpha"]

    results, worker = _paused_recompute(repository, index, _addr("Book.Ch1"))
    editor = threading.Thread(target=service.save_content, args=(_addr("Book.Ch1"), "[^gamma]"))
    editor.start()
    editor.join(timeout=0.5)
    repository.resume.set()
    worker.join(timeout=5)
    editor.join(timeout=5)

    assert not worker.is_alive()
    assert not editor.is_alive()
    assert results == [True]
    assert index.expired
    assert index.keys == ["gamma"]


def test_concurrent_recomputes_run_once() -> None:
    repository = _PausingRepository()
    service = _service(repository)
    index = service.create_index(_addr("Book.WebHome"))
    service.save_content(_addr("Book.Ch1"), "[^alpha]")
    assert index.keys == ["alpha"]

    results, worker = _paused_recompute(repository, index, _addr("Book.Ch1"))
    second = threading.Thread(target=lambda: results.append(index.update()))
    second.start()
    second.join(timeout=0.5)
    assert second.is_alive()
    repository.resume.set()
    worker.join(timeout=5)
    second.join(timeout=5)

    assert sorted(results) == [False, True]
    assert not index.expired
    assert index.keys == ["alpha"]
