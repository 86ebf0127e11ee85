from pathlib import Path
import textwrap

from typer.testing import CliRunner
import yaml

from wikibib.ui.cli import app


LIBRARY = """
@article{alpha,
    author = {Doe, Jane},
    title = {Alpha},
    journal = {Journal},
    year = {2020},
}
@book{beta,
    author = {Roe, Richard},
    title = {Beta},
    publisher = {ACME},
    year = {2021},
}
"""


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")
    return path


def _invoke(store: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(app, ["--store", str(store), *args], env={"COLUMNS": "200"})


def test_import_writes_the_store(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)

    result = _invoke(store, "import", str(bib))

    assert result.exit_code == 0, result.output
    payload = yaml.safe_load(store.read_text(encoding="utf-8"))
    assert "wiki" in payload["partitions"]
    titles = {document["title"] for document in payload["documents"]}
    assert {"alpha", "beta", "Doe, Jane", "Roe, Richard"} <= titles


def test_reimport_reports_rejections(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)
    assert _invoke(store, "import", str(bib)).exit_code == 0

    result = _invoke(store, "import", str(bib))

    assert result.exit_code == 1
    assert "id-already-exists" in result.stderr


def test_export_and_entries(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)
    _invoke(store, "import", str(bib))

    exported = _invoke(store, "export", "beta")
    listed = _invoke(store, "entries")

    assert exported.exit_code == 0, exported.output
    assert exported.stdout.startswith("@book{beta,")
    assert "@article{alpha" not in exported.stdout
    assert listed.exit_code == 0, listed.output
    assert "alpha" in listed.stdout
    assert "beta" in listed.stdout


def test_export_to_file(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)
    output = tmp_path / "out.bib"
    _invoke(store, "import", str(bib))

    result = _invoke(store, "export", "--output", str(output))

    assert result.exit_code == 0, result.output
    text = output.read_text(encoding="utf-8")
    assert text.index("@article{alpha") < text.index("@book{beta")


def test_index_scan_and_bibliography(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)
    page = _write(tmp_path, "chapter.md", "Results [^beta] agree with ^[alpha].")
    _invoke(store, "import", str(bib))

    created = _invoke(store, "index", "Book.WebHome")
    scanned = _invoke(store, "scan", "Book.Chapter", str(page), "--title", "Chapter")
    rendered = _invoke(store, "bibliography", "Book.Chapter")
    cited = _invoke(store, "cite", "beta")

    assert created.exit_code == 0, created.output
    assert scanned.exit_code == 0, scanned.output
    assert scanned.stdout.split() == ["beta", "alpha"]
    assert rendered.exit_code == 0, rendered.output
    lines = rendered.stdout.splitlines()
    assert lines[0].startswith("[1] ")
    assert "Beta" in lines[0]
    assert "Book.Chapter" in cited.stdout


def test_bibliography_without_index_fails(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"

    result = _invoke(store, "bibliography", "Loose.Page")

    assert result.exit_code == 1


def test_refresh_and_partition_option(tmp_path: Path) -> None:
    store = tmp_path / "store.yaml"
    bib = _write(tmp_path, "library.bib", LIBRARY)
    _invoke(store, "--partition", "other", "import", str(bib))

    other = _invoke(store, "--partition", "other", "refresh")
    default = _invoke(store, "entries")

    assert other.exit_code == 0, other.output
    assert "Refreshed 2 entries" in other.stderr
    assert "alpha" not in default.stdout


def test_invalid_address_is_a_usage_error(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "store.yaml", "index", "NoSpace")

    assert result.exit_code == 2
