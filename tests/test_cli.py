import json

import pytest

from fakes import FakeFetcher, artifacts_for, code_of, make_record
from registry_preview import cli
from registry_preview.resolution.resolver import DependencyResolver
from registry_preview.service import PreviewService
from registry_preview.storage.lookup import InMemoryComponentLookup


def _factory(fetcher=None):
    records = [
        make_record("alice/a", deps=["alice/b"]),
        make_record("alice/b", registry="lib"),
    ]
    lookup = InMemoryComponentLookup(records)
    fetcher = fetcher or FakeFetcher(artifacts_for(records))
    return lambda: PreviewService(DependencyResolver(lookup, fetcher))


def test_resolve_prints_tree(capsys):
    rc = cli.main(["resolve", "alice/a"], service_factory=_factory())
    assert rc == cli.EXIT_OK
    tree = json.loads(capsys.readouterr().out)
    assert tree["identifier"] == "alice/a"
    assert tree["registryDependencyTree"]["alice/b"]["registry"] == "lib"


def test_flatten_with_and_without_root(capsys):
    assert cli.main(["flatten", "alice/a"], service_factory=_factory()) == 0
    assert json.loads(capsys.readouterr().out) == ["alice/b"]
    assert cli.main(["flatten", "alice/a", "--include-root"], service_factory=_factory()) == 0
    assert json.loads(capsys.readouterr().out) == ["alice/a", "alice/b"]


def test_preview_writes_files(tmp_path):
    rc = cli.main(
        ["preview", "alice/a", "--output-dir", str(tmp_path)],
        service_factory=_factory(),
    )
    assert rc == 0
    assert (tmp_path / "App.tsx").read_text(encoding="utf-8") == code_of("alice/a")
    assert (tmp_path / "lib" / "b.tsx").exists()
    assert json.loads((tmp_path / "package.json").read_text())["name"] == "component-project"


def test_preview_prints_file_map(capsys):
    assert cli.main(["preview", "alice/a"], service_factory=_factory()) == 0
    files = json.loads(capsys.readouterr().out)
    assert "/tailwind.config.js" in files


def test_invalid_identifier_and_missing_component(capsys):
    assert cli.main(["resolve", "not-an-id"], service_factory=_factory()) == cli.EXIT_USAGE
    assert cli.main(["resolve", "alice/zzz"], service_factory=_factory()) == cli.EXIT_NOT_FOUND
    assert cli.main(["preview", "alice/zzz"], service_factory=_factory()) == cli.EXIT_NOT_FOUND
    assert "could not be resolved" in capsys.readouterr().err


def test_backend_outage_exit_code(capsys):
    rc = cli.main(
        ["resolve", "alice/a"],
        service_factory=_factory(FakeFetcher(unavailable=True)),
    )
    assert rc == cli.EXIT_UNAVAILABLE
    assert "offline" in capsys.readouterr().err


def test_argument_errors_and_help():
    assert cli.main([]) == cli.EXIT_USAGE
    assert cli.main(["--help"]) == cli.EXIT_OK


def test_merge_styles_from_files(tmp_path, capsys):
    config = tmp_path / "tailwind.config.js"
    config.write_text("module.exports = { theme: { extend: { colors: { brand: '#123456' } } } }")
    css = tmp_path / "globals.css"
    css.write_text(":root { --brand: 1; }")

    rc = cli.main(
        ["merge-styles", "--tailwind", str(config), "--css", str(css), "--policy", "error"]
    )
    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert "#123456" in payload["tailwindConfig"]
    assert "--brand: 1;" in payload["globalCss"]


def test_merge_styles_missing_file(tmp_path):
    assert cli.main(["merge-styles", "--css", str(tmp_path / "nope.css")]) == cli.EXIT_USAGE


def test_write_files_refuses_escape(tmp_path):
    with pytest.raises(ValueError):
        cli._write_files(tmp_path, {"/../escape.txt": "x"})
