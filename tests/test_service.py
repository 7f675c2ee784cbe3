"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

End-to-end tests for the preview orchestration service.
"""

from __future__ import annotations

import json
import threading

import pytest

from fakes import code_of, make_record
from registry_preview.models.components import StyleFragment
from registry_preview.resolution.matching import ImportMatcher
from registry_preview.resolution.resolver import DependencyResolver
from registry_preview.service import PreviewService
from registry_preview.storage.errors import ResolutionCancelledError
from registry_preview.styles.defaults import (DEFAULT_GLOBAL_CSS,
                                              DEFAULT_TAILWIND_CONFIG)
from registry_preview.styles.js_literal import parse_config_module

BRAND_CONFIG = "module.exports = { theme: { extend: { colors: { brand: '#123456' } } } }"


@pytest.fixture()
def service(registry) -> PreviewService:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b", "alice/c"], npm={"zod": "^3"}),
        make_record("alice/b", deps=["alice/c"], npm={"clsx": "^2.0.0"}),
        make_record("alice/c", tailwind=True, names=["Card"]),
        extra={"mem://alice/c/tailwind.config.js": BRAND_CONFIG},
    )
    return PreviewService(
        DependencyResolver(lookup, fetcher, max_workers=4),
        matcher=ImportMatcher(lookup),
    )


def test_build_preview_for_shared_dependency(service: PreviewService) -> None:
    bundle = service.build_preview("alice/a")

    assert bundle.root is not None
    assert list(bundle.dependencies) == ["alice/b", "alice/c"]
    config = bundle.styles.tailwind_config
    assert config.count("#123456") == 1
    assert parse_config_module(config)["theme"]["extend"]["colors"]["brand"] == "#123456"
    assert bundle.styles.global_css is DEFAULT_GLOBAL_CSS

    files = bundle.files
    assert files["/App.tsx"] == code_of("alice/a")
    assert files["/components/ui/b.tsx"] == code_of("alice/b")
    assert files["/components/ui/c.tsx"] == code_of("alice/c")
    package = json.loads(files["/package.json"])
    assert package["dependencies"]["zod"] == "^3"
    assert package["dependencies"]["clsx"] == "^2.0.0"


def test_flatten_excludes_root_unless_asked(service: PreviewService) -> None:
    assert list(service.flatten("alice/a")) == ["alice/b", "alice/c"]
    assert list(service.flatten("alice/a", include_root=True)) == [
        "alice/a",
        "alice/b",
        "alice/c",
    ]


def test_unresolvable_root_gives_empty_bundle(service: PreviewService) -> None:
    bundle = service.build_preview("alice/missing")

    assert bundle.root is None
    assert bundle.is_empty
    assert bundle.styles.tailwind_config is DEFAULT_TAILWIND_CONFIG
    assert bundle.to_dict()["files"] == {}


def test_preview_for_code_matches_imports(service: PreviewService) -> None:
    bundle = service.build_preview_for_code(
        "import { Card } from '@/components/ui/c'",
        ["alice/b"],
        {"react": "^18.3.1"},
        StyleFragment(global_css=":root { --own: 1; }"),
        unresolved_imports=[
            {"path": "@/components/ui/c", "names": ["Card"]},
            {"path": "@/components/ui/tooltip", "names": ["Tooltip"]},
        ],
    )

    assert list(bundle.dependencies) == ["alice/b", "alice/c"]
    assert "--own: 1;" in bundle.styles.global_css
    assert "#123456" in bundle.styles.tailwind_config
    assert bundle.files["/App.tsx"].startswith("import { Card }")
    assert json.loads(bundle.files["/package.json"])["dependencies"]["react"] == "^18.3.1"
    assert bundle.to_dict()["unresolvedImports"] == [
        {"path": "@/components/ui/tooltip", "names": ["Tooltip"]}
    ]


def test_match_imports_requires_a_matcher(registry) -> None:
    lookup, fetcher = registry()
    service = PreviewService(DependencyResolver(lookup, fetcher))

    with pytest.raises(RuntimeError):
        service.match_imports([{"path": "x/y"}])


def test_cancelled_preview_raises(service: PreviewService) -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ResolutionCancelledError):
        service.build_preview("alice/a", cancel_event=cancel)


def test_preview_for_code_resolves_shadcn_components(registry) -> None:
    lookup, fetcher = registry(
        make_record("shadcn/alert-dialog", deps=["shadcn/button"]),
        make_record("shadcn/button"),
        make_record("alice/card"),
    )
    service = PreviewService(DependencyResolver(lookup, fetcher))

    bundle = service.build_preview_for_code(
        "export default function App() { return null }",
        ["alice/card"],
        shadcn_components=["Alert Dialog"],
    )

    assert list(bundle.dependencies) == [
        "shadcn/alert-dialog",
        "shadcn/button",
        "alice/card",
    ]
    assert bundle.files["/components/ui/button.tsx"] == code_of("shadcn/button")
