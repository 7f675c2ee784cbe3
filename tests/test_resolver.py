"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Tests for the dependency graph resolver.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

import pytest

from fakes import FakeFetcher, code_of, make_record
from registry_preview.models.components import ComponentRecord
from registry_preview.resolution.flatten import flatten
from registry_preview.resolution.resolver import DependencyResolver
from registry_preview.storage.errors import (ArtifactStoreUnavailableError,
                                             RegistryUnavailableError,
                                             ResolutionCancelledError,
                                             ResolutionTimeoutError)
from registry_preview.storage.lookup import InMemoryComponentLookup


def test_leaf_component_resolves_with_code_and_empty_tree(registry) -> None:
    lookup, fetcher = registry(make_record("alice/button", npm={"clsx": "^2"}))
    resolver = DependencyResolver(lookup, fetcher)

    node = resolver.resolve("alice/button")

    assert node is not None
    assert node.identifier == "alice/button"
    assert node.author == "alice"
    assert node.component_slug == "button"
    assert node.code == code_of("alice/button")
    assert node.global_css is None
    assert node.tailwind_config is None
    assert dict(node.npm_dependencies) == {"clsx": "^2"}
    assert node.registry_dependency_identifiers == ()
    assert dict(node.registry_dependency_tree) == {}


@pytest.mark.parametrize(
    "identifier",
    ["", "button", "alice/", "/button", "a/b/c", "alice/my button", 42, None],
)
def test_invalid_identifiers_resolve_to_none_without_lookup(
    registry, identifier, caplog: pytest.LogCaptureFixture
) -> None:
    lookup, fetcher = registry(make_record("alice/button"))
    resolver = DependencyResolver(lookup, fetcher)

    with caplog.at_level(logging.ERROR):
        assert resolver.resolve(identifier) is None

    assert lookup.calls == []
    assert any("Invalid component identifier" in m for m in caplog.messages)


def test_unknown_user_and_component_resolve_to_none(
    registry, caplog: pytest.LogCaptureFixture
) -> None:
    lookup, fetcher = registry(make_record("alice/button"))
    resolver = DependencyResolver(lookup, fetcher)

    with caplog.at_level(logging.ERROR):
        assert resolver.resolve("nobody/button") is None
        assert resolver.resolve("alice/missing") is None

    assert "User not found: nobody" in caplog.messages
    assert "Component not found: alice/missing" in caplog.messages


def test_missing_dependency_leaves_none_entry(registry) -> None:
    lookup, fetcher = registry(make_record("alice/card", deps=["alice/ghost"]))
    resolver = DependencyResolver(lookup, fetcher)

    node = resolver.resolve("alice/card")

    assert node is not None
    assert dict(node.registry_dependency_tree) == {"alice/ghost": None}


def test_cycle_is_cut_at_the_repeated_ancestor(
    registry, caplog: pytest.LogCaptureFixture
) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b"]),
        make_record("alice/b", deps=["alice/a"]),
    )
    resolver = DependencyResolver(lookup, fetcher)

    with caplog.at_level(logging.WARNING):
        node = resolver.resolve("alice/a")

    assert node is not None
    child = node.registry_dependency_tree["alice/b"]
    assert child is not None
    assert child.registry_dependency_tree["alice/a"] is None
    assert "Circular dependency detected: alice/a" in caplog.messages


def test_self_dependency_is_a_cycle(registry) -> None:
    lookup, fetcher = registry(make_record("alice/loop", deps=["alice/loop"]))

    node = DependencyResolver(lookup, fetcher).resolve("alice/loop")

    assert node is not None
    assert dict(node.registry_dependency_tree) == {"alice/loop": None}


def test_cousins_may_resolve_the_same_dependency(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b", "alice/c"]),
        make_record("alice/b", deps=["alice/c"]),
        make_record("alice/c", deps=["alice/b"]),
    )

    node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    assert node is not None
    b = node.registry_dependency_tree["alice/b"]
    c = node.registry_dependency_tree["alice/c"]
    assert b is not None and c is not None
    # Under b, c resolves and its own reference back to b is the cycle.
    c_under_b = b.registry_dependency_tree["alice/c"]
    assert c_under_b is not None
    assert c_under_b.registry_dependency_tree["alice/b"] is None
    # Symmetrically under c.
    b_under_c = c.registry_dependency_tree["alice/b"]
    assert b_under_c is not None
    assert b_under_c.registry_dependency_tree["alice/c"] is None


def test_depth_limit_truncates_deeper_nodes(
    registry, caplog: pytest.LogCaptureFixture
) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b"]),
        make_record("alice/b", deps=["alice/c"]),
        make_record("alice/c", deps=["alice/d"]),
        make_record("alice/d"),
    )
    resolver = DependencyResolver(lookup, fetcher)

    with caplog.at_level(logging.WARNING):
        node = resolver.resolve("alice/a", max_depth=2)

    assert node is not None
    b = node.registry_dependency_tree["alice/b"]
    assert b is not None
    assert dict(b.registry_dependency_tree) == {"alice/c": None}
    assert ("alice", "c") not in lookup.calls
    assert any("Maximum dependency depth 2" in m for m in caplog.messages)
    # Depth 2 is the smallest limit whose flattened set is non-empty.
    assert list(flatten(node)) == ["alice/b"]


def test_depth_one_keeps_only_the_root(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b"]),
        make_record("alice/b"),
    )

    node = DependencyResolver(lookup, fetcher).resolve("alice/a", max_depth=1)

    assert node is not None
    assert dict(node.registry_dependency_tree) == {"alice/b": None}
    assert flatten(node) == {}


def test_entry_checks_run_before_lookup(registry) -> None:
    lookup, fetcher = registry(make_record("alice/a"))
    resolver = DependencyResolver(lookup, fetcher)

    assert resolver.resolve("alice/a", max_depth=3, current_depth=3) is None
    assert resolver.resolve("alice/a", visited=frozenset({"alice/a"})) is None
    assert lookup.calls == []


def test_visited_set_passed_in_is_not_mutated(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b"]), make_record("alice/b")
    )
    visited = frozenset({"alice/root"})

    DependencyResolver(lookup, fetcher).resolve("alice/a", visited=visited)

    assert visited == frozenset({"alice/root"})


def test_shared_dependency_is_looked_up_once_per_request(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b", "alice/c"]),
        make_record("alice/b", deps=["alice/d"]),
        make_record("alice/c", deps=["alice/d"]),
        make_record("alice/d"),
    )
    resolver = DependencyResolver(lookup, fetcher)

    node = resolver.resolve("alice/a")

    assert node is not None
    b = node.registry_dependency_tree["alice/b"]
    c = node.registry_dependency_tree["alice/c"]
    assert b.registry_dependency_tree["alice/d"] is not None
    assert c.registry_dependency_tree["alice/d"] is not None
    assert lookup.calls.count(("alice", "d")) == 1
    assert fetcher.calls.count("mem://alice/d/code.tsx") == 1
    assert resolver.last_load_count == 4

    # Nothing is cached across requests.
    resolver.resolve("alice/a")
    assert lookup.calls.count(("alice", "d")) == 2


def test_fetch_failure_degrades_the_field_only(
    caplog: pytest.LogCaptureFixture,
) -> None:
    record = make_record("alice/a", css=True, tailwind=True)
    lookup = InMemoryComponentLookup([record])
    fetcher = FakeFetcher({record.global_css_url: ":root { --x: 1; }"})

    with caplog.at_level(logging.ERROR):
        node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    assert node is not None
    assert node.code is None
    assert node.tailwind_config is None
    assert node.global_css == ":root { --x: 1; }"
    assert any("Error fetching artifact" in m for m in caplog.messages)


def test_empty_artifact_is_treated_as_absent() -> None:
    record = make_record("alice/a")
    lookup = InMemoryComponentLookup([record])
    fetcher = FakeFetcher({record.code_url: ""})

    node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    assert node is not None
    assert node.code is None


def test_json_string_declarations_are_normalised(registry) -> None:
    root = ComponentRecord(
        author="alice",
        slug="a",
        code_url="mem://alice/a/code.tsx",
        registry_dependencies='["alice/b", 7, null, "alice/b"]',
        npm_dependencies='{"framer-motion": "^11"}',
    )
    lookup, fetcher = registry(root, make_record("alice/b"))

    node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    assert node is not None
    assert node.registry_dependency_identifiers == ("alice/b",)
    assert node.registry_dependency_tree["alice/b"] is not None
    assert dict(node.npm_dependencies) == {"framer-motion": "^11"}


def test_malformed_declaration_is_treated_as_empty(
    registry, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.ERROR):
        root = ComponentRecord(
            author="alice", slug="a", registry_dependencies='["alice/b"'
        )
    lookup, fetcher = registry(root)

    node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    assert node is not None
    assert node.registry_dependency_identifiers == ()
    assert any("Error parsing registry dependency" in m for m in caplog.messages)


def test_artifact_store_outage_propagates(registry) -> None:
    lookup, _ = registry(make_record("alice/a"))
    fetcher = FakeFetcher(unavailable=True)

    with pytest.raises(ArtifactStoreUnavailableError):
        DependencyResolver(lookup, fetcher).resolve("alice/a")


class _OfflineLookup:
    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        raise RegistryUnavailableError("database offline")

    def find_by_slug(self, slug: str) -> List[ComponentRecord]:
        return []


def test_registry_outage_propagates() -> None:
    resolver = DependencyResolver(_OfflineLookup(), FakeFetcher())

    with pytest.raises(RegistryUnavailableError):
        resolver.resolve("alice/a")


def test_preset_cancel_event_aborts(registry) -> None:
    lookup, fetcher = registry(make_record("alice/a"))
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(ResolutionCancelledError):
        DependencyResolver(lookup, fetcher).resolve("alice/a", cancel_event=cancel)


class _BlockingLookup(InMemoryComponentLookup):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.release = threading.Event()

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        self.release.wait(5)
        return super().lookup(author, slug)


def test_timeout_aborts_a_stalled_resolution() -> None:
    record = make_record("alice/a")
    lookup = _BlockingLookup([record])
    resolver = DependencyResolver(lookup, FakeFetcher())

    started = time.monotonic()
    try:
        with pytest.raises(ResolutionTimeoutError):
            resolver.resolve("alice/a", timeout=0.1)
    finally:
        lookup.release.set()

    assert time.monotonic() - started < 2


def test_cancel_event_set_while_waiting_aborts() -> None:
    lookup = _BlockingLookup([make_record("alice/a")])
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(ResolutionCancelledError):
            DependencyResolver(lookup, FakeFetcher()).resolve(
                "alice/a", cancel_event=cancel
            )
    finally:
        timer.cancel()
        lookup.release.set()


def test_resolve_many_omits_failures_and_duplicates(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/c"]),
        make_record("alice/b", deps=["alice/c"]),
        make_record("alice/c"),
    )
    resolver = DependencyResolver(lookup, fetcher)

    roots = resolver.resolve_many(
        ["alice/a", "bad id", "alice/missing", "alice/b", "alice/a"]
    )

    assert list(roots) == ["alice/a", "alice/b"]
    assert lookup.calls.count(("alice", "c")) == 1


class _CountingLookup(InMemoryComponentLookup):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._lock = threading.Lock()
        self.in_flight = 0
        self.peak = 0

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        time.sleep(0.02)
        with self._lock:
            self.in_flight -= 1
        return super().lookup(author, slug)


def test_fan_out_is_bounded_by_max_workers() -> None:
    children = [f"alice/child-{index}" for index in range(8)]
    records = [make_record("alice/root", deps=children)]
    records.extend(make_record(child) for child in children)
    lookup = _CountingLookup(records)
    resolver = DependencyResolver(lookup, FakeFetcher(), max_workers=2)

    node = resolver.resolve("alice/root")

    assert node is not None
    assert list(node.registry_dependency_tree) == children
    assert lookup.peak <= 2


def test_resolved_nodes_are_read_only(registry) -> None:
    lookup, fetcher = registry(
        make_record("alice/a", deps=["alice/b"]), make_record("alice/b")
    )
    node = DependencyResolver(lookup, fetcher).resolve("alice/a")

    with pytest.raises(TypeError):
        node.registry_dependency_tree["alice/x"] = None  # type: ignore[index]
    with pytest.raises(TypeError):
        node.npm_dependencies["react"] = "18"  # type: ignore[index]


def test_max_workers_must_be_positive(registry) -> None:
    lookup, fetcher = registry()

    with pytest.raises(ValueError):
        DependencyResolver(lookup, fetcher, max_workers=0)
