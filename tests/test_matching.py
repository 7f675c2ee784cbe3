"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Tests for mapping unresolved imports onto registry components.
"""

from __future__ import annotations

import pytest

from fakes import make_record
from registry_preview.resolution.matching import (ComponentMatch,
                                                  ImportMatcher,
                                                  UnresolvedImport,
                                                  shadcn_identifiers,
                                                  to_identifiers)
from registry_preview.storage.lookup import InMemoryComponentLookup


@pytest.fixture()
def matcher() -> ImportMatcher:
    lookup = InMemoryComponentLookup(
        [
            make_record("alice/button", names=["Button"]),
            make_record("bob/button", names=["Button", "ButtonGroup"]),
            make_record("carol/dialog", names=["Dialog", "DialogContent"]),
        ]
    )
    return ImportMatcher(lookup)


def test_unresolved_import_slug_is_last_path_segment() -> None:
    item = UnresolvedImport.from_dict({"path": "@/components/ui/button", "names": "Button"})

    assert item.slug == "button"
    assert item.names == ("Button",)


@pytest.mark.parametrize(
    "payload",
    [
        {"path": "@/components/ui/card", "names": 5},
        {"path": "@/components/ui/card", "names": ["Card", 3]},
        {"path": ["@/components/ui/card"], "names": ["Card"]},
    ],
)
def test_unresolved_import_rejects_malformed_payloads(payload) -> None:
    with pytest.raises(ValueError):
        UnresolvedImport.from_dict(payload)


def test_match_requires_every_imported_name(matcher: ImportMatcher) -> None:
    result = matcher.match(
        [
            {"path": "@/components/button", "names": ["Button", "ButtonGroup"]},
            {"path": "@/components/dialog", "names": ["Dialog"]},
            {"path": "@/components/dialog", "names": ["DialogTitle"]},
        ]
    )

    assert to_identifiers(result.matches) == ["bob/button", "carol/dialog"]
    assert [item.names for item in result.remaining] == [("DialogTitle",)]


def test_first_candidate_wins(matcher: ImportMatcher) -> None:
    result = matcher.match([UnresolvedImport("@/ui/button", ("Button",))])

    assert to_identifiers(result.matches) == ["alice/button"]
    assert result.remaining == ()


def test_unknown_slug_and_empty_path_remain(matcher: ImportMatcher) -> None:
    result = matcher.match([{"path": "@/ui/tooltip", "names": ["Tooltip"]}, {}])

    assert result.matches == ()
    assert len(result.remaining) == 2


def test_match_identifier_falls_back_to_registry_owner() -> None:
    assert ComponentMatch(slug="card").identifier == "shadcn/card"
    assert ComponentMatch(slug="hero", registry="magicui").identifier == "magicui/hero"
    assert ComponentMatch(slug="hero", author="dana").identifier == "dana/hero"


def test_shadcn_identifiers_normalise_names() -> None:
    assert shadcn_identifiers(["Alert Dialog", " Button ", "", "Radio  Group"]) == [
        "shadcn/alert-dialog",
        "shadcn/button",
        "shadcn/radio-group",
    ]
