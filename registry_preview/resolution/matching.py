"""Map imports reported by the code preprocessor to registry identifiers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from registry_preview.models.components import (DEFAULT_REGISTRY,
                                                 ComponentRecord)
from registry_preview.storage.lookup import ComponentLookup

_LOGGER = logging.getLogger(__name__)

SHADCN_AUTHOR = "shadcn"
_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class UnresolvedImport:
    """An import path plus the names imported from it."""

    path: str
    names: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UnresolvedImport":
        path = payload.get("path") or ""
        names = payload.get("names") or ()
        if isinstance(names, str):
            names = (names,)
        if not isinstance(path, str):
            raise ValueError("Import path must be a string.")
        if not isinstance(names, (list, tuple)) or not all(
            isinstance(name, str) for name in names
        ):
            raise ValueError("Import names must be a list of strings.")
        return cls(path=path, names=tuple(names))

    @property
    def slug(self) -> str:
        return self.path.rstrip().split("/")[-1]


@dataclass(frozen=True)
class ComponentMatch:
    slug: str
    registry: str = DEFAULT_REGISTRY
    author: Optional[str] = None
    component_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: ComponentRecord) -> "ComponentMatch":
        return cls(
            slug=record.slug,
            registry=record.registry,
            author=record.author,
            component_id=record.component_id,
        )

    @property
    def identifier(self) -> str:
        if self.author:
            return f"{self.author}/{self.slug}"
        owner = SHADCN_AUTHOR if self.registry == DEFAULT_REGISTRY else self.registry
        return f"{owner}/{self.slug}"


@dataclass(frozen=True)
class MatchResult:
    matches: Tuple[Tuple[UnresolvedImport, ComponentMatch], ...]
    remaining: Tuple[UnresolvedImport, ...]


class ImportMatcher:
    """Find the registry component that provides each unresolved import.

    A candidate matches when its slug equals the last segment of the import
    path and its exported ``component_names`` include every imported name.
    Candidates are checked in store order; the first match wins.
    """

    def __init__(self, lookup: ComponentLookup) -> None:
        self._lookup = lookup

    def match(self, imports: Iterable[Any]) -> MatchResult:
        matches: List[Tuple[UnresolvedImport, ComponentMatch]] = []
        remaining: List[UnresolvedImport] = []
        for raw in imports:
            unresolved = (
                raw
                if isinstance(raw, UnresolvedImport)
                else UnresolvedImport.from_dict(raw)
            )
            found = self._match_one(unresolved)
            if found is None:
                remaining.append(unresolved)
            else:
                matches.append((unresolved, found))
        return MatchResult(matches=tuple(matches), remaining=tuple(remaining))

    def _match_one(
        self, unresolved: UnresolvedImport
    ) -> Optional[ComponentMatch]:
        slug = unresolved.slug
        if not slug:
            return None
        for record in self._lookup.find_by_slug(slug):
            if all(name in record.component_names for name in unresolved.names):
                _LOGGER.debug(
                    "Import %s matched %s", unresolved.path, record.identifier
                )
                return ComponentMatch.from_record(record)
        _LOGGER.info("No registry component provides import %s", unresolved.path)
        return None


def to_identifiers(
    matches: Iterable[Tuple[UnresolvedImport, ComponentMatch]],
) -> List[str]:
    return [match.identifier for _, match in matches]


def shadcn_identifiers(names: Sequence[str]) -> List[str]:
    """Map shadcn UI component names (``"Alert Dialog"``) to identifiers."""
    identifiers: List[str] = []
    for name in names:
        slug = _WHITESPACE_RUN.sub("-", name.strip().lower())
        if slug:
            identifiers.append(f"{SHADCN_AUTHOR}/{slug}")
    return identifiers
