"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Domain models for registry components and resolved dependency graphs.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from registry_preview.storage.errors import InvalidIdentifierError

_LOGGER = logging.getLogger(__name__)

DEFAULT_REGISTRY = "ui"
IDENTIFIER_SEPARATOR = "/"
_WHITESPACE_REGEX = re.compile(r"\s")


@dataclass(frozen=True)
class ComponentIdentifier:
    """Parsed ``author/slug`` identifier of a published component."""

    author: str
    slug: str

    @property
    def full(self) -> str:
        return f"{self.author}{IDENTIFIER_SEPARATOR}{self.slug}"

    def __str__(self) -> str:
        return self.full

    @classmethod
    def parse(cls, value: Any) -> "ComponentIdentifier":
        """Parse ``value`` strictly, raising on any other shape."""
        parsed = parse_identifier(value)
        if parsed is None:
            raise InvalidIdentifierError(
                f"Component identifier '{value}' is invalid. "
                "Expected 'author/component-slug'"
            )
        return parsed


def parse_identifier(value: Any) -> Optional[ComponentIdentifier]:
    """Return the parsed identifier or ``None`` when ``value`` is malformed.

    A valid identifier contains exactly one ``/`` with a non-empty segment on
    each side and no whitespace.
    """
    if not isinstance(value, str):
        return None
    parts = value.split(IDENTIFIER_SEPARATOR)
    if len(parts) != 2:
        return None
    author, slug = parts
    if not author or not slug:
        return None
    if _WHITESPACE_REGEX.search(value):
        return None
    return ComponentIdentifier(author=author, slug=slug)


def normalize_registry_dependencies(raw: Any) -> Tuple[str, ...]:
    """Coerce a dependency-identifier declaration into a tuple of strings.

    Stores hand back either a list or a JSON-encoded list. Malformed JSON is
    treated as an empty declaration; non-string members are dropped. The
    order of first appearance is kept and duplicates are removed.
    """
    if raw is None or raw == "":
        return ()
    values: Any = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError as error:
            _LOGGER.error(
                "Error parsing registry dependency declaration %r: %s",
                raw,
                error,
            )
            return ()
    if not isinstance(values, (list, tuple)):
        _LOGGER.warning(
            "Registry dependency declaration is not a list: %r", values
        )
        return ()

    seen: set[str] = set()
    identifiers: list[str] = []
    for item in values:
        if not isinstance(item, str):
            _LOGGER.warning(
                "Dropping non-string registry dependency entry: %r", item
            )
            continue
        if item in seen:
            continue
        seen.add(item)
        identifiers.append(item)
    return tuple(identifiers)


def normalize_npm_dependencies(raw: Any) -> Dict[str, str]:
    """Coerce an npm dependency declaration into ``{name: version}``."""
    if raw is None or raw == "":
        return {}
    values: Any = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError as error:
            _LOGGER.error(
                "Error parsing npm dependency declaration %r: %s", raw, error
            )
            return {}
    if not isinstance(values, Mapping):
        _LOGGER.warning("npm dependency declaration is not a mapping: %r", values)
        return {}
    return {
        str(name): str(version)
        for name, version in values.items()
        if version is not None
    }


def _normalize_names(raw: Any) -> Tuple[str, ...]:
    if raw is None or raw == "":
        return ()
    values: Any = raw
    if isinstance(raw, str):
        try:
            values = json.loads(raw)
        except ValueError:
            _LOGGER.warning("Unparseable component_names value: %r", raw)
            return ()
    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(str(name) for name in values)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ComponentRecord:
    """Metadata row returned by a component lookup.

    Dependency declarations are normalised on construction so that the
    resolver only ever sees canonical tuples and dictionaries.
    """

    author: str
    slug: str
    code_url: Optional[str] = None
    global_css_url: Optional[str] = None
    tailwind_config_url: Optional[str] = None
    npm_dependencies: Mapping[str, str] = field(default_factory=dict)
    registry_dependencies: Tuple[str, ...] = ()
    registry: str = DEFAULT_REGISTRY
    component_names: Tuple[str, ...] = ()
    component_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.author or not self.slug:
            raise ValueError("Component record requires author and slug")
        object.__setattr__(
            self,
            "npm_dependencies",
            MappingProxyType(normalize_npm_dependencies(self.npm_dependencies)),
        )
        object.__setattr__(
            self,
            "registry_dependencies",
            normalize_registry_dependencies(self.registry_dependencies),
        )
        object.__setattr__(
            self, "component_names", _normalize_names(self.component_names)
        )
        object.__setattr__(
            self, "registry", self.registry or DEFAULT_REGISTRY
        )

    @property
    def identifier(self) -> str:
        return f"{self.author}{IDENTIFIER_SEPARATOR}{self.slug}"

    @classmethod
    def from_row(
        cls, row: Mapping[str, Any], *, author: Optional[str] = None
    ) -> "ComponentRecord":
        """Build a record from a ``components`` table row.

        Column names follow the registry schema (``code``,
        ``global_css_extension``, ``tailwind_config_extension``,
        ``dependencies``, ``direct_registry_dependencies``); the snake-case
        field names of this class are accepted as well.
        """
        resolved_author = author or row.get("author") or _row_author(row)
        slug = row.get("component_slug") or row.get("slug")
        if not resolved_author or not slug:
            raise ValueError("Component row is missing author or slug")
        component_id = row.get("id", row.get("component_id"))
        return cls(
            author=str(resolved_author),
            slug=str(slug),
            code_url=_optional_text(row.get("code", row.get("code_url"))),
            global_css_url=_optional_text(
                row.get("global_css_extension", row.get("global_css_url"))
            ),
            tailwind_config_url=_optional_text(
                row.get(
                    "tailwind_config_extension",
                    row.get("tailwind_config_url"),
                )
            ),
            npm_dependencies=row.get(
                "dependencies", row.get("npm_dependencies")
            ),
            registry_dependencies=row.get(
                "direct_registry_dependencies",
                row.get("registry_dependencies"),
            ),
            registry=str(row.get("registry") or DEFAULT_REGISTRY),
            component_names=row.get("component_names"),
            component_id=str(component_id) if component_id is not None else None,
        )


def _row_author(row: Mapping[str, Any]) -> Optional[str]:
    user = row.get("user")
    if isinstance(user, Mapping):
        return user.get("display_username") or user.get("username")
    return None


@dataclass(frozen=True)
class ResolvedComponent:
    """One node of a resolved dependency graph.

    ``registry_dependency_tree`` holds exactly one entry per identifier in
    ``registry_dependency_identifiers``; ``None`` marks a dependency whose
    resolution failed or was cut off.
    """

    identifier: str
    component_slug: str
    author: str
    code: Optional[str] = None
    global_css: Optional[str] = None
    tailwind_config: Optional[str] = None
    npm_dependencies: Mapping[str, str] = field(default_factory=dict)
    registry_dependency_identifiers: Tuple[str, ...] = ()
    registry_dependency_tree: Mapping[str, Optional["ResolvedComponent"]] = (
        field(default_factory=dict)
    )
    registry: str = DEFAULT_REGISTRY

    def __post_init__(self) -> None:
        tree = dict(self.registry_dependency_tree)
        identifiers = tuple(self.registry_dependency_identifiers)
        if set(tree) != set(identifiers) or len(tree) != len(identifiers):
            raise ValueError(
                "registry_dependency_tree must have exactly one entry per "
                f"dependency identifier of '{self.identifier}'"
            )
        ordered = {identifier: tree[identifier] for identifier in identifiers}
        object.__setattr__(self, "registry_dependency_identifiers", identifiers)
        object.__setattr__(
            self, "registry_dependency_tree", MappingProxyType(ordered)
        )
        object.__setattr__(
            self,
            "npm_dependencies",
            MappingProxyType(dict(self.npm_dependencies)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable nested representation."""
        return {
            "identifier": self.identifier,
            "author": self.author,
            "componentSlug": self.component_slug,
            "registry": self.registry,
            "code": self.code,
            "globalCss": self.global_css,
            "tailwindConfig": self.tailwind_config,
            "npmDependencies": dict(self.npm_dependencies),
            "registryDependencies": list(self.registry_dependency_identifiers),
            "registryDependencyTree": {
                identifier: child.to_dict() if child is not None else None
                for identifier, child in self.registry_dependency_tree.items()
            },
        }


FlatDependencySet = Dict[str, ResolvedComponent]


@dataclass(frozen=True)
class StyleFragment:
    """Style customisation contributed by a single component."""

    tailwind_config: Optional[str] = None
    global_css: Optional[str] = None

    @classmethod
    def from_component(cls, component: ResolvedComponent) -> "StyleFragment":
        return cls(
            tailwind_config=component.tailwind_config,
            global_css=component.global_css,
        )


@dataclass(frozen=True)
class MergedStyleBundle:
    """Merged Tailwind config module text and global stylesheet text."""

    tailwind_config: str
    global_css: str
