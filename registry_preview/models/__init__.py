"""Domain model package exports."""

from .components import (DEFAULT_REGISTRY, ComponentIdentifier,
                         ComponentRecord, FlatDependencySet,
                         MergedStyleBundle, ResolvedComponent, StyleFragment,
                         normalize_npm_dependencies,
                         normalize_registry_dependencies, parse_identifier)

__all__ = [
    "DEFAULT_REGISTRY",
    "ComponentIdentifier",
    "ComponentRecord",
    "FlatDependencySet",
    "MergedStyleBundle",
    "ResolvedComponent",
    "StyleFragment",
    "normalize_npm_dependencies",
    "normalize_registry_dependencies",
    "parse_identifier",
]
