"""Flatten resolved dependency trees into ordered, deduplicated sets."""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from registry_preview.models.components import (FlatDependencySet,
                                                 ResolvedComponent)

_LOGGER = logging.getLogger(__name__)


def flatten(
    root: Optional[ResolvedComponent], exclude_root: bool = True
) -> FlatDependencySet:
    """Collect every node reachable from ``root`` in depth-first pre-order.

    A node is recorded before its children and children follow their
    declaration order. An identifier already recorded is not traversed
    again, so shared dependencies appear once, at their first position.
    """
    if root is None:
        return {}
    flat: FlatDependencySet = {}
    _collect(root, flat)
    if exclude_root:
        flat.pop(root.identifier, None)
    _LOGGER.debug(
        "Flattened %s into %d components", root.identifier, len(flat)
    )
    return flat


def flatten_many(roots: Mapping[str, ResolvedComponent]) -> FlatDependencySet:
    """Flatten several roots into one set, roots included."""
    flat: FlatDependencySet = {}
    for root in roots.values():
        if root is not None:
            _collect(root, flat)
    return flat


def _collect(root: ResolvedComponent, flat: FlatDependencySet) -> None:
    stack: List[Optional[ResolvedComponent]] = [root]
    while stack:
        node = stack.pop()
        if node is None or node.identifier in flat:
            continue
        flat[node.identifier] = node
        # Reversed so the first declared child is popped first.
        stack.extend(reversed(list(node.registry_dependency_tree.values())))
