"""Conflict policy shared by the Tailwind and global CSS mergers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, MutableMapping, Optional

from registry_preview.storage.errors import StyleConflictError

_LOGGER = logging.getLogger(__name__)


class ConflictPolicy(str, Enum):
    """What to do when two fragments define the same name differently.

    Fragments are visited in flattened (depth-first, left-to-right) order
    with the base defaults first, so ``FIRST_WINS`` keeps the definition
    closest to the base and to the requesting component.
    """

    FIRST_WINS = "first-wins"
    LAST_WINS = "last-wins"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Any) -> "ConflictPolicy":
        if isinstance(value, ConflictPolicy):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        for policy in cls:
            if policy.value == normalized:
                return policy
        raise ValueError(
            f"Unknown style conflict policy '{value}'. Expected one of "
            + ", ".join(policy.value for policy in cls)
        )


def merge_entry(
    target: MutableMapping[Any, Any],
    key: Any,
    value: Any,
    *,
    policy: ConflictPolicy,
    scope: str,
    same: Optional[Callable[[Any, Any], bool]] = None,
    name: Optional[str] = None,
) -> bool:
    """Insert ``key`` into ``target`` under ``policy``.

    Returns ``True`` when ``target`` changed. Equal values collapse silently;
    a differing value is a conflict.
    """
    label = name if name is not None else key
    if key not in target:
        target[key] = value
        return True

    existing = target[key]
    equal = same(existing, value) if same is not None else existing == value
    if equal:
        return False

    if policy is ConflictPolicy.ERROR:
        raise StyleConflictError(
            f"Conflicting definitions for {scope} '{label}'"
        )
    if policy is ConflictPolicy.LAST_WINS:
        _LOGGER.warning(
            "Conflicting definitions for %s '%s'; keeping the later one",
            scope,
            label,
        )
        target[key] = value
        return True

    _LOGGER.warning(
        "Conflicting definitions for %s '%s'; keeping the first one",
        scope,
        label,
    )
    return False
