"""Merge Tailwind ``theme.extend`` fragments onto a base config module."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from registry_preview.styles.conflicts import ConflictPolicy, merge_entry
from registry_preview.styles.js_literal import (parse_config_module,
                                                render_config_module,
                                                render_js)

_LOGGER = logging.getLogger(__name__)

EXTENSION_CATEGORIES = (
    "colors",
    "animation",
    "keyframes",
    "fontFamily",
    "borderRadius",
    "boxShadow",
    "spacing",
)
"""Categories components customise most; any other category merges alike."""

# Palettes nest (``brand: {50: ..., 500: ...}``) and merge shade by shade.
# Everything else, keyframes included, is replaced or kept whole.
_NESTED_CATEGORIES = {"colors"}


def theme_extensions(config: Dict[Any, Any]) -> Dict[Any, Any]:
    """Return the extension categories declared by ``config``.

    ``theme.extend`` is used when present, otherwise ``theme`` itself.
    """
    theme = config.get("theme")
    if not isinstance(theme, dict):
        return {}
    extend = theme.get("extend")
    if isinstance(extend, dict):
        ignored = [key for key in theme if key != "extend"]
        if ignored:
            _LOGGER.warning(
                "Ignoring theme overrides outside theme.extend: %s",
                ", ".join(str(key) for key in ignored),
            )
        return extend
    return {key: value for key, value in theme.items() if key != "extend"}


def _ensure_extend(config: Dict[Any, Any]) -> Dict[Any, Any]:
    theme = config.get("theme")
    if not isinstance(theme, dict):
        theme = {}
        config["theme"] = theme
    extend = theme.get("extend")
    if not isinstance(extend, dict):
        extend = {}
        theme["extend"] = extend
    return extend


def _merge_nested(
    target: Dict[Any, Any],
    values: Dict[Any, Any],
    *,
    policy: ConflictPolicy,
    scope: str,
) -> None:
    for key, value in values.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            _merge_nested(existing, value, policy=policy, scope=f"{scope}.{key}")
            continue
        merge_entry(target, key, value, policy=policy, scope=scope)


def merge_extensions(
    target: Dict[Any, Any],
    extensions: Dict[Any, Any],
    *,
    policy: ConflictPolicy = ConflictPolicy.FIRST_WINS,
) -> None:
    """Merge ``extensions`` into ``target`` (a ``theme.extend`` object)."""
    for category, values in extensions.items():
        scope = f"theme.extend.{category}"
        existing = target.get(category)
        if not (isinstance(existing, dict) and isinstance(values, dict)):
            merge_entry(
                target, category, values, policy=policy, scope="theme.extend"
            )
            continue
        if category in _NESTED_CATEGORIES:
            _merge_nested(existing, values, policy=policy, scope=scope)
            continue
        for key, value in values.items():
            merge_entry(existing, key, value, policy=policy, scope=scope)


def _plugins(config: Dict[Any, Any]) -> List[Any]:
    plugins = config.get("plugins")
    if plugins is None:
        return []
    if isinstance(plugins, list):
        return plugins
    _LOGGER.warning("Ignoring non-array plugins declaration: %s", render_js(plugins))
    return []


def merge_tailwind_configs(
    base: str,
    configs: Sequence[Optional[str]],
    *,
    policy: ConflictPolicy = ConflictPolicy.FIRST_WINS,
) -> str:
    """Merge every config module in ``configs`` onto ``base``.

    Returns ``base`` itself when no config carries any text. Raises a
    :class:`StyleMergeError` subclass on parse failures and, under
    ``ConflictPolicy.ERROR``, on conflicts.
    """
    fragments = [config for config in configs if config and config.strip()]
    if not fragments:
        return base

    merged = parse_config_module(base)
    extend = _ensure_extend(merged)
    plugins = list(_plugins(merged))
    seen_plugins = {render_js(plugin) for plugin in plugins}

    for index, source in enumerate(fragments):
        config = parse_config_module(source)
        merge_extensions(extend, theme_extensions(config), policy=policy)
        for plugin in _plugins(config):
            rendered = render_js(plugin)
            if rendered not in seen_plugins:
                seen_plugins.add(rendered)
                plugins.append(plugin)
        _LOGGER.debug("Merged Tailwind config fragment %d", index)

    if plugins:
        merged["plugins"] = plugins
    return render_config_module(merged)
