"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Combine the style fragments of a flattened dependency set into one bundle.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from registry_preview.config import DEFAULT_CONFLICT_POLICY
from registry_preview.models.components import (MergedStyleBundle,
                                                 ResolvedComponent,
                                                 StyleFragment)
from registry_preview.storage.errors import StyleMergeError
from registry_preview.styles.conflicts import ConflictPolicy
from registry_preview.styles.css import merge_global_css
from registry_preview.styles.defaults import (DEFAULT_GLOBAL_CSS,
                                              DEFAULT_TAILWIND_CONFIG)
from registry_preview.styles.tailwind import merge_tailwind_configs

_LOGGER = logging.getLogger(__name__)


class StyleMerger:
    """Merge Tailwind and global CSS fragments onto base defaults.

    The two halves are merged independently: a fragment that cannot be
    merged makes its half fall back to the base text while the other half
    keeps its merged result.
    """

    def __init__(
        self,
        base_tailwind_config: str = DEFAULT_TAILWIND_CONFIG,
        base_global_css: str = DEFAULT_GLOBAL_CSS,
        *,
        conflict_policy: ConflictPolicy = DEFAULT_CONFLICT_POLICY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_tailwind_config = base_tailwind_config
        self.base_global_css = base_global_css
        self.conflict_policy = ConflictPolicy.parse(conflict_policy)
        self._logger = logger or _LOGGER

    def merge(self, fragments: Iterable[StyleFragment]) -> MergedStyleBundle:
        fragments = list(fragments)
        configs = _texts(fragment.tailwind_config for fragment in fragments)
        stylesheets = _texts(fragment.global_css for fragment in fragments)
        return MergedStyleBundle(
            tailwind_config=self.merge_tailwind(configs),
            global_css=self.merge_css(stylesheets),
        )

    def merge_components(
        self, components: Iterable[ResolvedComponent]
    ) -> MergedStyleBundle:
        return self.merge(
            StyleFragment.from_component(component) for component in components
        )

    def merge_tailwind(self, configs: List[str]) -> str:
        if not configs:
            return self.base_tailwind_config
        self._logger.info("Merging %d Tailwind config fragments", len(configs))
        try:
            return merge_tailwind_configs(
                self.base_tailwind_config, configs, policy=self.conflict_policy
            )
        except StyleMergeError as error:
            self._logger.error("Error merging Tailwind config: %s", error)
            return self.base_tailwind_config

    def merge_css(self, stylesheets: List[str]) -> str:
        if not stylesheets:
            return self.base_global_css
        self._logger.info("Merging %d global CSS fragments", len(stylesheets))
        try:
            return merge_global_css(
                self.base_global_css, stylesheets, policy=self.conflict_policy
            )
        except StyleMergeError as error:
            self._logger.error("Error merging global CSS: %s", error)
            return self.base_global_css


def _texts(values: Iterable[Optional[str]]) -> List[str]:
    return [value for value in values if value and value.strip()]


def merge_styles(
    fragments: Iterable[StyleFragment],
    *,
    base_tailwind_config: str = DEFAULT_TAILWIND_CONFIG,
    base_global_css: str = DEFAULT_GLOBAL_CSS,
    conflict_policy: ConflictPolicy = DEFAULT_CONFLICT_POLICY,
) -> MergedStyleBundle:
    """Merge ``fragments`` in order; see :class:`StyleMerger`."""
    merger = StyleMerger(
        base_tailwind_config,
        base_global_css,
        conflict_policy=conflict_policy,
    )
    return merger.merge(fragments)
