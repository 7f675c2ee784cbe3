"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Preview orchestration: resolve -> flatten -> merge styles -> assemble files.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import (Any, Dict, Iterable, Mapping, Optional, Sequence)

from registry_preview.config import DEFAULT_MAX_DEPTH, ResolverSettings
from registry_preview.models.components import (FlatDependencySet,
                                                 MergedStyleBundle,
                                                 ResolvedComponent,
                                                 StyleFragment)
from registry_preview.resolution.flatten import flatten, flatten_many
from registry_preview.resolution.matching import (ImportMatcher,
                                                  MatchResult,
                                                  shadcn_identifiers,
                                                  to_identifiers)
from registry_preview.resolution.resolver import DependencyResolver
from registry_preview.sandbox.assembler import SandboxAssembler
from registry_preview.storage.artifact_fetcher import build_fetcher_from_env
from registry_preview.storage.lookup import build_lookup_from_env
from registry_preview.styles.merger import StyleMerger

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewBundle:
    """Everything produced for one preview request."""

    root: Optional[ResolvedComponent]
    dependencies: FlatDependencySet
    styles: MergedStyleBundle
    files: Dict[str, str] = field(default_factory=dict)
    unresolved_imports: Sequence[Any] = ()

    @property
    def is_empty(self) -> bool:
        return not self.files

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.to_dict() if self.root is not None else None,
            "dependencies": list(self.dependencies),
            "tailwindConfig": self.styles.tailwind_config,
            "globalCss": self.styles.global_css,
            "files": dict(self.files),
            "unresolvedImports": [
                {"path": item.path, "names": list(item.names)}
                for item in self.unresolved_imports
            ],
        }


class PreviewService:
    """Wire the resolver, merger and assembler together."""

    def __init__(
        self,
        resolver: DependencyResolver,
        *,
        merger: Optional[StyleMerger] = None,
        assembler: Optional[SandboxAssembler] = None,
        matcher: Optional[ImportMatcher] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.resolver = resolver
        self.merger = merger or StyleMerger()
        self.assembler = assembler or SandboxAssembler()
        self.matcher = matcher
        self.max_depth = max_depth

    @classmethod
    def from_env(cls) -> "PreviewService":
        settings = ResolverSettings.from_env()
        lookup = build_lookup_from_env()
        resolver = DependencyResolver(
            lookup,
            build_fetcher_from_env(settings),
            max_workers=settings.max_workers,
            timeout=settings.timeout_seconds,
        )
        return cls(
            resolver,
            merger=StyleMerger(conflict_policy=settings.conflict_policy),
            matcher=ImportMatcher(lookup),
            max_depth=settings.max_depth,
        )

    def resolve(
        self,
        identifier: str,
        *,
        max_depth: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[ResolvedComponent]:
        return self.resolver.resolve(
            identifier,
            max_depth if max_depth is not None else self.max_depth,
            cancel_event=cancel_event,
        )

    def flatten(
        self,
        identifier: str,
        *,
        include_root: bool = False,
        max_depth: Optional[int] = None,
    ) -> FlatDependencySet:
        root = self.resolve(identifier, max_depth=max_depth)
        return flatten(root, exclude_root=not include_root)

    def build_preview(
        self,
        identifier: str,
        *,
        max_depth: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PreviewBundle:
        """Build the sandbox files for a published component.

        The component's own style fragment is merged first, followed by its
        dependencies in flattened order.
        """
        root = self.resolve(
            identifier, max_depth=max_depth, cancel_event=cancel_event
        )
        if root is None:
            _LOGGER.info("Nothing to preview for %r", identifier)
            return PreviewBundle(
                root=None,
                dependencies={},
                styles=self.merger.merge(()),
            )

        dependencies = flatten(root)
        styles = self.merger.merge_components([root, *dependencies.values()])
        files = self.assembler.assemble(
            root.code, dependencies, styles, root.npm_dependencies
        )
        _LOGGER.info(
            "Built preview for %s with %d dependencies and %d files",
            identifier,
            len(dependencies),
            len(files),
        )
        return PreviewBundle(
            root=root, dependencies=dependencies, styles=styles, files=files
        )

    def build_preview_for_code(
        self,
        code: str,
        registry_dependencies: Iterable[str] = (),
        npm_dependencies: Optional[Mapping[str, str]] = None,
        style: Optional[StyleFragment] = None,
        *,
        unresolved_imports: Iterable[Any] = (),
        shadcn_components: Iterable[str] = (),
        max_depth: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PreviewBundle:
        """Build the sandbox files for pasted, unpublished code.

        Dependencies are resolved in this order: shadcn UI components named
        by the editor, explicit registry dependencies, then the components
        matched for ``unresolved_imports``.
        """
        identifiers = shadcn_identifiers(list(shadcn_components))
        identifiers.extend(registry_dependencies)
        remaining: Sequence[Any] = ()
        imports = list(unresolved_imports)
        if imports:
            matched = self.match_imports(imports)
            identifiers.extend(to_identifiers(matched.matches))
            remaining = matched.remaining

        roots = self.resolver.resolve_many(
            identifiers,
            max_depth if max_depth is not None else self.max_depth,
            cancel_event=cancel_event,
        )
        dependencies = flatten_many(roots)
        fragments = [style] if style is not None else []
        fragments.extend(
            StyleFragment.from_component(component)
            for component in dependencies.values()
        )
        styles = self.merger.merge(fragments)
        files = self.assembler.assemble(
            code, dependencies, styles, npm_dependencies
        )
        return PreviewBundle(
            root=None,
            dependencies=dependencies,
            styles=styles,
            files=files,
            unresolved_imports=remaining,
        )

    def match_imports(self, imports: Iterable[Any]) -> MatchResult:
        if self.matcher is None:
            raise RuntimeError("PreviewService was created without a matcher")
        return self.matcher.match(imports)
