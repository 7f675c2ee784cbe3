"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Recursive resolution of a component's registry dependency graph.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import (FIRST_EXCEPTION, Future, ThreadPoolExecutor,
                                wait)
from dataclasses import dataclass, field
from typing import (AbstractSet, Any, Dict, Iterable, List, Optional,
                    Sequence)

from registry_preview.config import DEFAULT_MAX_DEPTH, DEFAULT_MAX_WORKERS
from registry_preview.models.components import (ComponentIdentifier,
                                                 ComponentRecord,
                                                 ResolvedComponent,
                                                 parse_identifier)
from registry_preview.storage.artifact_fetcher import ArtifactFetcher
from registry_preview.storage.errors import (ArtifactFetchError,
                                             ResolutionCancelledError,
                                             ResolutionTimeoutError)
from registry_preview.storage.lookup import ComponentLookup

_LOGGER = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.05


@dataclass(frozen=True)
class _LoadedComponent:
    """Lookup row plus the artifact texts fetched for it."""

    record: ComponentRecord
    code: Optional[str]
    global_css: Optional[str]
    tailwind_config: Optional[str]


@dataclass
class _NodeBuilder:
    identifier: ComponentIdentifier
    loaded: _LoadedComponent
    children: Dict[str, Optional["_NodeBuilder"]] = field(default_factory=dict)
    frozen: Optional[ResolvedComponent] = None

    def freeze(self) -> ResolvedComponent:
        record = self.loaded.record
        self.frozen = ResolvedComponent(
            identifier=self.identifier.full,
            component_slug=self.identifier.slug,
            author=self.identifier.author,
            code=self.loaded.code,
            global_css=self.loaded.global_css,
            tailwind_config=self.loaded.tailwind_config,
            npm_dependencies=record.npm_dependencies,
            registry_dependency_identifiers=record.registry_dependencies,
            registry_dependency_tree={
                key: child.frozen if child is not None else None
                for key, child in self.children.items()
            },
            registry=record.registry,
        )
        return self.frozen


@dataclass(frozen=True)
class _Pending:
    identifier: ComponentIdentifier
    key: str
    depth: int
    visited: AbstractSet[str]
    parent: Optional[_NodeBuilder]


class _ResolutionRun:
    """State scoped to one resolution request.

    Owns the worker pools, the per-request load cache and the cancellation
    bookkeeping. Nothing here outlives the request.
    """

    def __init__(
        self,
        lookup: ComponentLookup,
        fetcher: ArtifactFetcher,
        *,
        max_workers: int,
        cancel_event: Optional[threading.Event],
        timeout: Optional[float],
        logger: logging.Logger,
    ) -> None:
        self._lookup = lookup
        self._fetcher = fetcher
        self._logger = logger
        self._cancel_event = cancel_event
        self._abort = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )
        # Loads wait on fetches, so the two never share a pool.
        self._lookup_pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="registry-lookup"
        )
        self._fetch_pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="registry-fetch"
        )
        self._loads: Dict[str, Future[Optional[_LoadedComponent]]] = {}

    def load(
        self, identifier: ComponentIdentifier
    ) -> Future[Optional[_LoadedComponent]]:
        future = self._loads.get(identifier.full)
        if future is None:
            future = self._lookup_pool.submit(self._load, identifier)
            self._loads[identifier.full] = future
        return future

    def aborted(self) -> bool:
        return self._abort.is_set() or (
            self._cancel_event is not None and self._cancel_event.is_set()
        )

    def check(self) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise ResolutionCancelledError("Dependency resolution cancelled")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise ResolutionTimeoutError(
                "Dependency resolution exceeded its time budget"
            )

    def wait_all(self, futures: Iterable[Future[Any]]) -> None:
        pending = set(futures)
        while pending:
            self.check()
            poll = _POLL_INTERVAL_SECONDS
            if self._deadline is not None:
                poll = max(0.0, min(poll, self._deadline - time.monotonic()))
            done, pending = wait(
                pending, timeout=poll, return_when=FIRST_EXCEPTION
            )
            for future in done:
                error = future.exception()
                if error is not None:
                    raise error

    def close(self, *, abort: bool) -> None:
        if abort:
            self._abort.set()
        self._lookup_pool.shutdown(wait=not abort, cancel_futures=abort)
        self._fetch_pool.shutdown(wait=not abort, cancel_futures=abort)

    @property
    def load_count(self) -> int:
        return len(self._loads)

    def _load(
        self, identifier: ComponentIdentifier
    ) -> Optional[_LoadedComponent]:
        if self.aborted():
            return None
        record = self._lookup.lookup(identifier.author, identifier.slug)
        if record is None:
            self._logger.error(
                "Component %s could not be found; skipping", identifier
            )
            return None

        urls = (
            record.code_url,
            record.global_css_url,
            record.tailwind_config_url,
        )
        futures = [
            self._fetch_pool.submit(self._fetch, url, identifier)
            if url
            else None
            for url in urls
        ]
        code, global_css, tailwind_config = (
            future.result() if future is not None else None
            for future in futures
        )
        return _LoadedComponent(
            record=record,
            code=code,
            global_css=global_css,
            tailwind_config=tailwind_config,
        )

    def _fetch(
        self, url: str, identifier: ComponentIdentifier
    ) -> Optional[str]:
        if self.aborted():
            return None
        try:
            text = self._fetcher.fetch(url)
        except ArtifactFetchError as error:
            self._logger.error(
                "Error fetching artifact for %s: %s", identifier, error
            )
            return None
        if not text:
            self._logger.warning(
                "Artifact %s for %s is empty", url, identifier
            )
            return None
        return text


class DependencyResolver:
    """Expand component identifiers into trees of :class:`ResolvedComponent`.

    Every tree level is loaded concurrently (bounded by ``max_workers``);
    a node's children are only scheduled once its own lookup finished.
    Lookups and fetches are memoised per call, never across calls.
    """

    def __init__(
        self,
        lookup: ComponentLookup,
        fetcher: ArtifactFetcher,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive.")
        self._lookup = lookup
        self._fetcher = fetcher
        self._max_workers = max_workers
        self._timeout = timeout
        self._logger = logger or _LOGGER
        self.last_load_count = 0

    def resolve(
        self,
        identifier: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
        current_depth: int = 0,
        visited: AbstractSet[str] = frozenset(),
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Optional[ResolvedComponent]:
        """Resolve one identifier; ``None`` when it cannot be resolved.

        ``visited`` holds the identifiers on the path from the overall root
        to this call. It is never mutated: each node passes a new set with
        itself added to its children, so cousins may resolve the same
        dependency while ancestors still count as cycles.
        """
        resolved = self._resolve_roots(
            [identifier],
            max_depth=max_depth,
            current_depth=current_depth,
            visited=visited,
            cancel_event=cancel_event,
            timeout=timeout,
        )
        if not isinstance(identifier, str):
            return None
        return resolved.get(identifier)

    def resolve_many(
        self,
        identifiers: Sequence[str],
        max_depth: int = DEFAULT_MAX_DEPTH,
        *,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, ResolvedComponent]:
        """Resolve several roots in one request, omitting failures."""
        resolved = self._resolve_roots(
            identifiers,
            max_depth=max_depth,
            current_depth=0,
            visited=frozenset(),
            cancel_event=cancel_event,
            timeout=timeout,
        )
        return {
            identifier: node
            for identifier, node in resolved.items()
            if node is not None
        }

    def _resolve_roots(
        self,
        identifiers: Sequence[Any],
        *,
        max_depth: int,
        current_depth: int,
        visited: AbstractSet[str],
        cancel_event: Optional[threading.Event],
        timeout: Optional[float],
    ) -> Dict[str, Optional[ResolvedComponent]]:
        roots: Dict[str, Optional[_NodeBuilder]] = {}
        frontier: List[_Pending] = []
        ancestors = frozenset(visited)
        for raw in identifiers:
            if isinstance(raw, str):
                if raw in roots:
                    continue
                roots[raw] = None
            parsed = self._admit(raw, current_depth, max_depth, ancestors)
            if parsed is not None:
                frontier.append(
                    _Pending(parsed, parsed.full, current_depth, ancestors, None)
                )
        if not frontier:
            return {key: None for key in roots}

        run = _ResolutionRun(
            self._lookup,
            self._fetcher,
            max_workers=self._max_workers,
            cancel_event=cancel_event,
            timeout=timeout if timeout is not None else self._timeout,
            logger=self._logger,
        )
        levels: List[List[_NodeBuilder]] = []
        aborted = True
        try:
            while frontier:
                run.check()
                futures = {
                    pending.identifier.full: run.load(pending.identifier)
                    for pending in frontier
                }
                run.wait_all(futures.values())
                frontier = self._expand(frontier, futures, roots, levels, max_depth)
            aborted = False
        finally:
            self.last_load_count = run.load_count
            run.close(abort=aborted)

        for level in reversed(levels):
            for builder in level:
                builder.freeze()
        return {
            key: builder.frozen if builder is not None else None
            for key, builder in roots.items()
        }

    def _expand(
        self,
        frontier: Sequence[_Pending],
        futures: Dict[str, Future[Optional[_LoadedComponent]]],
        roots: Dict[str, Optional[_NodeBuilder]],
        levels: List[List[_NodeBuilder]],
        max_depth: int,
    ) -> List[_Pending]:
        level: List[_NodeBuilder] = []
        next_frontier: List[_Pending] = []
        for pending in frontier:
            loaded = futures[pending.identifier.full].result()
            if loaded is None:
                continue
            builder = _NodeBuilder(pending.identifier, loaded)
            level.append(builder)
            if pending.parent is None:
                roots[pending.key] = builder
            else:
                pending.parent.children[pending.key] = builder

            branch_visited = pending.visited | {pending.identifier.full}
            child_depth = pending.depth + 1
            for dependency in loaded.record.registry_dependencies:
                builder.children[dependency] = None
                child = self._admit(
                    dependency, child_depth, max_depth, branch_visited
                )
                if child is not None:
                    next_frontier.append(
                        _Pending(
                            child, dependency, child_depth, branch_visited,
                            builder,
                        )
                    )
            self._logger.debug(
                "Resolved %s at depth %d with %d registry dependencies",
                pending.identifier,
                pending.depth,
                len(loaded.record.registry_dependencies),
            )
        levels.append(level)
        return next_frontier

    def _admit(
        self,
        raw: Any,
        depth: int,
        max_depth: int,
        visited: AbstractSet[str],
    ) -> Optional[ComponentIdentifier]:
        if isinstance(raw, str) and raw in visited:
            self._logger.warning("Circular dependency detected: %s", raw)
            return None
        if depth >= max_depth:
            self._logger.warning(
                "Maximum dependency depth %d reached for: %s", max_depth, raw
            )
            return None
        parsed = parse_identifier(raw)
        if parsed is None:
            self._logger.error("Invalid component identifier: %r", raw)
        return parsed
