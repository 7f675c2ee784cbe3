"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Component metadata lookups keyed by ``author/slug``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from registry_preview.models.components import ComponentRecord

from .errors import ComponentNotFoundError, RegistryUnavailableError

_LOGGER = logging.getLogger(__name__)


class ComponentLookup(Protocol):
    """Interface implemented by component metadata stores."""

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        """Return the component record, or ``None`` when it does not exist.

        Implementations raise :class:`RegistryUnavailableError` when the
        store itself cannot be reached.
        """

    def find_by_slug(self, slug: str) -> Sequence[ComponentRecord]:
        """Return every component published under ``slug``."""


def get_component(
    lookup: ComponentLookup, author: str, slug: str
) -> ComponentRecord:
    """Strict variant of ``lookup.lookup`` that raises when missing."""
    record = lookup.lookup(author, slug)
    if record is None:
        raise ComponentNotFoundError(
            f"Component '{author}/{slug}' does not exist"
        )
    return record


class InMemoryComponentLookup:
    """Dictionary-backed lookup for development and tests."""

    def __init__(
        self,
        records: Optional[Iterable[ComponentRecord]] = None,
        *,
        authors: Optional[Iterable[str]] = None,
    ) -> None:
        self._records: Dict[tuple[str, str], ComponentRecord] = {}
        self._authors: set[str] = set(authors or ())
        self.calls: List[tuple[str, str]] = []
        for record in records or ():
            self.add(record)

    def add(self, record: ComponentRecord) -> ComponentRecord:
        self._records[(record.author, record.slug)] = record
        self._authors.add(record.author)
        return record

    def remove(self, author: str, slug: str) -> None:
        self._records.pop((author, slug), None)

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        self.calls.append((author, slug))
        if author not in self._authors:
            _LOGGER.error("User not found: %s", author)
            return None
        record = self._records.get((author, slug))
        if record is None:
            _LOGGER.error("Component not found: %s/%s", author, slug)
        return record

    def find_by_slug(self, slug: str) -> Sequence[ComponentRecord]:
        return [
            record
            for (_, record_slug), record in self._records.items()
            if record_slug == slug
        ]


class LocalComponentLookup:
    """Read component records from ``<base_dir>/<author>/<slug>.json``.

    Each file holds one ``components`` row (see
    :meth:`ComponentRecord.from_row`); an author exists when its directory
    does.
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)
        if not self._base_dir.is_dir():
            raise RegistryUnavailableError(
                f"Component directory '{self._base_dir}' does not exist"
            )

    def _path(self, author: str, slug: str) -> Path:
        return self._base_dir / author / f"{slug}.json"

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        if not (self._base_dir / author).is_dir():
            _LOGGER.error("User not found: %s", author)
            return None
        path = self._path(author, slug)
        if not path.exists():
            _LOGGER.error("Component not found: %s/%s", author, slug)
            return None
        return self._load(path, author)

    def find_by_slug(self, slug: str) -> Sequence[ComponentRecord]:
        records: List[ComponentRecord] = []
        for path in sorted(self._base_dir.glob(f"*/{slug}.json")):
            record = self._load(path, path.parent.name)
            if record is not None:
                records.append(record)
        return records

    def _load(self, path: Path, author: str) -> Optional[ComponentRecord]:
        try:
            row: Any = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise RegistryUnavailableError(
                f"Failed to read component file {path}: {exc}"
            ) from exc
        except ValueError as exc:
            _LOGGER.error("Malformed component file %s: %s", path, exc)
            return None
        if not isinstance(row, dict):
            _LOGGER.error("Component file %s does not hold an object", path)
            return None
        row.setdefault("component_slug", path.stem)
        try:
            return ComponentRecord.from_row(row, author=author)
        except ValueError as exc:
            _LOGGER.error("Invalid component file %s: %s", path, exc)
            return None


def build_lookup_from_env() -> ComponentLookup:
    """Pick the lookup backend from ``REGISTRY_API_URL`` / ``REGISTRY_DATA_DIR``."""

    from registry_preview.config import ResolverSettings

    settings = ResolverSettings.from_env()
    if settings.registry_api_url:
        from registry_preview.clients.registry_client import \
            RegistryApiClient

        return RegistryApiClient(
            settings.registry_api_url,
            api_key=settings.registry_api_key,
            timeout=settings.fetch_timeout_seconds,
        )
    if settings.registry_data_dir:
        return LocalComponentLookup(Path(settings.registry_data_dir))
    raise RegistryUnavailableError(
        "No component registry configured; set REGISTRY_API_URL or "
        "REGISTRY_DATA_DIR"
    )
