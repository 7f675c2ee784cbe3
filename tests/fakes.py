"""Fakes and record builders shared across test modules."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from registry_preview.models.components import ComponentRecord
from registry_preview.storage.errors import (ArtifactFetchError,
                                             ArtifactStoreUnavailableError)


class FakeFetcher:
    """Serve artifact text from a dictionary and record every request."""

    def __init__(
        self,
        artifacts: Optional[Dict[str, str]] = None,
        *,
        unavailable: bool = False,
    ) -> None:
        self.artifacts = dict(artifacts or {})
        self.unavailable = unavailable
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str) -> str:
        with self._lock:
            self.calls.append(url)
        if self.unavailable:
            raise ArtifactStoreUnavailableError("blob store offline")
        if url not in self.artifacts:
            raise ArtifactFetchError(url, "not found")
        return self.artifacts[url]


def make_record(
    identifier: str,
    *,
    deps: Iterable[str] = (),
    npm: Optional[Dict[str, str]] = None,
    css: bool = False,
    tailwind: bool = False,
    code: bool = True,
    registry: str = "ui",
    names: Iterable[str] = (),
) -> ComponentRecord:
    author, slug = identifier.split("/")
    return ComponentRecord(
        author=author,
        slug=slug,
        code_url=f"mem://{identifier}/code.tsx" if code else None,
        global_css_url=f"mem://{identifier}/globals.css" if css else None,
        tailwind_config_url=(
            f"mem://{identifier}/tailwind.config.js" if tailwind else None
        ),
        npm_dependencies=npm or {},
        registry_dependencies=list(deps),
        registry=registry,
        component_names=list(names),
    )


def code_of(identifier: str) -> str:
    name = identifier.split("/")[1].title().replace("-", "")
    return f"export function {name}() {{ return null }}\n"


def artifacts_for(records: Iterable[ComponentRecord]) -> Dict[str, str]:
    artifacts: Dict[str, str] = {}
    for record in records:
        if record.code_url:
            artifacts[record.code_url] = code_of(record.identifier)
    return artifacts
