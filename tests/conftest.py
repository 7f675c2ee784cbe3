"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Shared fixtures for the test-suite.
"""

from __future__ import annotations

from typing import Dict, Optional

import pytest

from fakes import FakeFetcher, artifacts_for
from registry_preview import logging_config
from registry_preview.models.components import ComponentRecord
from registry_preview.storage.lookup import InMemoryComponentLookup
from registry_preview.utils import env

_ENV_VARS = (
    "REGISTRY_API_URL",
    "REGISTRY_API_KEY",
    "REGISTRY_DATA_DIR",
    "ARTIFACT_BASE_DIR",
    "ARTIFACT_STORAGE_REGION",
    "ARTIFACT_STORAGE_ENDPOINT",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "RESOLVER_MAX_DEPTH",
    "RESOLVER_MAX_WORKERS",
    "RESOLVER_TIMEOUT_SECONDS",
    "ARTIFACT_FETCH_TIMEOUT_SECONDS",
    "STYLE_CONFLICT_POLICY",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``.env`` files and shell settings out of the tests."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(env, "_ENV_LOADED", True)
    monkeypatch.setattr(logging_config, "_CONFIGURED", False)


@pytest.fixture()
def registry():
    """Factory building an in-memory lookup and fetcher for ``records``."""

    def _build(
        *records: ComponentRecord, extra: Optional[Dict[str, str]] = None
    ):
        lookup = InMemoryComponentLookup(records)
        artifacts = artifacts_for(records)
        artifacts.update(extra or {})
        return lookup, FakeFetcher(artifacts)

    return _build
