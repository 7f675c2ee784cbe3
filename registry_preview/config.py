"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Central configuration for resolution, fetching and style merging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from registry_preview.styles.conflicts import ConflictPolicy
from registry_preview.utils.env import env_float, env_int, env_str

_LOGGER = logging.getLogger(__name__)

# Resolution ----------------------------------------------------------------

DEFAULT_MAX_DEPTH = 10
"""Default recursion bound for dependency resolution."""

DEFAULT_MAX_WORKERS = 8
"""Fan-out limit for concurrent lookups and artifact fetches."""

DEFAULT_TIMEOUT_SECONDS = 30.0
"""Overall budget for one resolution request (0 disables)."""

# Fetching ------------------------------------------------------------------

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
"""Per-request timeout for HTTP lookups and artifact downloads."""

DEFAULT_MAX_CALLS = 20
DEFAULT_PERIOD_SECONDS = 1.0

# Styles --------------------------------------------------------------------

DEFAULT_CONFLICT_POLICY = ConflictPolicy.FIRST_WINS


@dataclass(frozen=True)
class ResolverSettings:
    """Settings resolved from the environment (and an optional ``.env``)."""

    registry_api_url: Optional[str] = None
    registry_api_key: Optional[str] = None
    registry_data_dir: Optional[str] = None
    artifact_base_dir: Optional[str] = None
    artifact_storage_region: Optional[str] = None
    artifact_storage_endpoint: Optional[str] = None
    max_depth: int = DEFAULT_MAX_DEPTH
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    conflict_policy: ConflictPolicy = DEFAULT_CONFLICT_POLICY

    @classmethod
    def from_env(cls) -> "ResolverSettings":
        timeout = env_float("RESOLVER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        return cls(
            registry_api_url=env_str("REGISTRY_API_URL"),
            registry_api_key=env_str("REGISTRY_API_KEY"),
            registry_data_dir=env_str("REGISTRY_DATA_DIR"),
            artifact_base_dir=env_str("ARTIFACT_BASE_DIR"),
            artifact_storage_region=(
                env_str("ARTIFACT_STORAGE_REGION")
                or env_str("AWS_REGION")
                or env_str("AWS_DEFAULT_REGION")
            ),
            artifact_storage_endpoint=env_str("ARTIFACT_STORAGE_ENDPOINT"),
            max_depth=env_int("RESOLVER_MAX_DEPTH", DEFAULT_MAX_DEPTH),
            max_workers=env_int(
                "RESOLVER_MAX_WORKERS", DEFAULT_MAX_WORKERS, minimum=1
            ),
            timeout_seconds=timeout if timeout > 0 else None,
            fetch_timeout_seconds=env_float(
                "ARTIFACT_FETCH_TIMEOUT_SECONDS",
                DEFAULT_FETCH_TIMEOUT_SECONDS,
            ),
            conflict_policy=_read_policy(env_str("STYLE_CONFLICT_POLICY")),
        )


def _read_policy(raw: Optional[str]) -> ConflictPolicy:
    if raw is None:
        return DEFAULT_CONFLICT_POLICY
    try:
        return ConflictPolicy.parse(raw)
    except ValueError:
        _LOGGER.warning(
            "Ignoring STYLE_CONFLICT_POLICY=%r; using %s",
            raw,
            DEFAULT_CONFLICT_POLICY.value,
        )
        return DEFAULT_CONFLICT_POLICY
