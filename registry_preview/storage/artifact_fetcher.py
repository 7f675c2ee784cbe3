"""
Registry Preview Repository
Introductory remarks: This module is part of the Registry Preview codebase.

Artifact fetchers returning component code, CSS and Tailwind config text.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import unquote, urlparse

import requests

from registry_preview.clients.base_client import BaseClient
from registry_preview.config import (DEFAULT_FETCH_TIMEOUT_SECONDS,
                                     DEFAULT_MAX_CALLS, DEFAULT_PERIOD_SECONDS,
                                     ResolverSettings)
from registry_preview.net.rate_limiter import RateLimiter

from .errors import ArtifactFetchError, ArtifactStoreUnavailableError

_LOGGER = logging.getLogger(__name__)

_TRANSIENT_ERROR_CODES = {
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "InternalError",
    "503",
}
_MISSING_OBJECT_CODES = {"NoSuchKey", "NoSuchBucket", "404", "NotFound"}
_CREDENTIAL_ERRORS = {
    "NoCredentialsError",
    "PartialCredentialsError",
    "NoRegionError",
}


class ArtifactFetcher(Protocol):
    """Interface implemented by artifact fetchers."""

    def fetch(self, url: str) -> str:
        """Return the text stored at ``url``.

        Raises :class:`ArtifactFetchError` when this artifact cannot be read
        and :class:`ArtifactStoreUnavailableError` when the backend is
        unusable altogether.
        """


def _error_code(exc: Exception) -> Optional[str]:
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error")
        if isinstance(error, dict):
            code = error.get("Code")
            if isinstance(code, str) and code:
                return code
    return None


def _looks_like_transient_cloud_failure(exc: Exception) -> bool:
    if _error_code(exc) in _TRANSIENT_ERROR_CODES:
        return True
    if exc.__class__.__name__ in {
        "EndpointConnectionError",
        "ConnectTimeoutError",
        "ReadTimeoutError",
        "ConnectionClosedError",
    }:
        return True
    message = str(exc).lower()
    return any(
        token in message
        for token in (
            "timed out",
            "timeout",
            "temporarily unavailable",
            "service unavailable",
            "connection reset",
            "connection refused",
        )
    )


class HttpArtifactFetcher(BaseClient[str]):
    """Download artifacts over HTTP(S) with a shared ``requests`` session."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        limiter = rate_limiter or RateLimiter(
            max_calls=DEFAULT_MAX_CALLS,
            period_seconds=DEFAULT_PERIOD_SECONDS,
        )
        super().__init__(limiter, logger=logger)
        self._session = session or requests.Session()
        self._timeout = timeout

    def fetch(self, url: str) -> str:
        def _operation() -> str:
            try:
                response = self._session.get(url, timeout=self._timeout)
            except requests.RequestException as exc:
                raise ArtifactFetchError(url, str(exc)) from exc
            if not 200 <= response.status_code < 300:
                raise ArtifactFetchError(
                    url,
                    f"HTTP {response.status_code} {response.reason or ''}".strip(),
                )
            return response.text

        return self._execute_with_rate_limit(
            _operation, name=f"artifact.fetch({url})"
        )


class LocalArtifactFetcher:
    """Read artifacts from disk (``file://`` URLs or paths under a root)."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir).resolve() if base_dir else None

    def fetch(self, url: str) -> str:
        path = self._resolve_path(url)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ArtifactFetchError(url, "file not found") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ArtifactFetchError(url, str(exc)) from exc

    def _resolve_path(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme == "file":
            raw_path = unquote(parsed.path)
        elif parsed.scheme:
            raise ArtifactFetchError(url, f"unsupported scheme {parsed.scheme}")
        else:
            raw_path = url

        path = Path(raw_path)
        if not path.is_absolute():
            if self._base_dir is None:
                raise ArtifactFetchError(
                    url, "relative artifact path without ARTIFACT_BASE_DIR"
                )
            path = self._base_dir / path
        resolved = path.resolve()
        if self._base_dir is not None and not parsed.scheme:
            if self._base_dir not in resolved.parents:
                raise ArtifactFetchError(url, "path escapes artifact root")
        return resolved


class S3ArtifactFetcher:
    """Read artifacts addressed as ``s3://bucket/key``."""

    def __init__(
        self,
        *,
        client: Any | None = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        if client is None:
            try:
                import boto3 as _boto3
            except ImportError as exc:  # pragma: no cover
                raise ArtifactStoreUnavailableError(
                    "boto3 is required for s3:// artifacts"
                ) from exc
            client_kwargs: Dict[str, Any] = {}
            if region:
                client_kwargs["region_name"] = region
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = _boto3.client("s3", **client_kwargs)
        self._s3 = client

    def fetch(self, url: str) -> str:
        parsed = urlparse(url)
        bucket = parsed.netloc
        key = parsed.path.lstrip("/")
        if parsed.scheme != "s3" or not bucket or not key:
            raise ArtifactFetchError(url, "expected s3://bucket/key")
        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except Exception as exc:  # noqa: BLE001 - classify botocore failures
            if exc.__class__.__name__ in _CREDENTIAL_ERRORS:
                raise ArtifactStoreUnavailableError(
                    f"S3 client is not configured: {exc}"
                ) from exc
            if _error_code(exc) in _MISSING_OBJECT_CODES:
                raise ArtifactFetchError(url, "object not found") from exc
            if _looks_like_transient_cloud_failure(exc):
                raise ArtifactFetchError(
                    url, f"S3 temporarily unavailable: {exc}"
                ) from exc
            raise ArtifactFetchError(url, str(exc)) from exc
        if isinstance(body, bytes):
            try:
                return body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ArtifactFetchError(url, "artifact is not UTF-8") from exc
        return str(body)


class CompositeArtifactFetcher:
    """Dispatch to a fetcher by URL scheme."""

    def __init__(
        self,
        *,
        http: Optional[ArtifactFetcher] = None,
        local: Optional[ArtifactFetcher] = None,
        s3: Optional[ArtifactFetcher] = None,
    ) -> None:
        self._by_scheme: Dict[str, Optional[ArtifactFetcher]] = {
            "http": http,
            "https": http,
            "file": local,
            "": local,
            "s3": s3,
        }

    def fetch(self, url: str) -> str:
        scheme = urlparse(url).scheme.lower()
        if scheme not in self._by_scheme:
            raise ArtifactFetchError(url, f"unsupported scheme '{scheme}'")
        fetcher = self._by_scheme[scheme]
        if fetcher is None:
            raise ArtifactStoreUnavailableError(
                f"No artifact backend configured for '{scheme or 'path'}' URLs"
            )
        return fetcher.fetch(url)


def build_fetcher_from_env(
    settings: Optional[ResolverSettings] = None,
) -> ArtifactFetcher:
    """Build the scheme-dispatching fetcher used by the preview service."""

    settings = settings or ResolverSettings.from_env()
    base_dir = settings.artifact_base_dir
    local = LocalArtifactFetcher(Path(base_dir) if base_dir else None)

    s3: Optional[ArtifactFetcher] = None
    if settings.artifact_storage_region or settings.artifact_storage_endpoint:
        s3 = S3ArtifactFetcher(
            region=settings.artifact_storage_region,
            endpoint_url=settings.artifact_storage_endpoint,
        )

    return CompositeArtifactFetcher(
        http=HttpArtifactFetcher(timeout=settings.fetch_timeout_seconds),
        local=local,
        s3=s3,
    )
