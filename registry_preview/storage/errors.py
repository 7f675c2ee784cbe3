"""Common registry errors used across lookups, fetchers and the merger."""

from __future__ import annotations


class RegistryError(RuntimeError):
    """Base class for registry resolution failures."""


class InvalidIdentifierError(RegistryError, ValueError):
    """Raised when a component identifier is not ``author/slug`` shaped."""


class ComponentNotFoundError(RegistryError):
    """Raised when a requested author or component does not exist."""


class ArtifactFetchError(RegistryError):
    """Raised when a single artifact (code, CSS, config) cannot be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch artifact {url}: {reason}")
        self.url = url
        self.reason = reason


class ServiceUnavailableError(RegistryError):
    """Raised when a backing service cannot be reached at all."""


class RegistryUnavailableError(ServiceUnavailableError):
    """Raised when the component metadata store is unavailable."""


class ArtifactStoreUnavailableError(ServiceUnavailableError):
    """Raised when blob storage is unavailable or misconfigured."""


class StyleMergeError(RegistryError):
    """Raised when a style fragment cannot be merged."""


class StyleConflictError(StyleMergeError):
    """Raised under the ``error`` policy when two fragments disagree."""


class JsLiteralError(StyleMergeError):
    """Raised when a Tailwind config module cannot be parsed."""


class CssSyntaxError(StyleMergeError):
    """Raised when a stylesheet cannot be split into balanced statements."""


class ResolutionCancelledError(RegistryError):
    """Raised when the caller cancels an in-flight resolution."""


class ResolutionTimeoutError(ResolutionCancelledError):
    """Raised when a resolution exceeds its overall time budget."""
