from __future__ import annotations

"""Client for the component registry's REST (PostgREST-style) API."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from registry_preview.clients.base_client import BaseClient
from registry_preview.config import (DEFAULT_FETCH_TIMEOUT_SECONDS,
                                     DEFAULT_MAX_CALLS, DEFAULT_PERIOD_SECONDS)
from registry_preview.models.components import ComponentRecord
from registry_preview.net.rate_limiter import RateLimiter
from registry_preview.storage.errors import RegistryUnavailableError

USERS_PATH = "/rest/v1/users"
COMPONENTS_PATH = "/rest/v1/components"
MATCH_COLUMNS = (
    "id,component_slug,component_names,registry,code,global_css_extension,"
    "tailwind_config_extension,dependencies,direct_registry_dependencies,"
    "user:users!user_id(username,display_username)"
)
_UNAVAILABLE_STATUSES = {401, 403, 408, 429}


class RegistryApiClient(BaseClient[Any]):
    """Look components up through the registry's ``users``/``components`` tables."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        limiter = rate_limiter or RateLimiter(
            max_calls=DEFAULT_MAX_CALLS,
            period_seconds=DEFAULT_PERIOD_SECONDS,
        )
        super().__init__(limiter, logger=logger)
        if not base_url:
            raise RegistryUnavailableError("Registry API base URL is empty")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout

    def lookup(self, author: str, slug: str) -> Optional[ComponentRecord]:
        """Return the component published by ``author`` under ``slug``."""

        users = self._select(
            USERS_PATH,
            {"select": "id", "username": f"eq.{author}", "limit": "1"},
            name=f"registry.user({author})",
        )
        if not users or users[0].get("id") is None:
            self._logger.error("User not found: %s", author)
            return None

        components = self._select(
            COMPONENTS_PATH,
            {
                "select": "*",
                "user_id": f"eq.{users[0]['id']}",
                "component_slug": f"eq.{slug}",
                "limit": "1",
            },
            name=f"registry.component({author}/{slug})",
        )
        if not components:
            self._logger.error("Component not found: %s/%s", author, slug)
            return None

        try:
            return ComponentRecord.from_row(components[0], author=author)
        except ValueError as error:
            self._logger.error(
                "Invalid component row for %s/%s: %s", author, slug, error
            )
            return None

    def find_by_slug(self, slug: str) -> Sequence[ComponentRecord]:
        """Return every component whose slug equals ``slug``."""

        rows = self._select(
            COMPONENTS_PATH,
            {"select": MATCH_COLUMNS, "component_slug": f"eq.{slug}"},
            name=f"registry.find_by_slug({slug})",
        )
        records: List[ComponentRecord] = []
        for row in rows:
            try:
                records.append(ComponentRecord.from_row(row))
            except ValueError as error:
                self._logger.warning(
                    "Skipping component row without author: %s", error
                )
        return records

    def _select(
        self, path: str, params: Dict[str, str], *, name: str
    ) -> List[Dict[str, Any]]:
        url = f"{self._base_url}{path}"

        def _operation() -> List[Dict[str, Any]]:
            try:
                response = self._session.get(
                    url,
                    params=params,
                    headers=self._build_headers(),
                    timeout=self._timeout,
                )
            except requests.RequestException as error:
                raise RegistryUnavailableError(
                    f"Registry API request failed: {error}"
                ) from error

            status = response.status_code
            if status >= 500 or status in _UNAVAILABLE_STATUSES:
                raise RegistryUnavailableError(
                    f"Registry API returned {status}: {response.text}"
                )
            if status != 200:
                self._logger.error(
                    "Registry API returned %s for %s: %s",
                    status,
                    path,
                    response.text,
                )
                return []
            try:
                payload = response.json()
            except ValueError as error:
                raise RegistryUnavailableError(
                    "Registry API returned a non-JSON body"
                ) from error
            if not isinstance(payload, list):
                return []
            return [row for row in payload if isinstance(row, dict)]

        return self._execute_with_rate_limit(_operation, name=name)

    def _build_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers
