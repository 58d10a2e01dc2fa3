"""Fitrockr API adapter.

Fitrockr aggregates wearable data per tenant.  Requests are authenticated
with a static tenant header and API key rather than per-user OAuth.

Endpoints used:
    GET /users?page=0&size=N                              — tenant user listing
    GET /users/{id}/dailySummaries?startDate=&endDate=    — per-day summaries
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from src.coaching.adapters._http import response_body
from src.coaching.base import HealthProvider
from src.coaching.errors import ProviderError
from src.config import Settings

logger = logging.getLogger("smartcoach.coaching.fitrockr")


def unwrap_content(payload: Any) -> list:
    """Return the item list from either a bare list or a ``{"content": [...]}`` envelope."""
    if isinstance(payload, dict):
        payload = payload.get("content")
    if isinstance(payload, list):
        return payload
    return []


class FitrockrClient(HealthProvider):
    """Read-only client for the Fitrockr v1 API."""

    def __init__(
        self,
        base_url: str,
        tenant: str,
        api_key: str,
        page_size: int = 100,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url:    API root, e.g. ``https://api-02.fitrockr.com/v1``.
            tenant:      Value of the ``X-Tenant`` header.
            api_key:     Value of the ``X-API-Key`` header.
            page_size:   Number of users requested from the listing endpoint.
            timeout:     Per-request timeout in seconds.
            http_client: Optional pre-configured httpx client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._tenant = tenant
        self._api_key = api_key
        self._page_size = page_size
        self._timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "FitrockrClient":
        return cls(
            base_url=settings.fitrockr_base_url,
            tenant=settings.fitrockr_tenant,
            api_key=settings.fitrockr_api_key,
            page_size=settings.fitrockr_page_size,
            timeout=settings.http_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # HealthProvider interface
    # ------------------------------------------------------------------

    async def list_users(self) -> list[dict]:
        payload = await self._get("/users", params={"page": 0, "size": self._page_size})
        users = [u for u in unwrap_content(payload) if isinstance(u, dict)]
        logger.info("Fitrockr: retrieved %d users", len(users))
        return users

    async def get_user(self, provider_id: str) -> dict:
        """Find one user by scanning the tenant listing.

        Raises:
            ProviderError: 404 when no user carries ``provider_id``.
        """
        for user in await self.list_users():
            if str(user.get("id")) == str(provider_id):
                return user
        logger.warning("Fitrockr: user %s not found", provider_id)
        raise ProviderError(404, f"No user found with ID {provider_id}.")

    async def get_entries(
        self, provider_id: str, start_date: date, end_date: date
    ) -> list[dict] | dict:
        payload = await self._get(
            f"/users/{provider_id}/dailySummaries",
            params={
                "startDate": start_date.isoformat(),
                "endDate": end_date.isoformat(),
            },
        )
        if payload is None:
            return []
        return payload

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Tenant": self._tenant,
            "X-API-Key": self._api_key,
        }

    async def _get(self, path: str, params: dict) -> Any:
        """Make an authenticated GET request.

        Raises:
            ProviderError: On non-2xx responses, transport failures, or a 2xx
                body that is not JSON.

        Returns None for an empty 2xx body.
        """
        url = f"{self._base_url}{path}"
        headers = self._build_headers()

        try:
            if self._http_client:
                response = await self._http_client.get(url, params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = response_body(exc.response)
            logger.error("Fitrockr %s failed (%s): %s", path, exc.response.status_code, body)
            raise ProviderError(exc.response.status_code, body) from exc
        except httpx.HTTPError as exc:
            logger.error("Fitrockr %s transport error: %s", path, exc)
            raise ProviderError(500, str(exc)) from exc

        if not response.content.strip():
            logger.warning("Fitrockr %s returned an empty body (%s)", path, response.status_code)
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Fitrockr %s returned a non-JSON body (%s)", path, response.status_code)
            raise ProviderError(response.status_code, response.text) from exc
