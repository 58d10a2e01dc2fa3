"""HTTP notification backend: login endpoint plus a push endpoint.

The backend issues a short-lived JWT from ``POST <auth_url>`` and accepts
``{"driver_id": ..., "message": ...}`` on ``POST <notify_url>``.  Errors are
left as httpx exceptions; the dispatcher classifies them.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.coaching.adapters._http import response_body
from src.coaching.base import NotificationBackend
from src.config import Settings


class HttpNotificationBackend(NotificationBackend):
    """Token-authenticated webhook delivering coaching messages to devices."""

    def __init__(
        self,
        auth_url: str,
        notify_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._auth_url = auth_url
        self._notify_url = notify_url
        self._timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpNotificationBackend":
        return cls(
            auth_url=settings.notify_auth_url,
            notify_url=settings.notify_url,
            timeout=settings.http_timeout_seconds,
        )

    async def authenticate(self, credentials: dict) -> dict:
        data = await self._post(self._auth_url, credentials, {"Content-Type": "application/json"})
        return data if isinstance(data, dict) else {}

    async def deliver(self, token: str, payload: dict) -> Any:
        body = {"driver_id": payload["target_user"], "message": payload["message"]}
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        return await self._post(self._notify_url, body, headers)

    async def _post(self, url: str, body: dict, headers: dict[str, str]) -> Any:
        """POST JSON and return the decoded body.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.HTTPError:       On transport failures.
        """
        if self._http_client:
            response = await self._http_client.post(url, json=body, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(url, json=body, headers=headers)

        response.raise_for_status()
        return response_body(response)
