"""Notification dispatch: authenticate, then deliver one message.

State machine::

    START → AUTHENTICATING → AUTHENTICATED → DELIVERING → DELIVERED
                  │                                   └→ DELIVERY_FAILED
                  └→ AUTH_FAILED

``send`` never raises for backend failures.  Every failure comes back as a
``DeliveryResult`` carrying an HTTP-like ``status`` and a ``body``; transport
errors without a response are reported as status 500.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from src.coaching.adapters._http import response_body
from src.coaching.base import NotificationBackend

logger = logging.getLogger("smartcoach.coaching.notify")


class DeliveryState(str, Enum):
    START = "start"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    AUTH_FAILED = "auth_failed"


class DeliveryErrorKind(str, Enum):
    AUTHENTICATION = "AuthenticationError"
    DELIVERY = "DeliveryError"


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one ``send`` call.

    Attributes:
        user_id: Target user.
        state:   Terminal state reached.
        status:  HTTP-like status (200 on success).
        body:    Backend ack on success, error payload otherwise.
        kind:    Error classification, None on success.
    """

    user_id: str
    state: DeliveryState
    status: int
    body: Any = None
    kind: DeliveryErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.state is DeliveryState.DELIVERED

    @property
    def error_message(self) -> str | None:
        if self.ok:
            return None
        if isinstance(self.body, dict):
            detail = self.body.get("error") or self.body.get("message")
            if detail:
                return str(detail)
        return str(self.body) if self.body is not None else "Unknown error"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "userId": self.user_id,
            "state": self.state.value,
            "status": self.status,
            "body": self.body,
        }
        if self.kind:
            data["kind"] = self.kind.value
        return data


def extract_token(auth_response: Any) -> str | None:
    """Pull the bearer token from ``{"data": {"token": ...}}`` or ``{"token": ...}``."""
    if not isinstance(auth_response, dict):
        return None
    nested = auth_response.get("data")
    if isinstance(nested, dict) and nested.get("token"):
        return str(nested["token"])
    if auth_response.get("token"):
        return str(auth_response["token"])
    return None


def _normalize_error(exc: Exception) -> tuple[int, Any]:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code, response_body(exc.response)
    return 500, str(exc)


class NotificationDispatcher:
    """Deliver coaching messages through a ``NotificationBackend``."""

    def __init__(self, backend: NotificationBackend, credentials: dict[str, str]) -> None:
        self._backend = backend
        self._credentials = credentials

    async def send(self, user_id: str, message: str) -> DeliveryResult:
        logger.info("Sending notification to %s", user_id)

        try:
            auth_response = await self._backend.authenticate(self._credentials)
        except Exception as exc:
            status, body = _normalize_error(exc)
            logger.error("Notification auth failed for %s (%s): %s", user_id, status, body)
            return DeliveryResult(
                user_id, DeliveryState.AUTH_FAILED, status,
                {"error": str(exc), "details": body},
                DeliveryErrorKind.AUTHENTICATION,
            )

        token = extract_token(auth_response)
        if not token:
            logger.error("Notification auth for %s returned no token", user_id)
            return DeliveryResult(
                user_id, DeliveryState.AUTH_FAILED, 500,
                {"error": "Authentication succeeded but no token was returned."},
                DeliveryErrorKind.AUTHENTICATION,
            )
        logger.debug("Authenticated for %s (token %s...)", user_id, token[:8])

        try:
            ack = await self._backend.deliver(
                token, {"target_user": user_id, "message": message}
            )
        except Exception as exc:
            status, body = _normalize_error(exc)
            logger.error("Notification delivery failed for %s (%s): %s", user_id, status, body)
            return DeliveryResult(
                user_id, DeliveryState.DELIVERY_FAILED, status,
                {"error": str(exc), "details": body},
                DeliveryErrorKind.DELIVERY,
            )

        logger.info("Notification delivered to %s", user_id)
        return DeliveryResult(user_id, DeliveryState.DELIVERED, 200, ack)
