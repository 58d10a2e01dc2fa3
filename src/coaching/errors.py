"""Exception types shared by the coaching engine.

Only ``ValidationError`` is meant to reach an immediate caller.  The others
are raised at collaborator boundaries and absorbed by the component that
owns the fallback (resolver, synthesizer, pipeline).
"""

from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """Missing or malformed required input (user id, message, time format)."""


class ProviderError(Exception):
    """Non-2xx, non-JSON or transport failure from the health-data provider.

    Attributes:
        status: HTTP status code (500 when no response was received).
        body:   Decoded response body, or the transport error message.
    """

    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Provider returned {status}: {body}")


class TextGenerationError(Exception):
    """The text-generation service failed or returned an unusable response."""
