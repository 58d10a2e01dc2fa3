"""Small httpx helpers shared by the outbound adapters."""

from __future__ import annotations

from typing import Any

import httpx


def response_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text
