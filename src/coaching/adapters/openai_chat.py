"""OpenAI chat-completions adapter used as the text generator.

One request per prompt, no streaming.  Every failure is surfaced as
``TextGenerationError`` so the synthesizer can fall back uniformly.
"""

from __future__ import annotations

import logging

import httpx

from src.coaching.adapters._http import response_body
from src.coaching.base import TextGenerator
from src.coaching.errors import TextGenerationError
from src.config import Settings

logger = logging.getLogger("smartcoach.coaching.openai")


class OpenAIChatClient(TextGenerator):
    """Minimal client for ``POST /chat/completions``."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._timeout = timeout
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIChatClient":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.http_timeout_seconds,
        )

    async def complete(self, prompt: str) -> str:
        body = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._http_client:
                response = await self._http_client.post(self._url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise TextGenerationError(
                f"completion failed ({exc.response.status_code}): {response_body(exc.response)}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TextGenerationError(f"completion request failed: {exc}") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise TextGenerationError(f"malformed completion response: {data!r}") from exc

        if not isinstance(content, str) or not content.strip():
            raise TextGenerationError("completion response has no text")
        return content.strip()
