"""Outbound adapters for the coaching engine.

Each adapter implements one collaborator interface from
``src.coaching.base`` over httpx:

    FitrockrClient          — HealthProvider (Fitrockr v1 API, tenant + API key)
    OpenAIChatClient        — TextGenerator (chat completions)
    HttpNotificationBackend — NotificationBackend (JWT login + push webhook)
"""

from src.coaching.adapters.fitrockr import FitrockrClient, unwrap_content
from src.coaching.adapters.notification import HttpNotificationBackend
from src.coaching.adapters.openai_chat import OpenAIChatClient

__all__ = [
    "FitrockrClient",
    "HttpNotificationBackend",
    "OpenAIChatClient",
    "unwrap_content",
]
