"""Coaching-message synthesis from aggregated metrics.

The prompt is fully determined by the metrics, the optional display name
and the configured language, so identical inputs always produce an
identical prompt.  Generation is best-effort: any failure yields the static
default message.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from src.coaching.base import AggregatedMetrics, TextGenerator

logger = logging.getLogger("smartcoach.coaching.synthesizer")

DEFAULT_MESSAGE = "Here's your daily health update!"


@dataclass(frozen=True)
class SynthesizedMessage:
    text: str
    used_fallback: bool = False


def build_prompt(
    metrics: AggregatedMetrics, language: str, display_name: str | None = None
) -> str:
    """Return the completion prompt for ``metrics``."""
    data = json.dumps(metrics.to_payload(), sort_keys=True)
    if display_name:
        return (
            f"Generate a personalized health coaching message for {display_name} "
            f"based on this health data:\n{data}\n"
            f"Do not start with a greeting, but mention {display_name} by name. "
            f"Keep it motivational and concise, write it in {language}, and do not "
            f"include quotation marks or special characters in the message."
        )
    return (
        f"Based on this health data, generate a personalized coaching message in {language}. "
        f"Do not start with greeting words such as hi or hello; give the coaching message "
        f"directly. Keep it motivational and concise and do not include quotation marks "
        f"or special characters:\n{data}"
    )


def describe_metrics(metrics: AggregatedMetrics) -> dict[str, Any]:
    """Human-readable rendering of ``metrics`` for UI callers."""
    return {
        "steps": f"{metrics.steps} steps",
        "calories": f"{metrics.calories} calories burned",
        "distance": f"{metrics.distance_meters / 1000:.2f} km",
        "activeMinutes": f"{metrics.active_minutes} active minutes",
        "sleepHours": f"{metrics.sleep_hours:.1f} hours of sleep",
        "heartRate": f"{metrics.avg_heart_rate} bpm average heart rate",
        "date": metrics.date.isoformat() if metrics.date else None,
    }


class MessageSynthesizer:
    """Turn metrics into one short coaching message."""

    def __init__(
        self,
        generator: TextGenerator,
        language: str = "Dutch",
        default_message: str = DEFAULT_MESSAGE,
    ) -> None:
        self._generator = generator
        self._language = language
        self._default_message = default_message

    async def synthesize(
        self, metrics: AggregatedMetrics, display_name: str | None = None
    ) -> SynthesizedMessage:
        prompt = build_prompt(metrics, self._language, display_name)
        try:
            text = await self._generator.complete(prompt)
        except Exception as exc:
            logger.warning("Message generation failed, using default message: %s", exc)
            return SynthesizedMessage(self._default_message, used_fallback=True)

        text = (text or "").strip()
        if not text:
            logger.warning("Message generation returned no text, using default message")
            return SynthesizedMessage(self._default_message, used_fallback=True)
        return SynthesizedMessage(text)

    async def generate(
        self, metrics: AggregatedMetrics, display_name: str | None = None
    ) -> str:
        return (await self.synthesize(metrics, display_name)).text
