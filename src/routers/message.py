"""Coaching-message generation endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.coaching.base import AggregatedMetrics
from src.coaching.errors import ProviderError, ValidationError
from src.coaching.synthesizer import describe_metrics
from src.dependencies import Services
from src.models.coaching import (
    GenerateMessageRequest,
    GenerateMessageResponse,
    UserMessageResponse,
)

router = APIRouter(prefix="/message", tags=["message"])
logger = logging.getLogger("smartcoach.routers.message")


@router.post("/generate", response_model=GenerateMessageResponse)
async def generate_message(body: GenerateMessageRequest, services: Services) -> Any:
    """Generate a message for caller-supplied metrics."""
    metrics = AggregatedMetrics.from_payload(body.health_data)
    message = await services.pipeline.generate_for_metrics(metrics, body.display_name)
    return GenerateMessageResponse(message=message)


@router.get("/user/{user_id}", response_model=UserMessageResponse)
async def generate_message_for_user(user_id: str, services: Services) -> Any:
    """Fetch the user's latest metrics and generate a message (no delivery)."""
    try:
        result = await services.pipeline.generate_for_user(user_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProviderError as exc:
        logger.error("generate_message_for_user %s failed: %s", user_id, exc)
        if exc.status == 404:
            detail = "User not registered on Fitrockr"
        else:
            detail = f"Health provider error: {exc.body}"
        raise HTTPException(status_code=exc.status if exc.status >= 400 else 502, detail=detail) from exc

    identity = result.resolution.status.value if result.resolution else None
    if result.message is None:
        return UserMessageResponse(identity=identity, error="No recent health data available")

    return UserMessageResponse(
        message=result.message,
        has_fitrockr_data=True,
        fitrockr_data=describe_metrics(result.metrics),
        identity=identity,
    )
