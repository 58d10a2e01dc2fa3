"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from src.config import Settings, get_settings
from src.services.coaching import CoachingServices


def get_services(request: Request) -> CoachingServices:
    """Return the coaching services built by ``create_app``."""
    return request.app.state.services


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with (falls back to the env-derived ones)."""
    return getattr(request.app.state, "settings", None) or get_settings()


# Annotated shortcuts for route signatures
Services = Annotated[CoachingServices, Depends(get_services)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
