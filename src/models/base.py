"""Shared Pydantic base model for request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CoachBase(BaseModel):
    """Base model with shared config for all SmartCoach schemas.

    Wire names are camelCase (``userId``); Python attributes are snake_case.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )
