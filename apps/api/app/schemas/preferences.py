"""Pydantic schemas for user delivery preferences."""

import math
from datetime import datetime

from pydantic import Field, field_validator

from app.schemas.common import BaseSchema
from app.services.occasion import load_zone, parse_delivery_time
from app.services.template_renderer import parse_template


def clamp_temperature(value: float) -> float:
    """Clamp a creativity level into [0.0, 1.0]; NaN and infinities are rejected."""
    if not math.isfinite(value):
        raise ValueError("temperature must be a finite number")
    return min(max(value, 0.0), 1.0)


def normalize_template(value: str) -> str:
    """Validate a legacy template string and return its canonical form."""
    return parse_template(value).legacy


def normalize_delivery_time(value: str) -> str:
    """Validate a 24-hour time and return it as ``HH:MM``."""
    return parse_delivery_time(value).strftime("%H:%M")


class PreferenceUpdate(BaseSchema):
    """Request body for PUT /preferences."""

    industry: str = Field(..., min_length=1, max_length=255)
    tone: str = Field("professional", min_length=1, max_length=255)
    template: str = "bullet-points-style-x-style"
    temperature: float = 0.7
    delivery_time: str | None = None
    timezone: str | None = Field(None, max_length=64)
    auto_generate: bool = False
    # Dispatch today's content right after saving, bypassing the time window
    send_today: bool = False

    @field_validator("industry", "tone")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, value: float) -> float:
        return clamp_temperature(value)

    @field_validator("template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        return normalize_template(value)

    @field_validator("delivery_time")
    @classmethod
    def validate_delivery_time(cls, value: str | None) -> str | None:
        return None if not value else normalize_delivery_time(value)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        if not value:
            return None
        load_zone(value)
        return value


class PreferenceResponse(BaseSchema):
    """API response for a stored preference."""

    user_id: str
    email: str
    industry: str
    tone: str
    template: str
    temperature: float
    delivery_time: str | None
    timezone: str | None
    auto_generate: bool
    created_at: datetime
    updated_at: datetime


class PreferenceSaveResponse(PreferenceResponse):
    """Response for PUT /preferences."""

    delivery_queued: bool = False
