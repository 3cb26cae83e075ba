"""Pydantic schemas for request/response validation."""

from app.schemas.common import BaseSchema, HealthResponse

__all__ = [
    "BaseSchema",
    "HealthResponse",
]
