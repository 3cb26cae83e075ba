"""Pydantic schemas for generated content and the manual send path."""

from datetime import date, datetime
from uuid import UUID

from pydantic import Field, field_validator

from app.models.content_history import DeliveryTrigger
from app.schemas.common import BaseSchema
from app.schemas.preferences import clamp_temperature, normalize_template


class ContentArtifact(BaseSchema):
    """One generated piece of content."""

    title: str
    body: str
    snippet: str


class ToneCopy(BaseSchema):
    """Tone-driven wording the renderer places around generated content."""

    tone: str
    description: str
    heading: str
    intro: str
    bullet_lead: str
    closing: str


class ContentIdea(BaseSchema):
    """A heading plus how to use it."""

    title: str
    description: str


class ContentIdeas(BaseSchema):
    """Three topics, three hooks and three tips for an industry."""

    topics: list[ContentIdea] = Field(default_factory=list)
    hooks: list[ContentIdea] = Field(default_factory=list)
    tips: list[ContentIdea] = Field(default_factory=list)


class ContentIdeasRequest(BaseSchema):
    """Request body for POST /content/ideas."""

    industry: str = Field(..., min_length=1, max_length=255)


class GenerateContentRequest(BaseSchema):
    """Request body for POST /content/generate.

    Any field left out falls back to the user's stored preference.
    """

    industry: str | None = Field(None, min_length=1, max_length=255)
    template: str | None = None
    tone: str | None = Field(None, min_length=1, max_length=255)
    temperature: float | None = None
    send_now: bool = True

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, value: float | None) -> float | None:
        return None if value is None else clamp_temperature(value)

    @field_validator("template")
    @classmethod
    def validate_template(cls, value: str | None) -> str | None:
        return None if value is None else normalize_template(value)


class GenerateContentResponse(BaseSchema):
    """Response for POST /content/generate."""

    content: ContentArtifact
    sent: bool


class ContentHistoryResponse(BaseSchema):
    """API response for one history record."""

    id: UUID
    industry: str
    title: str
    snippet: str
    template: str
    tone: str
    trigger: DeliveryTrigger
    occasion_date: date | None
    sent_at: datetime
