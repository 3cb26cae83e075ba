"""Pydantic schemas for scheduled delivery passes and entitlements."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import BaseSchema

EntitlementStatus = Literal["active", "inactive", "expired"]


class SubscriptionStatusResponse(BaseSchema):
    """Entitlement status for the current user."""

    status: EntitlementStatus
    plan_type: str | None = None
    expires_at: datetime | None = None


class DeliveryFailure(BaseSchema):
    """One user whose occasion did not complete."""

    user_id: str
    email: str
    stage: str
    error: str


class PassResult(BaseSchema):
    """Outcome of one scheduled delivery pass.

    ``processed`` counts only occasions that were generated, sent and
    recorded.
    """

    processed: int = 0
    successes: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    errors: list[DeliveryFailure] = Field(default_factory=list)


class RunDeliveriesRequest(BaseSchema):
    """Request body for POST /deliveries/run. Every field is optional."""

    user_ids: list[str] | None = None
    force_send_today: bool = False


class RunDeliveriesResponse(PassResult):
    """Response for POST /deliveries/run."""

    success: bool = True
