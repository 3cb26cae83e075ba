"""Entitlement checks against billing data written by the payment provider."""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import StoreError
from app.models.subscription import UserSubscription
from app.schemas.delivery import EntitlementStatus, SubscriptionStatusResponse

logger = logging.getLogger(__name__)

# Provider statuses that grant access
ENTITLED_STATUSES = frozenset({"active", "trialing"})


def resolve_status(subscription: UserSubscription | None, now: datetime) -> EntitlementStatus:
    """Map a billing row to active / inactive / expired."""
    if subscription is None:
        return "inactive"
    if subscription.expires_at is not None:
        expires_at = subscription.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        if expires_at < now:
            return "expired"
    if subscription.status not in ENTITLED_STATUSES:
        return "inactive"
    return "active"


class EntitlementService:
    """Read-only view of ``user_subscriptions``."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get_subscription(self, email: str) -> UserSubscription | None:
        stmt = select(UserSubscription).where(
            func.lower(UserSubscription.email) == email.strip().lower()
        )
        try:
            async with self.session_maker() as session:
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load subscription for {email}: {exc}") from exc

    async def get_status(self, email: str) -> EntitlementStatus:
        subscription = await self.get_subscription(email)
        status = resolve_status(subscription, datetime.now(UTC))
        logger.debug("Entitlement for %s: %s", email, status)
        return status

    async def describe(self, email: str) -> SubscriptionStatusResponse:
        """Status plus plan details for the dashboard."""
        subscription = await self.get_subscription(email)
        status = resolve_status(subscription, datetime.now(UTC))
        return SubscriptionStatusResponse(
            status=status,
            plan_type=subscription.plan_type if subscription else None,
            expires_at=subscription.expires_at if subscription else None,
        )
