"""Subscription status endpoint."""

from fastapi import APIRouter

from app.core.deps import CurrentUser, EntitlementServiceDep, get_user_email
from app.schemas.delivery import SubscriptionStatusResponse

router = APIRouter()


@router.get(
    "/status",
    response_model=SubscriptionStatusResponse,
    summary="Get subscription status",
    description="Entitlement status (active, inactive or expired) for the authenticated user.",
)
async def get_subscription_status(
    user: CurrentUser,
    entitlements: EntitlementServiceDep,
) -> SubscriptionStatusResponse:
    return await entitlements.describe(get_user_email(user))
