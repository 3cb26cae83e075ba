"""API v1 router combining all route modules."""

from fastapi import APIRouter

from app.api.v1 import content, deliveries, health, preferences, subscription

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Delivery preferences (requires auth; saving requires an active subscription)
api_router.include_router(
    preferences.router,
    prefix="/preferences",
    tags=["preferences"],
)

# Entitlement status
api_router.include_router(
    subscription.router,
    prefix="/subscription",
    tags=["subscription"],
)

# Manual generation, ideas and history
api_router.include_router(
    content.router,
    prefix="/content",
    tags=["content"],
)

# Scheduled pass (no user auth - verified via shared scheduler token)
api_router.include_router(
    deliveries.router,
    prefix="/deliveries",
    tags=["deliveries"],
)
