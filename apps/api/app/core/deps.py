"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Re-export auth dependencies for convenience
from app.core.auth import CurrentUser, get_current_user
from app.core.config import settings
from app.core.database import async_session_maker, get_async_session
from app.core.security import verify_shared_secret
from app.services.content_service import ContentService
from app.services.delivery_service import DeliveryService
from app.services.email_service import EmailService
from app.services.entitlement_service import EntitlementService
from app.services.history_service import HistoryLog
from app.services.preference_service import PreferenceStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session for backwards compatibility."""
    async for session in get_async_session():
        yield session


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the stores; each store call opens its own session."""
    return async_session_maker


def get_preference_store(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> PreferenceStore:
    return PreferenceStore(session_maker)


def get_history_log(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> HistoryLog:
    return HistoryLog(session_maker)


def get_entitlement_service(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> EntitlementService:
    return EntitlementService(session_maker)


def get_content_service() -> ContentService:
    return ContentService()


def get_email_service() -> EmailService:
    return EmailService()


def get_delivery_service(
    preferences: PreferenceStore = Depends(get_preference_store),
    history: HistoryLog = Depends(get_history_log),
    content: ContentService = Depends(get_content_service),
    email: EmailService = Depends(get_email_service),
) -> DeliveryService:
    return DeliveryService(preferences, history, content, email)


PreferenceStoreDep = Annotated[PreferenceStore, Depends(get_preference_store)]
HistoryLogDep = Annotated[HistoryLog, Depends(get_history_log)]
EntitlementServiceDep = Annotated[EntitlementService, Depends(get_entitlement_service)]
ContentServiceDep = Annotated[ContentService, Depends(get_content_service)]
DeliveryServiceDep = Annotated[DeliveryService, Depends(get_delivery_service)]


def get_user_email(user: dict[str, Any]) -> str:
    """Extract the email address from the authenticated user's JWT payload."""
    return str(user["email"])


async def require_entitlement(
    user: CurrentUser,
    entitlements: EntitlementServiceDep,
) -> dict[str, Any]:
    """Reject users without an active subscription before any side effect."""
    entitlement = await entitlements.get_status(get_user_email(user))
    if entitlement != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"An active subscription is required (status: {entitlement})",
        )
    return user


EntitledUser = Annotated[dict[str, Any], Depends(require_entitlement)]


async def verify_scheduler_token(
    x_scheduler_token: str | None = Header(None, alias="X-Scheduler-Token"),
) -> None:
    """Guard the scheduled-delivery entry point with a shared secret."""
    if not verify_shared_secret(x_scheduler_token, settings.scheduler_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid scheduler token",
        )


__all__ = [
    "ContentServiceDep",
    "CurrentUser",
    "DBSession",
    "DeliveryServiceDep",
    "EntitledUser",
    "EntitlementServiceDep",
    "HistoryLogDep",
    "PreferenceStoreDep",
    "get_content_service",
    "get_current_user",
    "get_db",
    "get_delivery_service",
    "get_email_service",
    "get_entitlement_service",
    "get_history_log",
    "get_preference_store",
    "get_session_maker",
    "get_user_email",
    "require_entitlement",
    "verify_scheduler_token",
]
