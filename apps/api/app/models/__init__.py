"""SQLAlchemy models."""

from app.models.base import Base
from app.models.content_history import ContentHistory, DeliveryTrigger
from app.models.preference import UserPreference
from app.models.subscription import UserSubscription

__all__ = [
    # Base
    "Base",
    # Preferences
    "UserPreference",
    # Delivery history
    "ContentHistory",
    "DeliveryTrigger",
    # Billing (read-only)
    "UserSubscription",
]
