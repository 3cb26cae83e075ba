"""UserSubscription model, written by the billing integration."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, UpdatedAtMixin


class UserSubscription(Base, UpdatedAtMixin):
    """Billing status per email address.

    This service only reads the table to gate generation and preference
    saves; the billing provider's webhook handler owns every write.
    """

    __tablename__ = "user_subscriptions"

    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )
    # Provider status: active, trialing, past_due, canceled, ...
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="active",
    )
    plan_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="monthly",
    )
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<UserSubscription {self.email} ({self.status})>"
