"""ContentHistory model: append-only log of completed sends."""

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class DeliveryTrigger(str, enum.Enum):
    """What caused a send."""

    SCHEDULED = "scheduled"
    FORCED = "forced"
    MANUAL = "manual"


class ContentHistory(Base):
    """One row per completed send. Never updated or deleted.

    For scheduled and forced sends ``occasion_date`` holds the user's local
    calendar date, and the unique constraint on (user_id, occasion_date)
    is the durable idempotency marker for that occasion. Manual sends leave
    it null; Postgres treats nulls as distinct, so they never collide.
    """

    __tablename__ = "content_history"
    __table_args__ = (
        UniqueConstraint("user_id", "occasion_date", name="uq_content_history_user_occasion"),
        Index("ix_content_history_user_sent", "user_id", "sent_at"),
    )

    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # What was sent
    industry: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    snippet: Mapped[str] = mapped_column(Text, nullable=False)
    template: Mapped[str] = mapped_column(String(100), nullable=False)
    tone: Mapped[str] = mapped_column(String(255), nullable=False)

    # Occasion bookkeeping
    trigger: Mapped[DeliveryTrigger] = mapped_column(
        Enum(
            DeliveryTrigger,
            name="delivery_trigger",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=DeliveryTrigger.SCHEDULED,
    )
    occasion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ContentHistory {self.user_id} {self.occasion_date} ({self.trigger.value})>"
