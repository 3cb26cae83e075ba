"""UserPreference model: per-user content and delivery configuration."""

from sqlalchemy import Boolean, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, UpdatedAtMixin

DEFAULT_TEMPLATE = "bullet-points-style-x-style"
DEFAULT_TONE = "professional"


class UserPreference(Base, UpdatedAtMixin):
    """Delivery preferences for a single user.

    One row per identity-provider subject. The scheduled pass reads every
    row; only the preference editor writes them.
    """

    __tablename__ = "user_preferences"

    # Identity-provider subject; upserts are keyed on it
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Content configuration
    industry: Mapped[str] = mapped_column(String(255), nullable=False)
    tone: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default=DEFAULT_TONE,
    )
    # Legacy "{format}-style-{style}" string; parsed by the template renderer
    template: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default=DEFAULT_TEMPLATE,
    )
    temperature: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.7,
    )

    # Delivery configuration
    delivery_time: Mapped[str | None] = mapped_column(
        String(5),
        nullable=True,
    )
    timezone: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    auto_generate: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserPreference {self.user_id} {self.industry!r} at {self.delivery_time} {self.timezone}>"
