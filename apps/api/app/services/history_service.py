"""Append-only content history, doubling as the per-occasion idempotency marker."""

import logging
from dataclasses import asdict, dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import StoreError
from app.models.content_history import ContentHistory, DeliveryTrigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Values for one new history row."""

    user_id: str
    email: str
    industry: str
    title: str
    content: str
    snippet: str
    template: str
    tone: str
    trigger: DeliveryTrigger
    occasion_date: date | None
    message_id: str | None = None


class HistoryLog:
    """Insert-only access to ``content_history``."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def append(self, entry: HistoryEntry) -> bool:
        """Record a completed send.

        Returns ``False`` when a record for the same (user, occasion date)
        already exists, i.e. a concurrent pass completed this occasion first.
        """
        stmt = (
            pg_insert(ContentHistory)
            .values(**asdict(entry))
            .on_conflict_do_nothing(constraint="uq_content_history_user_occasion")
            .returning(ContentHistory.id)
        )
        try:
            async with self.session_maker() as session:
                inserted = (await session.execute(stmt)).scalar_one_or_none()
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to record history for {entry.user_id}: {exc}") from exc

        if inserted is None:
            logger.warning(
                "History already recorded: user=%s occasion=%s",
                entry.user_id,
                entry.occasion_date,
            )
            return False
        return True

    async def has_occasion(self, user_id: str, occasion_date: date) -> bool:
        """Whether the user already has a delivery recorded for that local date."""
        stmt = select(ContentHistory.id).where(
            ContentHistory.user_id == user_id,
            ContentHistory.occasion_date == occasion_date,
        )
        try:
            async with self.session_maker() as session:
                return (await session.execute(stmt.limit(1))).first() is not None
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to check history for {user_id}: {exc}") from exc

    async def list_for_user(self, user_id: str, limit: int = 20) -> list[ContentHistory]:
        """Most recent sends first."""
        stmt = (
            select(ContentHistory)
            .where(ContentHistory.user_id == user_id)
            .order_by(ContentHistory.sent_at.desc())
            .limit(limit)
        )
        try:
            async with self.session_maker() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list history for {user_id}: {exc}") from exc
