"""Preference store: durable per-user delivery preferences."""

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import StoreError
from app.models.preference import UserPreference
from app.schemas.preferences import clamp_temperature

logger = logging.getLogger(__name__)

# Columns a save may change; user_id is the conflict key
_UPSERT_COLUMNS = (
    "email",
    "industry",
    "tone",
    "template",
    "temperature",
    "delivery_time",
    "timezone",
    "auto_generate",
)


class PreferenceStore:
    """Reads and upserts ``user_preferences`` rows keyed by user_id.

    Every call opens its own session so concurrent delivery tasks never
    share one.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def get(self, user_id: str) -> UserPreference | None:
        try:
            async with self.session_maker() as session:
                stmt = select(UserPreference).where(UserPreference.user_id == user_id)
                return (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load preferences for {user_id}: {exc}") from exc

    async def upsert(self, user_id: str, email: str, data: dict[str, Any]) -> UserPreference:
        """Insert or update the user's single preference row."""
        values: dict[str, Any] = {
            column: data[column] for column in _UPSERT_COLUMNS if column in data
        }
        values["user_id"] = user_id
        values["email"] = email
        if "temperature" in values:
            values["temperature"] = clamp_temperature(float(values["temperature"]))

        stmt = pg_insert(UserPreference).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserPreference.user_id],
            set_={
                **{column: stmt.excluded[column] for column in values if column != "user_id"},
                "updated_at": func.now(),
            },
        ).returning(UserPreference)

        try:
            async with self.session_maker() as session:
                record = (await session.execute(stmt)).scalar_one()
                await session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to save preferences for {user_id}: {exc}") from exc

        logger.info("Preferences saved: user=%s industry=%s", user_id, record.industry)
        return record

    async def list_all(self) -> list[UserPreference]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(select(UserPreference))
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list preferences: {exc}") from exc

    async def list_by_user_ids(self, user_ids: Sequence[str]) -> list[UserPreference]:
        if not user_ids:
            return []
        try:
            async with self.session_maker() as session:
                stmt = select(UserPreference).where(UserPreference.user_id.in_(list(user_ids)))
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load preferences: {exc}") from exc
