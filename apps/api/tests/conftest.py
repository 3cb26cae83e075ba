"""Pytest configuration and fixtures for the Industry Insights API test suite.

Provides:
- In-memory fakes for the preference store, history log, entitlement
  service, content generator and mail transport
- Mock authentication (JWT bypass)
- Disabled rate limiting
- A Postgres session factory for repository tests (skipped when the
  test database is unreachable)
"""

import uuid
from collections.abc import AsyncGenerator, Callable, Generator, Sequence
from dataclasses import asdict
from datetime import UTC, date, datetime
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.auth import get_current_user
from app.core.config import settings
from app.core.deps import (
    get_content_service,
    get_email_service,
    get_entitlement_service,
    get_history_log,
    get_preference_store,
)
from app.core.exceptions import GenerationError, TransportError
from app.core.rate_limit import limiter
from app.main import app
from app.models.base import Base
from app.models.content_history import ContentHistory
from app.models.preference import UserPreference
from app.schemas.content import ContentArtifact, ContentIdea, ContentIdeas
from app.schemas.delivery import EntitlementStatus, SubscriptionStatusResponse
from app.services.delivery_service import DeliveryService
from app.services.history_service import HistoryEntry

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "test-user-id"
TEST_USER_EMAIL = "test@example.com"

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# In-memory fakes
# ---------------------------------------------------------------------------


def build_preference(
    *,
    user_id: str = TEST_USER_ID,
    email: str = TEST_USER_EMAIL,
    industry: str = "Healthcare",
    tone: str = "professional",
    template: str = "bullet-points-style-x-style",
    temperature: float = 0.7,
    delivery_time: str | None = "09:00",
    timezone: str | None = "America/New_York",
    auto_generate: bool = True,
) -> UserPreference:
    """A transient UserPreference with every column populated."""
    now = datetime(2024, 1, 1, tzinfo=UTC)
    return UserPreference(
        id=uuid.uuid4(),
        user_id=user_id,
        email=email,
        industry=industry,
        tone=tone,
        template=template,
        temperature=temperature,
        delivery_time=delivery_time,
        timezone=timezone,
        auto_generate=auto_generate,
        created_at=now,
        updated_at=now,
    )


class FakePreferenceStore:
    def __init__(self, records: Sequence[UserPreference] = ()) -> None:
        self.records = {r.user_id: r for r in records}

    async def get(self, user_id: str) -> UserPreference | None:
        return self.records.get(user_id)

    async def upsert(self, user_id: str, email: str, data: dict[str, Any]) -> UserPreference:
        record = build_preference(user_id=user_id, email=email, **data)
        existing = self.records.get(user_id)
        if existing is not None:
            record.id = existing.id
            record.created_at = existing.created_at
        self.records[user_id] = record
        return record

    async def list_all(self) -> list[UserPreference]:
        return list(self.records.values())

    async def list_by_user_ids(self, user_ids: Sequence[str]) -> list[UserPreference]:
        return [r for r in self.records.values() if r.user_id in user_ids]


class FakeHistoryLog:
    def __init__(self) -> None:
        self.entries: list[HistoryEntry] = []

    async def append(self, entry: HistoryEntry) -> bool:
        if entry.occasion_date is not None and await self.has_occasion(
            entry.user_id, entry.occasion_date
        ):
            return False
        self.entries.append(entry)
        return True

    async def has_occasion(self, user_id: str, occasion_date: date) -> bool:
        return any(
            e.user_id == user_id and e.occasion_date == occasion_date for e in self.entries
        )

    async def list_for_user(self, user_id: str, limit: int = 20) -> list[ContentHistory]:
        rows = [
            ContentHistory(
                id=uuid.uuid4(),
                sent_at=datetime(2024, 1, 15, 14, 0, tzinfo=UTC),
                **asdict(entry),
            )
            for entry in reversed(self.entries)
            if entry.user_id == user_id
        ]
        return rows[:limit]


class FakeEntitlementService:
    def __init__(self, default: EntitlementStatus = "active") -> None:
        self.default = default
        self.statuses: dict[str, EntitlementStatus] = {}

    async def get_status(self, email: str) -> EntitlementStatus:
        return self.statuses.get(email.lower(), self.default)

    async def describe(self, email: str) -> SubscriptionStatusResponse:
        status = await self.get_status(email)
        return SubscriptionStatusResponse(
            status=status,
            plan_type="monthly" if status == "active" else None,
        )


class FakeContentService:
    def __init__(self) -> None:
        self.failing_industries: set[str] = set()
        self.calls: list[tuple[str, str, float]] = []

    async def generate(self, industry: str, tone: str, temperature: float) -> ContentArtifact:
        self.calls.append((industry, tone, temperature))
        if industry in self.failing_industries:
            raise GenerationError(f"provider unavailable for {industry}")
        n = len(self.calls)
        return ContentArtifact(
            title=f"{industry} insight {n}",
            body=f"- First point {n}\n- Second point {n}\n- Third point {n}",
            snippet=f"{industry} insight {n}",
        )

    async def generate_batch(
        self, industry: str, tone: str, temperature: float, count: int = 3
    ) -> list[ContentArtifact]:
        return [await self.generate(industry, tone, temperature) for _ in range(count)]

    async def generate_ideas(self, industry: str) -> ContentIdeas:
        if industry in self.failing_industries:
            raise GenerationError("provider unavailable")
        idea = ContentIdea(title=f"{industry} trend", description="Open with a stat")
        return ContentIdeas(topics=[idea], hooks=[idea], tips=[idea])


class FakeEmailService:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.failing_recipients: set[str] = set()

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        tags: list[dict[str, str]] | None = None,
    ) -> str | None:
        if to_email in self.failing_recipients:
            raise TransportError("Mail transport rejected message (422)", status_code=422)
        self.sent.append(
            {"to": to_email, "subject": subject, "html": html_content, "tags": tags}
        )
        return f"msg-{len(self.sent)}"


@pytest.fixture
def preference_factory() -> Callable[..., UserPreference]:
    return build_preference


@pytest.fixture
def preference_store() -> FakePreferenceStore:
    return FakePreferenceStore()


@pytest.fixture
def history_log() -> FakeHistoryLog:
    return FakeHistoryLog()


@pytest.fixture
def entitlements() -> FakeEntitlementService:
    return FakeEntitlementService()


@pytest.fixture
def content_service() -> FakeContentService:
    return FakeContentService()


@pytest.fixture
def email_service() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def delivery_service(
    preference_store: FakePreferenceStore,
    history_log: FakeHistoryLog,
    content_service: FakeContentService,
    email_service: FakeEmailService,
) -> DeliveryService:
    return DeliveryService(
        preference_store,  # type: ignore[arg-type]
        history_log,  # type: ignore[arg-type]
        content_service,  # type: ignore[arg-type]
        email_service,  # type: ignore[arg-type]
        concurrency=2,
    )


# ---------------------------------------------------------------------------
# Auth mock
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default authenticated test user payload (mimics decoded JWT)."""
    return {
        "sub": TEST_USER_ID,
        "email": TEST_USER_EMAIL,
    }


# ---------------------------------------------------------------------------
# Authenticated client (overrides services and auth)
# ---------------------------------------------------------------------------


def _override_services(
    preference_store: FakePreferenceStore,
    history_log: FakeHistoryLog,
    entitlements: FakeEntitlementService,
    content_service: FakeContentService,
    email_service: FakeEmailService,
) -> None:
    app.dependency_overrides[get_preference_store] = lambda: preference_store
    app.dependency_overrides[get_history_log] = lambda: history_log
    app.dependency_overrides[get_entitlement_service] = lambda: entitlements
    app.dependency_overrides[get_content_service] = lambda: content_service
    app.dependency_overrides[get_email_service] = lambda: email_service


@pytest_asyncio.fixture
async def client(
    preference_store: FakePreferenceStore,
    history_log: FakeHistoryLog,
    entitlements: FakeEntitlementService,
    content_service: FakeContentService,
    email_service: FakeEmailService,
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated async test client with all services replaced by fakes."""

    async def _override_user() -> dict[str, Any]:
        return auth_user

    _override_services(preference_store, history_log, entitlements, content_service, email_service)
    app.dependency_overrides[get_current_user] = _override_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Unauthenticated client (fake services, no auth bypass)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def unauthed_client(
    preference_store: FakePreferenceStore,
    history_log: FakeHistoryLog,
    entitlements: FakeEntitlementService,
    content_service: FakeContentService,
    email_service: FakeEmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async test client. Auth is NOT overridden."""
    _override_services(preference_store, history_log, entitlements, content_service, email_service)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Lightweight client (no overrides, for stateless endpoint tests)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Postgres (repository tests)
# ---------------------------------------------------------------------------

_base_url = str(settings.database_url)
_TEST_DATABASE_URL = (
    _base_url
    if _base_url.endswith("/insights_test")
    else _base_url.replace("/insights", "/insights_test")
)


@pytest_asyncio.fixture
async def pg_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a fresh schema in the insights_test database.

    Uses NullPool so no connection outlives the test's event loop.
    """
    engine = create_async_engine(_TEST_DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:  # refused connection, missing database, bad credentials
        await engine.dispose()
        pytest.skip(f"Postgres test database unavailable: {exc}")

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.execute(text("DROP TABLE IF EXISTS content_history, user_preferences, user_subscriptions CASCADE"))
        await conn.execute(text("DROP TYPE IF EXISTS delivery_trigger"))
    await engine.dispose()


# ---------------------------------------------------------------------------
# Celery task mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_celery_tasks() -> Generator[dict[str, MagicMock], None, None]:
    """Mock the Celery tasks routes enqueue so nothing reaches a broker.

    Returns a dict of mocks for each task so tests can verify .delay() was called.
    """
    with (
        patch("app.workers.tasks.audience.subscribe") as mock_subscribe,
        patch("app.workers.tasks.delivery.run_scheduled_pass") as mock_pass,
    ):
        yield {
            "subscribe": mock_subscribe,
            "run_scheduled_pass": mock_pass,
        }
