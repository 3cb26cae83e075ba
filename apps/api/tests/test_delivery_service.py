"""Tests for DeliveryService.

Covers:
- run_scheduled_pass selection, per-user failure isolation and counting
- per-occasion idempotency through the history log
- forced passes and user_ids filtering
- send_now (manual path) parameter merging and propagation of errors
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import StoreError, TransportError, ValidationError
from app.models.content_history import DeliveryTrigger
from app.models.preference import UserPreference
from app.schemas.content import ContentArtifact, GenerateContentRequest
from app.services.delivery_service import DeliveryService

# 09:00 in New York (EST)
DUE_NOW = datetime(2024, 1, 15, 14, 0, tzinfo=UTC)

PreferenceFactory = Callable[..., UserPreference]


def _users(factory: PreferenceFactory, count: int, **overrides: Any) -> list[UserPreference]:
    return [
        factory(user_id=f"user-{i}", email=f"user{i}@example.com", **overrides)
        for i in range(1, count + 1)
    ]


# ---------------------------------------------------------------------------
# Scheduled pass
# ---------------------------------------------------------------------------


class TestScheduledPass:
    async def test_one_failure_does_not_abort_batch(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        content_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        """Five due users, one generation failure: four delivered and recorded."""
        users = _users(preference_factory, 5)
        users[2].industry = "Mining"
        content_service.failing_industries.add("Mining")
        preference_store.records = {u.user_id: u for u in users}

        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 4
        assert len(result.successes) == 4
        assert len(history_log.entries) == 4
        assert len(result.errors) == 1
        failure = result.errors[0]
        assert failure.user_id == "user-3"
        assert failure.email == "user3@example.com"
        assert failure.stage == "generation"
        assert "Mining" in failure.error

    async def test_transport_failure_leaves_no_history(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        preference_store.records = {u.user_id: u for u in _users(preference_factory, 2)}
        email_service.failing_recipients.add("user1@example.com")

        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 1
        assert result.errors[0].stage == "transport"
        assert [e.user_id for e in history_log.entries] == ["user-2"]

    async def test_history_failure_counts_as_failed(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        preference_store.records = {u.user_id: u for u in _users(preference_factory, 1)}
        history_log.append = AsyncMock(side_effect=StoreError("connection reset"))

        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 0
        assert result.errors[0].stage == "history"
        assert len(email_service.sent) == 1

    async def test_invalid_stored_template_fails_user(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(template="haiku-style-x-style")
        preference_store.records = {record.user_id: record}

        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 0
        assert result.errors[0].stage == "template"
        assert email_service.sent == []

    async def test_only_due_users_selected(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        due = preference_factory(user_id="due", email="due@example.com")
        later = preference_factory(
            user_id="later", email="later@example.com", timezone="Europe/Paris"
        )
        manual_only = preference_factory(
            user_id="off", email="off@example.com", auto_generate=False
        )
        preference_store.records = {r.user_id: r for r in (due, later, manual_only)}

        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.successes == ["due@example.com"]
        assert [m["to"] for m in email_service.sent] == ["due@example.com"]

    async def test_generates_three_alternatives_in_one_email(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        content_service: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(template="numbered-list-style-linkedin-style")
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW)

        assert len(content_service.calls) == 3
        message = email_service.sent[0]
        assert message["subject"] == "Your Healthcare Industry Update"
        assert "Option 3:" in message["html"]
        assert "<ol>" in message["html"]
        assert message["tags"] == [{"name": "trigger", "value": "scheduled"}]

    async def test_history_record_contents(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(tone="humorous", temperature=0.2)
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW)

        entry = history_log.entries[0]
        assert entry.trigger == DeliveryTrigger.SCHEDULED
        assert entry.occasion_date == date(2024, 1, 15)
        assert entry.tone == "humorous"
        assert entry.template == "bullet-points-style-x-style"
        assert entry.message_id == "msg-1"
        assert entry.title == "Healthcare insight 1"

    async def test_occasion_is_local_date(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        """20:00 in Los Angeles on the 15th is already the 16th in UTC."""
        record = preference_factory(delivery_time="20:00", timezone="America/Los_Angeles")
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(datetime(2024, 1, 16, 4, 0, tzinfo=UTC))

        assert history_log.entries[0].occasion_date == date(2024, 1, 15)

    async def test_stored_temperature_passed_to_generator(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        content_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(temperature=0.25)
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW)

        assert {call[2] for call in content_service.calls} == {0.25}

    async def test_no_users(self, delivery_service: DeliveryService) -> None:
        result = await delivery_service.run_scheduled_pass(DUE_NOW)
        assert result.processed == 0
        assert result.successes == []
        assert result.errors == []

    async def test_preference_load_failure_propagates(
        self, delivery_service: DeliveryService, preference_store: Any
    ) -> None:
        preference_store.list_all = AsyncMock(side_effect=StoreError("db down"))

        with pytest.raises(StoreError):
            await delivery_service.run_scheduled_pass(DUE_NOW)

    async def test_concurrency_is_bounded(
        self,
        preference_store: Any,
        history_log: Any,
        content_service: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        preference_store.records = {u.user_id: u for u in _users(preference_factory, 6)}
        in_flight = 0
        peak = 0

        async def _slow_batch(industry: str, tone: str, temperature: float) -> list[ContentArtifact]:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            artifact = ContentArtifact(title="T", body="- a", snippet="T")
            return [artifact, artifact, artifact]

        content_service.generate_batch = _slow_batch
        service = DeliveryService(
            preference_store, history_log, content_service, email_service, concurrency=2
        )

        result = await service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 6
        assert peak == 2


class TestIdempotency:
    async def test_second_pass_same_day_skips(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory()
        preference_store.records = {record.user_id: record}

        first = await delivery_service.run_scheduled_pass(DUE_NOW)
        second = await delivery_service.run_scheduled_pass(
            datetime(2024, 1, 15, 14, 3, tzinfo=UTC)
        )

        assert first.processed == 1
        assert second.processed == 0
        assert second.skipped == [record.email]
        assert len(email_service.sent) == 1
        assert len(history_log.entries) == 1

    async def test_next_day_delivers_again(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory()
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW)
        result = await delivery_service.run_scheduled_pass(
            datetime(2024, 1, 16, 14, 0, tzinfo=UTC)
        )

        assert result.processed == 1
        assert len(email_service.sent) == 2

    async def test_manual_send_does_not_block_scheduled(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory()
        preference_store.records = {record.user_id: record}

        await delivery_service.send_now(record.user_id, record.email, now=DUE_NOW)
        result = await delivery_service.run_scheduled_pass(DUE_NOW)

        assert result.processed == 1
        assert len(email_service.sent) == 2


class TestForcedPass:
    async def test_force_ignores_window_and_auto_generate(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(auto_generate=False, delivery_time=None)
        preference_store.records = {record.user_id: record}

        result = await delivery_service.run_scheduled_pass(
            datetime(2024, 1, 15, 3, 17, tzinfo=UTC), force_send_today=True
        )

        assert result.processed == 1
        assert history_log.entries[0].trigger == DeliveryTrigger.FORCED
        assert email_service.sent[0]["tags"] == [{"name": "trigger", "value": "forced"}]

    async def test_force_still_respects_todays_history(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory()
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW)
        forced = await delivery_service.run_scheduled_pass(DUE_NOW, force_send_today=True)

        assert forced.processed == 0
        assert forced.skipped == [record.email]
        assert len(email_service.sent) == 1

    async def test_force_without_timezone_uses_utc_date(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(timezone=None, delivery_time=None)
        preference_store.records = {record.user_id: record}

        await delivery_service.run_scheduled_pass(DUE_NOW, force_send_today=True)

        assert history_log.entries[0].occasion_date == date(2024, 1, 15)

    async def test_user_ids_filter(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        preference_store.records = {u.user_id: u for u in _users(preference_factory, 3)}

        result = await delivery_service.run_scheduled_pass(
            DUE_NOW, user_ids=["user-2"], force_send_today=True
        )

        assert result.successes == ["user2@example.com"]
        assert [m["to"] for m in email_service.sent] == ["user2@example.com"]


# ---------------------------------------------------------------------------
# Manual path
# ---------------------------------------------------------------------------


class TestSendNow:
    async def test_uses_stored_preferences(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        history_log: Any,
        content_service: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(industry="Fintech", tone="conversational", temperature=0.4)
        preference_store.records = {record.user_id: record}

        artifact, sent = await delivery_service.send_now(record.user_id, record.email)

        assert sent is True
        assert artifact.title == "Fintech insight 1"
        assert content_service.calls == [("Fintech", "conversational", 0.4)]
        assert email_service.sent[0]["tags"] == [{"name": "trigger", "value": "manual"}]
        entry = history_log.entries[0]
        assert entry.trigger == DeliveryTrigger.MANUAL
        assert entry.occasion_date is None

    async def test_request_overrides_stored(
        self,
        delivery_service: DeliveryService,
        preference_store: Any,
        content_service: Any,
        email_service: Any,
        preference_factory: PreferenceFactory,
    ) -> None:
        record = preference_factory(industry="Fintech")
        preference_store.records = {record.user_id: record}
        request = GenerateContentRequest(
            industry="Energy",
            tone="enthusiastic",
            temperature=0.9,
            template="tips-format-style-newsletter-style",
        )

        await delivery_service.send_now(record.user_id, record.email, request)

        assert content_service.calls == [("Energy", "enthusiastic", 0.9)]
        assert "Tip 1:" in email_service.sent[0]["html"]
        assert email_service.sent[0]["subject"] == "Your Energy Industry Update"

    async def test_preview_only(
        self,
        delivery_service: DeliveryService,
        history_log: Any,
        email_service: Any,
    ) -> None:
        request = GenerateContentRequest(industry="Retail", send_now=False)

        artifact, sent = await delivery_service.send_now("nobody", "n@example.com", request)

        assert sent is False
        assert artifact.title == "Retail insight 1"
        assert email_service.sent == []
        assert history_log.entries == []

    async def test_defaults_without_stored_preferences(
        self, delivery_service: DeliveryService, content_service: Any
    ) -> None:
        request = GenerateContentRequest(industry="Retail", send_now=False)

        await delivery_service.send_now("nobody", "n@example.com", request)

        assert content_service.calls == [("Retail", "professional", 0.7)]

    async def test_missing_industry_rejected(
        self, delivery_service: DeliveryService, content_service: Any
    ) -> None:
        with pytest.raises(ValidationError, match="Industry"):
            await delivery_service.send_now("nobody", "n@example.com")
        assert content_service.calls == []

    async def test_transport_error_propagates(
        self,
        delivery_service: DeliveryService,
        history_log: Any,
        email_service: Any,
    ) -> None:
        email_service.failing_recipients.add("n@example.com")

        with pytest.raises(TransportError):
            await delivery_service.send_now(
                "nobody", "n@example.com", GenerateContentRequest(industry="Retail")
            )
        assert history_log.entries == []

    async def test_history_failure_after_send_still_reports_sent(
        self,
        delivery_service: DeliveryService,
        history_log: Any,
        email_service: Any,
    ) -> None:
        history_log.append = AsyncMock(side_effect=StoreError("connection reset"))

        artifact, sent = await delivery_service.send_now(
            "nobody", "n@example.com", GenerateContentRequest(industry="Retail")
        )

        assert sent is True
        assert artifact.title == "Retail insight 1"
        assert len(email_service.sent) == 1
        history_log.append.assert_awaited_once()
