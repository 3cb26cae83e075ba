"""Scheduled and manual content delivery.

The scheduled pass selects due users, checks the per-occasion history
marker, generates three alternatives, renders one email, sends it and
appends a history record. Failures are isolated per user. The manual path
reuses the same generator, renderer and transport for a single artifact.
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any

from app.core.config import settings
from app.core.exceptions import DeliveryError, StoreError, ValidationError
from app.models.content_history import DeliveryTrigger
from app.models.preference import DEFAULT_TEMPLATE, DEFAULT_TONE, UserPreference
from app.schemas.content import ContentArtifact, GenerateContentRequest
from app.schemas.delivery import DeliveryFailure, PassResult
from app.services.content_service import ContentService, tone_copy
from app.services.email_service import EmailService
from app.services.history_service import HistoryEntry, HistoryLog
from app.services.occasion import is_due, local_occasion_date
from app.services.preference_service import PreferenceStore
from app.services.template_renderer import parse_template, render_delivery

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "Your {industry} Industry Update"


class DeliveryService:
    """Orchestrates generation, rendering, transport and history."""

    def __init__(
        self,
        preferences: PreferenceStore,
        history: HistoryLog,
        content: ContentService,
        email: EmailService,
        concurrency: int | None = None,
    ) -> None:
        self.preferences = preferences
        self.history = history
        self.content = content
        self.email = email
        self.concurrency = max(1, concurrency or settings.delivery_concurrency)

    # ------------------------------------------------------------------
    # Scheduled path
    # ------------------------------------------------------------------

    async def run_scheduled_pass(
        self,
        now: datetime,
        user_ids: Sequence[str] | None = None,
        force_send_today: bool = False,
    ) -> PassResult:
        """Deliver to every user whose occasion is due at ``now``.

        With ``force_send_today`` the time window and ``auto_generate``
        checks are skipped; the per-day history check still applies.
        Loading preferences may raise ``StoreError``; everything after that
        is isolated per user.
        """
        if user_ids:
            records = await self.preferences.list_by_user_ids(user_ids)
        else:
            records = await self.preferences.list_all()

        if force_send_today:
            selected = records
        else:
            selected = [r for r in records if is_due(r, now, settings.delivery_window_minutes)]

        logger.info(
            "Delivery pass: %d preference rows, %d selected (forced=%s)",
            len(records),
            len(selected),
            force_send_today,
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        trigger = DeliveryTrigger.FORCED if force_send_today else DeliveryTrigger.SCHEDULED

        async def _bounded(record: UserPreference) -> tuple[str, DeliveryFailure | None]:
            async with semaphore:
                return await self._deliver_occasion(record, now, trigger)

        outcomes = await asyncio.gather(*(_bounded(r) for r in selected))

        result = PassResult()
        for record, (status, failure) in zip(selected, outcomes, strict=True):
            if status == "sent":
                result.successes.append(record.email)
            elif status == "skipped":
                result.skipped.append(record.email)
            elif failure is not None:
                result.errors.append(failure)
        result.processed = len(result.successes)

        logger.info(
            "Delivery pass complete: processed=%d skipped=%d failed=%d",
            result.processed,
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def _deliver_occasion(
        self,
        record: UserPreference,
        now: datetime,
        trigger: DeliveryTrigger,
    ) -> tuple[str, DeliveryFailure | None]:
        """Process one user's occasion. Never raises."""
        stage = "idempotency"
        try:
            occasion = local_occasion_date(record, now) or _utc_date(now)
            if await self.history.has_occasion(record.user_id, occasion):
                logger.info(
                    "Already delivered: user=%s occasion=%s", record.user_id, occasion
                )
                return "skipped", None

            stage = "template"
            template = parse_template(record.template)
            tone = record.tone or DEFAULT_TONE
            temperature = _temperature(record.temperature)

            stage = "generation"
            artifacts = await self.content.generate_batch(record.industry, tone, temperature)

            stage = "transport"
            html = render_delivery(
                template,
                tone_copy(tone, record.industry),
                artifacts,
                occasion,
                industry=record.industry,
            )
            message_id = await self.email.send_email(
                to_email=record.email,
                subject=SUBJECT_TEMPLATE.format(industry=record.industry),
                html_content=html,
                tags=[{"name": "trigger", "value": trigger.value}],
            )

            stage = "history"
            await self.history.append(
                _history_entry(record, artifacts[0], tone, trigger, occasion, message_id)
            )
        except DeliveryError as exc:
            logger.error(
                "Delivery failed: user=%s email=%s stage=%s error=%s",
                record.user_id,
                record.email,
                stage,
                exc,
            )
            return "failed", _failure(record, stage, exc)
        except Exception as exc:
            logger.exception(
                "Unexpected delivery error: user=%s stage=%s", record.user_id, stage
            )
            return "failed", _failure(record, stage, exc)

        logger.info("Delivered: user=%s email=%s occasion=%s", record.user_id, record.email, occasion)
        return "sent", None

    # ------------------------------------------------------------------
    # Manual path
    # ------------------------------------------------------------------

    async def send_now(
        self,
        user_id: str,
        email: str,
        overrides: GenerateContentRequest | None = None,
        now: datetime | None = None,
    ) -> tuple[ContentArtifact, bool]:
        """Generate one artifact for a user and, if requested, email it.

        Stored preferences are the base; request fields override them.
        Errors before the email goes out propagate to the caller; a failed
        history write afterwards is only logged. Returns the artifact and whether
        it was sent.

        Raises:
            ValidationError: If no industry is available.
            GenerationError, TransportError: From the generator and transport.
            StoreError: If stored preferences cannot be loaded.
        """
        request = overrides or GenerateContentRequest()
        stored = await self.preferences.get(user_id)

        params = _merge_params(stored, request)
        if not params["industry"]:
            raise ValidationError("Industry is required")
        template = parse_template(params["template"])

        artifact = await self.content.generate(
            params["industry"], params["tone"], params["temperature"]
        )
        if not request.send_now:
            return artifact, False

        sent_at = now or datetime.now(UTC)
        html = render_delivery(
            template,
            tone_copy(params["tone"], params["industry"]),
            [artifact],
            _utc_date(sent_at),
            industry=params["industry"],
        )
        message_id = await self.email.send_email(
            to_email=email,
            subject=SUBJECT_TEMPLATE.format(industry=params["industry"]),
            html_content=html,
            tags=[{"name": "trigger", "value": DeliveryTrigger.MANUAL.value}],
        )
        entry = HistoryEntry(
            user_id=user_id,
            email=email,
            industry=params["industry"],
            title=artifact.title,
            content=artifact.body,
            snippet=artifact.snippet,
            template=template.legacy,
            tone=params["tone"],
            trigger=DeliveryTrigger.MANUAL,
            occasion_date=None,
            message_id=message_id,
        )
        try:
            await self.history.append(entry)
        except StoreError as exc:
            # Already sent; the result stands without a history row
            logger.error(
                "Manual send not recorded: user=%s email=%s error=%s", user_id, email, exc
            )
        logger.info("Manual send complete: user=%s email=%s", user_id, email)
        return artifact, True


def _utc_date(now: datetime) -> date:
    aware = now if now.tzinfo is not None else now.replace(tzinfo=UTC)
    return aware.astimezone(UTC).date()


def _temperature(value: float | None) -> float:
    if value is None:
        return settings.default_temperature
    return min(max(float(value), 0.0), 1.0)


def _merge_params(stored: UserPreference | None, request: GenerateContentRequest) -> dict[str, Any]:
    def pick(field: str, default: Any) -> Any:
        value = getattr(request, field)
        if value is None and stored is not None:
            value = getattr(stored, field)
        return default if value is None else value

    return {
        "industry": pick("industry", ""),
        "tone": pick("tone", DEFAULT_TONE),
        "template": pick("template", DEFAULT_TEMPLATE),
        "temperature": _temperature(pick("temperature", None)),
    }


def _history_entry(
    record: UserPreference,
    artifact: ContentArtifact,
    tone: str,
    trigger: DeliveryTrigger,
    occasion: date,
    message_id: str | None,
) -> HistoryEntry:
    return HistoryEntry(
        user_id=record.user_id,
        email=record.email,
        industry=record.industry,
        title=artifact.title,
        content=artifact.body,
        snippet=artifact.snippet,
        template=record.template,
        tone=tone,
        trigger=trigger,
        occasion_date=occasion,
        message_id=message_id,
    )


def _failure(record: UserPreference, stage: str, exc: Exception) -> DeliveryFailure:
    return DeliveryFailure(
        user_id=record.user_id,
        email=record.email,
        stage=stage,
        error=str(exc) or exc.__class__.__name__,
    )
