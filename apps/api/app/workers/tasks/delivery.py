"""Celery tasks for scheduled content delivery."""

import logging
from datetime import UTC, datetime
from typing import Any

from app.core.database import async_session_maker
from app.core.logging_config import correlation_id_var, generate_correlation_id
from app.services.content_service import ContentService
from app.services.delivery_service import DeliveryService
from app.services.email_service import EmailService
from app.services.history_service import HistoryLog
from app.services.preference_service import PreferenceStore
from app.workers.celery_app import BaseTask, celery_app
from app.workers.utils import run_async

logger = logging.getLogger(__name__)


def build_delivery_service() -> DeliveryService:
    """Wire the dispatcher to the real stores and providers."""
    return DeliveryService(
        preferences=PreferenceStore(async_session_maker),
        history=HistoryLog(async_session_maker),
        content=ContentService(),
        email=EmailService(),
    )


# ---------------------------------------------------------------------------
# Periodic delivery pass (Celery Beat)
# ---------------------------------------------------------------------------


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.delivery.run_scheduled_pass",
    base=BaseTask,
    bind=True,
    # A failed pass is retried by the next beat tick, not by Celery
    autoretry_for=(),
)
def run_scheduled_pass(
    self: BaseTask,  # noqa: ARG001
    user_ids: list[str] | None = None,
    force_send_today: bool = False,
) -> dict[str, Any]:
    """Deliver content to every user whose occasion is due now."""
    return run_async(_run_scheduled_pass_async(user_ids, force_send_today))


async def _run_scheduled_pass_async(
    user_ids: list[str] | None = None,
    force_send_today: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Async implementation of the scheduled pass."""
    correlation_id_var.set(generate_correlation_id())
    service = build_delivery_service()
    result = await service.run_scheduled_pass(
        now or datetime.now(UTC),
        user_ids=user_ids,
        force_send_today=force_send_today,
    )
    return {"status": "completed", **result.model_dump()}
