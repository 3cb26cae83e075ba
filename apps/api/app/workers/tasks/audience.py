"""Celery tasks for marketing audience sync."""

import logging
from typing import Any

from app.services.audience_service import AudienceService
from app.workers.celery_app import BaseTask, celery_app
from app.workers.utils import run_async

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.audience.subscribe",
    base=BaseTask,
    bind=True,
)
def subscribe(
    self: BaseTask,  # noqa: ARG001
    email: str,
    industry: str,
) -> dict[str, Any]:
    """Add or update a member in the marketing audience."""
    return run_async(_subscribe_async(email, industry))


async def _subscribe_async(email: str, industry: str) -> dict[str, Any]:
    """Async implementation of audience subscription."""
    member = await AudienceService().subscribe(email, industry)
    if member is None:
        return {"status": "skipped", "reason": "mailchimp not configured"}
    return {"status": "subscribed", "member_id": member.get("id")}
