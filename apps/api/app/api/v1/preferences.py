"""User delivery preference endpoints."""

import logging

from fastapi import APIRouter, HTTPException, status
from kombu.exceptions import OperationalError

from app.core.deps import CurrentUser, EntitledUser, PreferenceStoreDep, get_user_email
from app.schemas.preferences import PreferenceResponse, PreferenceSaveResponse, PreferenceUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=PreferenceResponse,
    summary="Get preferences",
    description="Get the authenticated user's delivery preferences.",
)
async def get_preferences(
    user: CurrentUser,
    preferences: PreferenceStoreDep,
) -> PreferenceResponse:
    """Get the current user's stored preference."""
    record = await preferences.get(user["sub"])
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No preferences saved yet",
        )
    return PreferenceResponse.model_validate(record)


@router.put(
    "",
    response_model=PreferenceSaveResponse,
    summary="Save preferences",
    description=(
        "Create or replace the authenticated user's delivery preferences. "
        "Requires an active subscription. With send_today, today's content "
        "is dispatched immediately regardless of the delivery time."
    ),
)
async def save_preferences(
    data: PreferenceUpdate,
    user: EntitledUser,
    preferences: PreferenceStoreDep,
) -> PreferenceSaveResponse:
    """Upsert preferences and queue the follow-up background work."""
    user_id = user["sub"]
    email = get_user_email(user)

    record = await preferences.upsert(
        user_id,
        email,
        data.model_dump(exclude={"send_today"}),
    )

    from app.workers.tasks.audience import subscribe
    from app.workers.tasks.delivery import run_scheduled_pass

    try:
        subscribe.delay(email, record.industry)
    except OperationalError:
        logger.exception("Failed to queue audience sync: user=%s", user_id)

    delivery_queued = False
    if data.send_today:
        try:
            run_scheduled_pass.delay(user_ids=[user_id], force_send_today=True)
            delivery_queued = True
        except OperationalError:
            logger.exception("Failed to queue forced delivery: user=%s", user_id)

    response = PreferenceSaveResponse.model_validate(record)
    response.delivery_queued = delivery_queued
    return response
