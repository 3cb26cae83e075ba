"""Scheduled delivery entry point for an external scheduler."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from app.core.deps import DeliveryServiceDep, verify_scheduler_token
from app.schemas.delivery import RunDeliveriesRequest, RunDeliveriesResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/run",
    response_model=RunDeliveriesResponse,
    summary="Run a delivery pass",
    description="""
    Run one scheduled delivery pass synchronously.

    Authenticated with the X-Scheduler-Token shared secret rather than a
    user token. Celery beat runs the same pass every five minutes; this
    endpoint exists for external schedulers and manual reruns.
    """,
    dependencies=[Depends(verify_scheduler_token)],
)
async def run_deliveries(
    delivery: DeliveryServiceDep,
    data: RunDeliveriesRequest | None = None,
) -> RunDeliveriesResponse:
    body = data or RunDeliveriesRequest()
    result = await delivery.run_scheduled_pass(
        datetime.now(UTC),
        user_ids=body.user_ids,
        force_send_today=body.force_send_today,
    )
    logger.info("Delivery pass via HTTP: processed=%d", result.processed)
    return RunDeliveriesResponse(**result.model_dump())
