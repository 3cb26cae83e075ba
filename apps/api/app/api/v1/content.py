"""Content generation, ideas and history endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.core.deps import (
    ContentServiceDep,
    CurrentUser,
    DeliveryServiceDep,
    EntitledUser,
    HistoryLogDep,
    get_user_email,
)
from app.core.exceptions import GenerationError, TransportError, ValidationError
from app.core.rate_limit import GENERATE_RATE_LIMIT, limiter
from app.schemas.content import (
    ContentHistoryResponse,
    ContentIdeas,
    ContentIdeasRequest,
    GenerateContentRequest,
    GenerateContentResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/generate",
    response_model=GenerateContentResponse,
    summary="Generate content now",
    description="""
    Generate one piece of content for the authenticated user.

    Fields left out of the body fall back to the stored preferences. With
    send_now (the default) the content is also emailed and recorded in the
    user's history. Requires an active subscription.
    """,
)
@limiter.limit(GENERATE_RATE_LIMIT)
async def generate_content(
    request: Request,  # noqa: ARG001  # required by slowapi
    data: GenerateContentRequest,
    user: EntitledUser,
    delivery: DeliveryServiceDep,
) -> GenerateContentResponse:
    """Run the manual generation path."""
    try:
        artifact, sent = await delivery.send_now(user["sub"], get_user_email(user), data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    except (GenerationError, TransportError) as e:
        logger.warning("Manual generation failed: user=%s error=%s", user["sub"], e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    return GenerateContentResponse(content=artifact, sent=sent)


@router.post(
    "/ideas",
    response_model=ContentIdeas,
    summary="Suggest content ideas",
    description="Three topics, three hooks and three tips for an industry.",
)
@limiter.limit(GENERATE_RATE_LIMIT)
async def content_ideas(
    request: Request,  # noqa: ARG001  # required by slowapi
    data: ContentIdeasRequest,
    _user: CurrentUser,
    content: ContentServiceDep,
) -> ContentIdeas:
    try:
        return await content.generate_ideas(data.industry)
    except GenerationError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )


@router.get(
    "/history",
    response_model=list[ContentHistoryResponse],
    summary="List delivered content",
    description="The authenticated user's most recent deliveries, newest first.",
)
async def content_history(
    user: CurrentUser,
    history: HistoryLogDep,
    limit: int = Query(20, ge=1, le=100),
) -> list[ContentHistoryResponse]:
    records = await history.list_for_user(user["sub"], limit=limit)
    return [ContentHistoryResponse.model_validate(record) for record in records]
