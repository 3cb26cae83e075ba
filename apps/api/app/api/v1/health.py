"""Health check endpoints."""

from fastapi import APIRouter
from sqlalchemy import text

from app.core.config import settings
from app.core.deps import DBSession
from app.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DBSession) -> HealthResponse:
    """
    Health check endpoint.

    Checks the database and the Celery broker and returns service status.
    """
    checks: dict[str, str] = {}

    # Check database connection
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    # Check the broker the delivery pass is scheduled through
    try:
        import redis.asyncio as redis

        redis_client = redis.from_url(str(settings.redis_url))  # type: ignore[no-untyped-call]
        await redis_client.ping()
        await redis_client.aclose()
        checks["broker"] = "healthy"
    except Exception as e:
        checks["broker"] = f"unhealthy: {str(e)}"

    healthy = all(value == "healthy" for value in checks.values())
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe: the process is up."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, str]:
    """Readiness probe: the database accepts queries."""
    await db.execute(text("SELECT 1"))
    return {"status": "ready"}
