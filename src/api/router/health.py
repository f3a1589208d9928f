from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, status

from src.api.controller.auth.dto.output_dto import HealthCheckResponseDto
from src.core.logger.logger import get_logger
from src.infra.config.redis import get_redis
from src.infra.config.settings import settings

logger = get_logger(__name__)
router = APIRouter()


async def check_state_store_health() -> Dict[str, str]:
    """Check the configured state backend."""
    if settings.STATE_BACKEND == "memory":
        return {"status": "healthy", "message": "In-memory store"}
    try:
        await get_redis()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        logger.warning("State store health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


@router.get("/health", status_code=status.HTTP_200_OK, response_model=HealthCheckResponseDto)
async def health_check():
    """
    Health check endpoint.
    Reports the overall status and the state of the persistence backend.
    """
    store_health = await check_state_store_health()
    services = {
        "state_store": store_health["status"],
        "api_gateway": "healthy",
    }
    overall_status = "healthy" if all(s == "healthy" for s in services.values()) else "unhealthy"

    return HealthCheckResponseDto(
        status=overall_status,
        service="api_gateway",
        version=settings.APP_VERSION,
        services=services,
        timestamp=datetime.now(timezone.utc),
    )
