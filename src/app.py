from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from src.infra.config.settings import settings
from src.core.logger.logger import logger
from src.api.router import health, auth, game
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
CedraQuest Mini App API - Telegram authentication, energy, games, pets and ranks.

## Services
- **Authentication**: Telegram Mini App initData verification
- **Game**: energy regeneration, game results, points and ranks
- **Pet**: feeding, leveling and time-based yield claims

## Authentication
Game endpoints require the raw Telegram initData in the `X-Telegram-Init-Data` header.
        """,
        version=settings.APP_VERSION,
        docs_url="/",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(game.router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info(
            "Starting API Gateway",
            extra={
                "service": settings.APP_NAME,
                "version": settings.APP_VERSION,
                "state_backend": settings.STATE_BACKEND,
                "started_at": datetime.now(timezone.utc).isoformat()
            }
        )
        if not settings.TELEGRAM_BOT_TOKEN:
            logger.warning("TELEGRAM_BOT_TOKEN is not set; every initData will be rejected")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(
            "Shutting down API Gateway",
            extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
        )

    return app
