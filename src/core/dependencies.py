"""
FastAPI dependency injection functions.
Every component is built from explicit policy objects; nothing below reaches
into process-wide configuration except these providers.
"""

from functools import lru_cache
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Header

from src.core.exceptions.base import AuthError, AuthErrorKind, ParseErrorKind
from src.core.logger.logger import get_logger
from src.core.service.auth.auth_gate import AuthGate, IdentityProvider
from src.core.service.auth.models.auth import AuthPolicy
from src.core.service.auth.models.principal import Principal
from src.core.service.progression.claim_authorizer import ClaimAuthorizer
from src.core.service.progression.policy import ProgressionPolicy
from src.core.service.progression.progression_service import ProgressionService
from src.core.service.progression.rate_limiter import ActionRateLimiter
from src.infra.config.redis import get_redis_pool
from src.infra.config.settings import get_settings
from src.infra.repository.state_store import InMemoryStateStore, RedisStateStore, StateStore

logger = get_logger(__name__)


@lru_cache()
def get_identity_provider() -> IdentityProvider:
    """AuthGate built from the configured bot token and freshness window."""
    return AuthGate(AuthPolicy.from_settings(get_settings()))


@lru_cache()
def get_state_store() -> StateStore:
    settings = get_settings()
    if settings.STATE_BACKEND == "memory":
        logger.warning("Using in-memory state store; progress is lost on restart")
        return InMemoryStateStore()
    if settings.STATE_BACKEND != "redis":
        raise ValueError(f"Unknown STATE_BACKEND: {settings.STATE_BACKEND}")
    return RedisStateStore(redis.Redis(connection_pool=get_redis_pool()))


@lru_cache()
def get_progression_service() -> ProgressionService:
    """Single service per process so the rate limiter and per-user locks are shared."""
    settings = get_settings()
    policy = ProgressionPolicy.from_settings(settings)
    return ProgressionService(
        store=get_state_store(),
        policy=policy,
        rate_limiter=ActionRateLimiter(policy.rate_limits, policy.rate_limit_window_seconds),
        claim_authorizer=ClaimAuthorizer(
            settings.CLAIM_SIGNING_SECRET,
            ttl_seconds=settings.CLAIM_AUTHORIZATION_TTL_SECONDS,
        ),
        identity_provider=get_identity_provider(),
        max_commit_retries=settings.STATE_MAX_COMMIT_RETRIES,
        operation_timeout_seconds=settings.STATE_OPERATION_TIMEOUT_SECONDS,
    )


async def get_principal(
    x_telegram_init_data: Optional[str] = Header(None, alias="X-Telegram-Init-Data"),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
) -> Principal:
    """Authenticate the caller from the X-Telegram-Init-Data header."""
    if not x_telegram_init_data:
        raise AuthError(
            AuthErrorKind.PARSE_FAILURE,
            "Missing X-Telegram-Init-Data header",
            parse_error=ParseErrorKind.MALFORMED_PAYLOAD,
        )
    return identity_provider.authenticate(x_telegram_init_data)
