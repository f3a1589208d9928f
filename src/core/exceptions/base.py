"""
Typed failures raised by the authentication and progression core.

Both families derive from ServiceError so the global handler can render them,
but callers inside the core match on `kind` rather than on HTTP status.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status

from src.core.exceptions.handler import ServiceError, ServiceErrorCode


class ParseErrorKind(str, Enum):
    MALFORMED_PAYLOAD = "malformed_payload"
    MISSING_USER = "missing_user"
    MALFORMED_USER = "malformed_user"
    MISSING_AUTH_PARAMS = "missing_auth_params"


class AuthErrorKind(str, Enum):
    PARSE_FAILURE = "parse_failure"
    INVALID_SIGNATURE = "invalid_signature"
    STALE = "stale"


class ProgressionErrorKind(str, Enum):
    DAILY_CAP_EXCEEDED = "daily_cap_exceeded"
    BELOW_CLAIM_MINIMUM = "below_claim_minimum"
    CLAIM_COOLDOWN = "claim_cooldown"
    RATE_LIMITED = "rate_limited"
    CONFLICT = "conflict"
    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_ENERGY = "insufficient_energy"
    PET_MAX_LEVEL = "pet_max_level"
    INVALID_GAME_RESULT = "invalid_game_result"
    INVALID_FEED_COUNT = "invalid_feed_count"


_AUTH_CODES = {
    AuthErrorKind.PARSE_FAILURE: ServiceErrorCode.AUTH_PARSE_FAILURE,
    AuthErrorKind.INVALID_SIGNATURE: ServiceErrorCode.INVALID_SIGNATURE,
    AuthErrorKind.STALE: ServiceErrorCode.STALE_AUTH_DATA,
}

_PROGRESSION_CODES = {
    ProgressionErrorKind.DAILY_CAP_EXCEEDED: (ServiceErrorCode.DAILY_CAP_EXCEEDED, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.BELOW_CLAIM_MINIMUM: (ServiceErrorCode.BELOW_CLAIM_MINIMUM, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.CLAIM_COOLDOWN: (ServiceErrorCode.CLAIM_COOLDOWN, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.RATE_LIMITED: (ServiceErrorCode.RATE_LIMIT_EXCEEDED, status.HTTP_429_TOO_MANY_REQUESTS),
    ProgressionErrorKind.CONFLICT: (ServiceErrorCode.CONFLICT, status.HTTP_409_CONFLICT),
    ProgressionErrorKind.INSUFFICIENT_POINTS: (ServiceErrorCode.INSUFFICIENT_POINTS, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.INSUFFICIENT_ENERGY: (ServiceErrorCode.INSUFFICIENT_ENERGY, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.PET_MAX_LEVEL: (ServiceErrorCode.PET_MAX_LEVEL, status.HTTP_400_BAD_REQUEST),
    ProgressionErrorKind.INVALID_GAME_RESULT: (ServiceErrorCode.INVALID_GAME_RESULT, status.HTTP_422_UNPROCESSABLE_ENTITY),
    ProgressionErrorKind.INVALID_FEED_COUNT: (ServiceErrorCode.INVALID_FEED_COUNT, status.HTTP_422_UNPROCESSABLE_ENTITY),
}


class AuthError(ServiceError):
    """Rejected initData. Always raised before any state is read."""

    def __init__(
        self,
        kind: AuthErrorKind,
        message: str,
        parse_error: Optional[ParseErrorKind] = None,
    ):
        details: Dict[str, Any] = {"kind": kind.value}
        if parse_error is not None:
            details["parse_error"] = parse_error.value
        super().__init__(
            code=_AUTH_CODES[kind],
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )
        self.kind = kind
        self.parse_error = parse_error


class ProgressionError(ServiceError):
    """Rejected progression operation. Persisted state is left untouched."""

    def __init__(
        self,
        kind: ProgressionErrorKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        code, status_code = _PROGRESSION_CODES[kind]
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details={"kind": kind.value, **(details or {})},
        )
        self.kind = kind

    @property
    def is_transient(self) -> bool:
        return self.kind == ProgressionErrorKind.CONFLICT


class StoreTimeoutError(ServiceError):
    """A persistence call did not finish within its bound."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            code=ServiceErrorCode.TIMEOUT,
            message=f"State store operation '{operation}' timed out",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )
        self.operation = operation
