"""
Telegram initData authentication pipeline.

Received -> Parsed -> SignatureValid -> Fresh -> Authenticated, or Rejected at
any step. The signature is checked before auth_date is looked at so a forged
timestamp can never influence the outcome.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from src.core.exceptions.base import AuthError, AuthErrorKind
from src.core.logger.logger import get_logger
from src.core.service.auth.init_data_parser import InitDataParseError, InitDataParser
from src.core.service.auth.models.auth import AuthPolicy
from src.core.service.auth.models.principal import ParsedInitData, Principal
from src.core.service.auth.signature_verification import SignatureVerifier

logger = get_logger(__name__)


class AuthState(str, Enum):
    RECEIVED = "received"
    PARSED = "parsed"
    SIGNATURE_VALID = "signature_valid"
    FRESH = "fresh"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class IdentityProvider(ABC):
    """Turns a raw initData payload into a Principal or raises AuthError"""

    @abstractmethod
    def authenticate(self, raw_init_data: str, now: Optional[datetime] = None) -> Principal:
        pass


class AuthGate(IdentityProvider):
    def __init__(
        self,
        policy: AuthPolicy,
        parser: Optional[InitDataParser] = None,
        verifier: Optional[SignatureVerifier] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.policy = policy
        self.parser = parser or InitDataParser()
        self.verifier = verifier or SignatureVerifier()
        self.clock = clock

    def _transition(self, state: AuthState, **context) -> AuthState:
        logger.debug(f"initData auth state: {state.value}", extra=context)
        return state

    def _reject(self, kind: AuthErrorKind, reason: str, **kwargs) -> AuthError:
        self._transition(AuthState.REJECTED, kind=kind.value)
        logger.warning("Telegram initData rejected", extra={"kind": kind.value, "reason": reason})
        return AuthError(kind, reason, **kwargs)

    def _parse(self, raw_init_data: str) -> ParsedInitData:
        try:
            return self.parser.parse(raw_init_data)
        except InitDataParseError as e:
            raise self._reject(AuthErrorKind.PARSE_FAILURE, str(e), parse_error=e.kind) from e

    def authenticate(self, raw_init_data: str, now: Optional[datetime] = None) -> Principal:
        self._transition(AuthState.RECEIVED)

        parsed = self._parse(raw_init_data)
        self._transition(AuthState.PARSED)

        if not self.verifier.verify(parsed.raw, parsed.hash, self.policy.bot_token):
            raise self._reject(AuthErrorKind.INVALID_SIGNATURE, "Invalid Telegram signature")
        self._transition(AuthState.SIGNATURE_VALID)

        now = now or self.clock()
        age_seconds = now.timestamp() - parsed.auth_date
        if age_seconds > self.policy.max_age_seconds:
            raise self._reject(AuthErrorKind.STALE, "Telegram auth data is too old")
        if -age_seconds > self.policy.max_future_skew_seconds:
            raise self._reject(AuthErrorKind.STALE, "Telegram auth data is dated in the future")
        self._transition(AuthState.FRESH, age_seconds=round(age_seconds, 3))

        principal = Principal(
            id=parsed.user.id,
            username=parsed.user.username,
            first_name=parsed.user.first_name,
            last_name=parsed.user.last_name,
        )
        self._transition(AuthState.AUTHENTICATED, user_id=principal.id)
        logger.info(
            "Telegram user authenticated",
            extra={"user_id": principal.id, "display_name": principal.display_name}
        )
        return principal
