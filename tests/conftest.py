"""
Shared fixtures.

This is the only place a fixture identity exists: the application code has no
fallback identity, tests substitute one through `app.dependency_overrides`.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest

from src.core.service.auth.auth_gate import AuthGate, IdentityProvider
from src.core.service.auth.models.auth import AuthPolicy
from src.core.service.auth.models.principal import Principal
from src.core.service.auth.signature_verification import SignatureVerifier
from src.core.service.progression.policy import ProgressionPolicy

BOT_TOKEN = "123456789:AAEhBOweik6ad9r_QXMENQjcrGbqCr4K-bs"
FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FixtureIdentityProvider(IdentityProvider):
    """Accepts any payload and returns the same principal"""

    def __init__(self, principal: Principal):
        self.principal = principal

    def authenticate(self, raw_init_data: str, now: Optional[datetime] = None) -> Principal:
        return self.principal


def build_init_data(
    user: Dict[str, Any],
    auth_date: int,
    bot_token: str = BOT_TOKEN,
    **extra_fields: str,
) -> str:
    """Produce initData signed exactly the way Telegram signs it"""
    fields = {"query_id": "AAHdF6IQAAAAAN0XohDhrOrc", "user": json.dumps(user), "auth_date": str(auth_date)}
    fields.update(extra_fields)
    return SignatureVerifier().sign_fields(fields, bot_token)


@pytest.fixture
def bot_token() -> str:
    return BOT_TOKEN


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def telegram_user() -> Dict[str, Any]:
    return {"id": 279058397, "first_name": "Vlad", "username": "vdkfrost", "language_code": "en"}


@pytest.fixture
def sign_init_data():
    return build_init_data


@pytest.fixture
def auth_policy() -> AuthPolicy:
    return AuthPolicy(bot_token=BOT_TOKEN, max_age_seconds=300, max_future_skew_seconds=30)


@pytest.fixture
def auth_gate(auth_policy, now) -> AuthGate:
    return AuthGate(auth_policy, clock=lambda: now)


@pytest.fixture
def progression_policy() -> ProgressionPolicy:
    return ProgressionPolicy()


@pytest.fixture
def principal() -> Principal:
    return Principal(id="279058397", username="vdkfrost", first_name="Vlad")


@pytest.fixture
def fixture_identity(principal) -> FixtureIdentityProvider:
    return FixtureIdentityProvider(principal)
