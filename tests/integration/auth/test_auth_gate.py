from datetime import timedelta

import pytest

from src.core.exceptions.base import AuthError, AuthErrorKind, ParseErrorKind
from src.core.service.auth.auth_gate import AuthGate
from src.core.service.auth.models.auth import AuthPolicy


def test_authenticate_valid_payload(auth_gate, sign_init_data, telegram_user, now):
    """Fresh, correctly signed initData yields a principal"""
    raw = sign_init_data(telegram_user, int(now.timestamp()) - 10)

    principal = auth_gate.authenticate(raw)

    assert principal.id == "279058397"
    assert principal.username == "vdkfrost"
    assert principal.first_name == "Vlad"
    assert principal.display_name == "vdkfrost"


def test_explicit_now_overrides_clock(auth_gate, sign_init_data, telegram_user, now):
    raw = sign_init_data(telegram_user, int(now.timestamp()) - 1000)

    principal = auth_gate.authenticate(raw, now=now - timedelta(seconds=900))

    assert principal.id == "279058397"


def test_age_exactly_at_limit_accepted(auth_gate, sign_init_data, telegram_user, now):
    raw = sign_init_data(telegram_user, int(now.timestamp()) - 300)

    assert auth_gate.authenticate(raw).id == "279058397"


def test_stale_payload_with_valid_signature(auth_gate, sign_init_data, telegram_user, now):
    """Correct signature but too old: Stale"""
    raw = sign_init_data(telegram_user, int(now.timestamp()) - 301)

    with pytest.raises(AuthError) as exc_info:
        auth_gate.authenticate(raw)

    assert exc_info.value.kind == AuthErrorKind.STALE
    assert exc_info.value.status_code == 401


def test_stale_payload_with_bad_signature_reports_signature(auth_gate, sign_init_data, telegram_user, now):
    """Signature is checked before freshness"""
    raw = sign_init_data(telegram_user, int(now.timestamp()) - 86400, bot_token="000:wrong")

    with pytest.raises(AuthError) as exc_info:
        auth_gate.authenticate(raw)

    assert exc_info.value.kind == AuthErrorKind.INVALID_SIGNATURE


def test_future_dated_payload_rejected(auth_gate, sign_init_data, telegram_user, now):
    raw = sign_init_data(telegram_user, int(now.timestamp()) + 120)

    with pytest.raises(AuthError) as exc_info:
        auth_gate.authenticate(raw)

    assert exc_info.value.kind == AuthErrorKind.STALE


def test_small_future_skew_tolerated(auth_gate, sign_init_data, telegram_user, now):
    raw = sign_init_data(telegram_user, int(now.timestamp()) + 20)

    assert auth_gate.authenticate(raw).id == "279058397"


def test_tampered_user_rejected(auth_gate, sign_init_data, telegram_user, now):
    """Swapping the user id after signing breaks the signature"""
    raw = sign_init_data(telegram_user, int(now.timestamp()))
    forged = raw.replace("279058397", "100000001")

    with pytest.raises(AuthError) as exc_info:
        auth_gate.authenticate(forged)

    assert exc_info.value.kind == AuthErrorKind.INVALID_SIGNATURE


def test_parse_failure_carries_parse_kind(auth_gate):
    with pytest.raises(AuthError) as exc_info:
        auth_gate.authenticate("auth_date=1&hash=abc")

    assert exc_info.value.kind == AuthErrorKind.PARSE_FAILURE
    assert exc_info.value.parse_error == ParseErrorKind.MISSING_USER
    assert exc_info.value.details == {"kind": "parse_failure", "parse_error": "missing_user"}


def test_empty_bot_token_rejects_everything(sign_init_data, telegram_user, now):
    gate = AuthGate(AuthPolicy(bot_token=""), clock=lambda: now)
    raw = sign_init_data(telegram_user, int(now.timestamp()), bot_token="")

    with pytest.raises(AuthError) as exc_info:
        gate.authenticate(raw)

    assert exc_info.value.kind == AuthErrorKind.INVALID_SIGNATURE
