"""
Contract tests for Telegram authentication.
Tests request/response schemas and the 401 error contract for each rejection kind.
"""

import time

import pytest
from fastapi.testclient import TestClient

from src.app import create_app
from src.core.dependencies import get_identity_provider, get_progression_service
from src.core.service.auth.auth_gate import AuthGate
from src.core.service.progression.progression_service import ProgressionService
from src.infra.repository.state_store import InMemoryStateStore


class TestTelegramAuthContract:
    """Contract tests for POST /api/v1/auth/telegram and header authentication."""

    @pytest.fixture
    def client(self, auth_policy, progression_policy):
        gate = AuthGate(auth_policy)
        service = ProgressionService(InMemoryStateStore(), progression_policy, identity_provider=gate)

        app = create_app()
        app.dependency_overrides[get_progression_service] = lambda: service
        app.dependency_overrides[get_identity_provider] = lambda: gate
        return TestClient(app)

    @pytest.fixture
    def init_data(self, sign_init_data, telegram_user):
        return sign_init_data(telegram_user, int(time.time()))

    def test_login_returns_profile(self, client, init_data):
        response = client.post("/api/v1/auth/telegram", json={"init_data": init_data})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        user = data["user"]
        assert user["id"] == "279058397"
        assert user["username"] == "vdkfrost"
        assert user["total_points"] == 0
        assert user["level"] == 1
        assert user["current_rank"] == "RANK1"
        assert user["current_energy"] == 10
        assert user["wallet_address"] == "vdkfrost.hot.tg"
        assert user["public_key"].startswith("pk_279058397_")

    def test_invalid_signature(self, client, sign_init_data, telegram_user):
        forged = sign_init_data(telegram_user, int(time.time()), bot_token="000:not-the-bot")

        response = client.post("/api/v1/auth/telegram", json={"init_data": forged})

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "INVALID_SIGNATURE"
        assert error["details"]["kind"] == "invalid_signature"

    def test_stale_payload(self, client, sign_init_data, telegram_user):
        stale = sign_init_data(telegram_user, int(time.time()) - 3600)

        response = client.post("/api/v1/auth/telegram", json={"init_data": stale})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "STALE_AUTH_DATA"

    def test_parse_failure(self, client):
        response = client.post("/api/v1/auth/telegram", json={"init_data": "auth_date=1&hash=abc"})

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "AUTH_PARSE_FAILURE"
        assert error["details"]["parse_error"] == "missing_user"

    def test_empty_init_data_is_validation_error(self, client):
        response = client.post("/api/v1/auth/telegram", json={"init_data": ""})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_INPUT"

    def test_header_authenticates_game_endpoints(self, client, init_data):
        response = client.get("/api/v1/game/energy", headers={"X-Telegram-Init-Data": init_data})

        assert response.status_code == 200
        assert response.json()["max_energy"] == 10

    def test_missing_header_rejected(self, client):
        response = client.get("/api/v1/game/energy")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_PARSE_FAILURE"

    def test_tampered_header_rejected(self, client, init_data):
        tampered = init_data.replace("vdkfrost", "someone")

        response = client.get("/api/v1/game/rank", headers={"X-Telegram-Init-Data": tampered})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
