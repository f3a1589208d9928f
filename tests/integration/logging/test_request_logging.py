import json
import logging
import time

import pytest
from fastapi.testclient import TestClient

from src.app import create_app
from src.core.dependencies import get_identity_provider
from src.core.logger.logger import JsonFormatter
from src.core.service.auth.auth_gate import AuthGate


@pytest.fixture
def client():
    """Create a new test client for each test"""
    return TestClient(create_app())


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging to capture logs in tests"""
    caplog.set_level(logging.INFO)
    yield


def get_json_logs(caplog):
    """Extract JSON request logs from caplog output"""
    logs = []
    for record in caplog.records:
        try:
            if isinstance(record.msg, str) and record.msg.startswith("{"):
                logs.append(json.loads(record.msg))
        except json.JSONDecodeError:
            continue
    return logs


def test_request_logging(client, caplog):
    """Test that API requests are logged with correlation ID"""
    correlation_id = "test-correlation-id"
    response = client.get("/api/v1/health", headers={"X-Request-ID": correlation_id})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    request_log = next(
        (log for log in get_json_logs(caplog) if log.get("request_id") == correlation_id), None
    )
    assert request_log is not None
    assert request_log["method"] == "GET"
    assert request_log["path"] == "/api/v1/health"
    assert request_log["status_code"] == 200
    assert request_log["duration_ms"] >= 0


def test_request_id_generated_when_missing(client):
    response = client.get("/api/v1/health")

    assert response.headers["X-Request-ID"]


def test_error_responses_are_logged(client, caplog):
    """Rejected requests still produce a request log line with their status"""
    response = client.get("/api/v1/game/energy", headers={"X-Request-ID": "rejected-request"})
    assert response.status_code == 401

    request_log = next(
        (log for log in get_json_logs(caplog) if log.get("request_id") == "rejected-request"), None
    )
    assert request_log is not None
    assert request_log["status_code"] == 401


def test_auth_rejection_never_logs_payload(client, caplog, auth_policy, sign_init_data, telegram_user):
    app = client.app
    app.dependency_overrides[get_identity_provider] = lambda: AuthGate(auth_policy)
    raw = sign_init_data(telegram_user, int(time.time()) - 3600)

    response = client.get("/api/v1/game/energy", headers={"X-Telegram-Init-Data": raw})
    assert response.status_code == 401

    rejections = [r for r in caplog.records if r.getMessage() == "Telegram initData rejected"]
    assert len(rejections) == 1
    assert rejections[0].levelno == logging.WARNING
    assert rejections[0].kind == "stale"
    assert auth_policy.bot_token not in caplog.text
    assert raw not in caplog.text


def test_json_formatter_merges_extra_fields():
    record = logging.makeLogRecord({
        "name": "CedraQuest.test",
        "levelno": logging.INFO,
        "levelname": "INFO",
        "msg": "Pet fed",
        "user_id": "42",
        "xp_gained": 20,
    })

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Pet fed"
    assert data["level"] == "INFO"
    assert data["logger"] == "CedraQuest.test"
    assert data["user_id"] == "42"
    assert data["xp_gained"] == 20
