from __future__ import annotations

from fastapi.testclient import TestClient

from kaiflake.config import get_settings


def test_client_config_exposes_limits(client: TestClient) -> None:
    settings = get_settings()
    response = client.get("/api/config")

    assert response.status_code == 200
    body = response.json()
    assert body["app_name"] == settings.app_name
    assert body["poll_interval_seconds"] == settings.poll_interval_seconds
    assert body["chat_history_default_limit"] == 50
    assert body["chat_history_max_limit"] == 100
    assert body["chat_message_max_length"] == settings.chat_message_max_length


def test_client_config_reflects_overrides(client: TestClient) -> None:
    settings = get_settings()
    original_interval = settings.poll_interval_seconds
    settings.poll_interval_seconds = 10
    try:
        response = client.get("/api/config")
    finally:
        settings.poll_interval_seconds = original_interval

    assert response.status_code == 200
    assert response.json()["poll_interval_seconds"] == 10
