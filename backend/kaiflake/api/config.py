"""Configuration endpoint exposing runtime options to the frontend."""

from __future__ import annotations

from fastapi import APIRouter

from kaiflake.config import get_settings

router = APIRouter(prefix="/config", tags=["config"])


@router.get("")
def read_client_config() -> dict[str, object]:
    """Expose polling cadence and message limits the client should honour."""

    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "environment": settings.environment,
        "poll_interval_seconds": settings.poll_interval_seconds,
        "chat_history_default_limit": settings.chat_history_default_limit,
        "chat_history_max_limit": settings.chat_history_max_limit,
        "chat_message_max_length": settings.chat_message_max_length,
    }
