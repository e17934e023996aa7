"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_assistant_action_service,
    get_calendar_client,
    get_face_match_engine,
    get_gemini_client,
    get_gmail_client,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_session_cipher,
    get_sqlite_store,
    get_token_lifecycle_manager,
)
from .context import get_app_settings, get_session_record

__all__ = [
    "get_app_settings",
    "get_assistant_action_service",
    "get_calendar_client",
    "get_face_match_engine",
    "get_gemini_client",
    "get_gmail_client",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_session_cipher",
    "get_session_record",
    "get_sqlite_store",
    "get_token_lifecycle_manager",
]
