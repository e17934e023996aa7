"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from assistant.clients import (
    GeminiClient,
    GmailClient,
    GoogleCalendarClient,
    GoogleOAuthClient,
    OAuthStateEncoder,
    SQLiteStore,
)
from assistant.core.config import get_settings
from assistant.services import (
    AssistantActionService,
    FaceEnrollmentStore,
    FaceMatchEngine,
    SessionCipherService,
    TokenLifecycleManager,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_lifecycle_manager() -> TokenLifecycleManager:
    """Provide the process-wide token manager so refreshes are shared across requests."""
    return TokenLifecycleManager(get_google_oauth_client())


@lru_cache()
def get_session_cipher() -> SessionCipherService:
    """Provide symmetric encryption helper for session cookies."""
    settings = _settings()
    secret = settings.security.session_secret or settings.google.client_secret
    return SessionCipherService(
        secret=secret,
        max_age_seconds=settings.security.session_max_age_seconds,
    )


@lru_cache()
def get_gmail_client() -> GmailClient:
    """Provide Gmail client instance."""
    return GmailClient()


@lru_cache()
def get_calendar_client() -> GoogleCalendarClient:
    """Provide Google Calendar client instance."""
    return GoogleCalendarClient()


@lru_cache()
def get_gemini_client() -> GeminiClient:
    """Provide Gemini client instance."""
    settings = _settings()
    return GeminiClient(settings.gemini)


def get_assistant_action_service() -> AssistantActionService:
    """Build the prompted assistant actions on top of Gemini."""
    return AssistantActionService(get_gemini_client())


@lru_cache()
def get_sqlite_store() -> SQLiteStore:
    """Provide shared SQLite record store."""
    settings = _settings()
    return SQLiteStore(settings.faces.store_db_path)


@lru_cache()
def get_face_match_engine() -> FaceMatchEngine:
    """Provide the face engine bound to the persistent enrollment store."""
    settings = _settings()
    return FaceMatchEngine(
        FaceEnrollmentStore(get_sqlite_store()),
        threshold=settings.faces.match_threshold,
    )


__all__ = [
    "get_assistant_action_service",
    "get_calendar_client",
    "get_face_match_engine",
    "get_gemini_client",
    "get_gmail_client",
    "get_google_oauth_client",
    "get_oauth_state_encoder",
    "get_session_cipher",
    "get_sqlite_store",
    "get_token_lifecycle_manager",
]
