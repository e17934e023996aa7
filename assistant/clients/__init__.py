"""Expose constructed client wrappers."""

from .gemini import GeminiClient
from .gmail import GmailClient
from .google_api import GoogleApiAuthError, GoogleApiError
from .google_auth import GoogleOAuthClient, OAuthStateEncoder
from .google_calendar import GoogleCalendarClient
from .sqlite_store import SQLiteStore

__all__ = [
    "GeminiClient",
    "GmailClient",
    "GoogleApiAuthError",
    "GoogleApiError",
    "GoogleCalendarClient",
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "SQLiteStore",
]
