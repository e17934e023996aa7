"""
Request-scoped dependencies: application settings and the caller's session.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Request

from assistant.core.config import AppSettings, get_settings
from assistant.dependencies.clients import get_session_cipher
from assistant.models.session import SessionTokenRecord
from assistant.services import SessionCipherService


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_session_record(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    cipher: Annotated[SessionCipherService, Depends(get_session_cipher)],
) -> Optional[SessionTokenRecord]:
    """Decrypt the session cookie, if the caller has signed in."""
    return cipher.open(request.cookies.get(settings.security.session_cookie_name))


__all__ = [
    "get_app_settings",
    "get_session_record",
]
