"""
Domain models for the signed-in user's OAuth session.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Failure kinds surfaced by the token lifecycle and face matching core."""

    NO_REFRESH_TOKEN = "no_refresh_token"
    REFRESH_FAILED = "refresh_failed"
    AUTH_EXPIRED = "auth_expired"
    NO_FACE_DETECTED = "no_face_detected"
    NO_ENROLLMENT = "no_enrollment"
    MALFORMED_RESPONSE = "malformed_response"


class TokenError(BaseModel):
    """Explains why a usable access token could not be produced."""

    kind: ErrorKind
    detail: Optional[str] = Field(
        None, description="Underlying cause reported by the failing refresh."
    )

    @property
    def requires_sign_in(self) -> bool:
        return self.kind in (ErrorKind.NO_REFRESH_TOKEN, ErrorKind.AUTH_EXPIRED)


class SessionTokenRecord(BaseModel):
    """Access/refresh token pair carried by a signed-in session."""

    access_token: str
    refresh_token: Optional[str] = None
    access_token_expires_at: int = Field(
        0, description="Expiry instant in milliseconds since the epoch; 0 is expired."
    )
    last_error: Optional[TokenError] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None

    def with_error(self, kind: ErrorKind, detail: str | None = None) -> "SessionTokenRecord":
        """Return a copy flagged with the given failure, token values untouched."""
        return self.model_copy(update={"last_error": TokenError(kind=kind, detail=detail)})


__all__ = ["ErrorKind", "SessionTokenRecord", "TokenError"]
