"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by Google OAuth.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class TokenGrant(BaseModel):
    """Validated token endpoint response for code exchange and refresh grants."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[int] = Field(
        None, description="Absolute expiry in milliseconds since the epoch."
    )

    def expires_at_ms(self, now_ms: int) -> int:
        """Prefer the provider's absolute expiry, else derive it from ``expires_in``."""
        if self.expiry_date:
            return self.expiry_date
        lifetime = (
            self.expires_in
            if self.expires_in is not None
            else DEFAULT_TOKEN_LIFETIME_SECONDS
        )
        return now_ms + lifetime * 1000


class RefreshResponse(BaseModel):
    """Body returned after a forced token refresh."""

    success: bool = True
    message: str = "Token refreshed successfully"
    expires: Optional[str] = None


__all__ = ["OAuthCallbackPayload", "RefreshResponse", "TokenGrant"]
