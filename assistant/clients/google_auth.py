"""
Google OAuth utilities.

These helpers manage the user authentication flow and both refresh
strategies used by the token lifecycle manager.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hmac
import json
import logging
from datetime import timezone
from hashlib import sha256
from typing import Any, Dict

import httpx
from fastapi import HTTPException, status
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials
from pydantic import ValidationError

from assistant.core.config import GoogleSettings, OAuthSettings
from assistant.schemas.auth import TokenGrant

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error or an unusable payload."""


class GoogleOAuthClient:
    """Build Google authorization URLs, exchange codes and refresh tokens."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._timeout = timeout

    @property
    def token_url(self) -> str:
        return self._google.token_uri or self.TOKEN_URL

    def build_authorization_url(self, state: str, access_type: str = "offline") -> str:
        """Construct the Google OAuth consent URL."""
        from urllib.parse import urlencode

        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "access_type": access_type,
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        query = urlencode(params)
        return f"{self.AUTH_BASE_URL}?{query}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for an access token and, usually, a refresh token."""
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        return await self._post_token_request(payload, context="Authorization code exchange")

    async def refresh_with_credentials(self, refresh_token: str) -> TokenGrant:
        """Refresh through google-auth's ``Credentials.refresh`` implementation."""
        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.token_url,
            client_id=self._google.client_id,
            client_secret=self._google.client_secret,
        )

        def _refresh() -> None:
            credentials.refresh(GoogleAuthRequest())

        try:
            await asyncio.to_thread(_refresh)
        except GoogleAuthError as exc:
            raise OAuthTokenExchangeError(f"Credentials refresh failed: {exc}") from exc

        expiry_date = None
        if credentials.expiry is not None:
            expiry = credentials.expiry.replace(tzinfo=timezone.utc)
            expiry_date = int(expiry.timestamp() * 1000)

        try:
            return TokenGrant(
                access_token=credentials.token or "",
                refresh_token=credentials.refresh_token,
                expiry_date=expiry_date,
            )
        except ValidationError as exc:
            raise OAuthTokenExchangeError(
                "Credentials refresh returned no access token."
            ) from exc

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Refresh by posting the grant to the token endpoint directly."""
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._post_token_request(payload, context="Manual token refresh")

    async def fetch_userinfo(self, access_token: str) -> Dict[str, Any]:
        """Return the OpenID profile (email, name) for the token's user."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Userinfo request failed: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise OAuthTokenExchangeError(
                f"Userinfo request failed: {response.status_code} {response.text}"
            )
        return response.json()

    async def _post_token_request(
        self, payload: Dict[str, str], *, context: str
    ) -> TokenGrant:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self.token_url,
                    data=payload,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"{context} failed: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            logger.warning("%s rejected with status %s", context, response.status_code)
            raise OAuthTokenExchangeError(
                f"{context} failed: {response.status_code} {response.text}"
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthTokenExchangeError(
                f"{context} returned an incomplete token payload."
            ) from exc


__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
]
