"""
Access-token lifecycle management with transparent refresh.

Refresh goes through google-auth first and falls back to a direct POST to
the token endpoint. At most one refresh is in flight per refresh token;
concurrent callers share its outcome.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from assistant.clients.google_api import is_auth_failure
from assistant.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from assistant.core.logging import redact
from assistant.models.session import ErrorKind, SessionTokenRecord, TokenError
from assistant.schemas.auth import TokenGrant

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_expired(record: SessionTokenRecord, now_ms: int | None = None) -> bool:
    """True when the access token has no expiry or it is not strictly in the future."""
    expires_at = record.access_token_expires_at
    if not expires_at:
        return True
    current = _now_ms() if now_ms is None else now_ms
    return expires_at <= current


class RefreshedCallError(Exception):
    """A call failed for a non-auth reason after its session had been refreshed.

    ``record`` holds the refreshed session so callers can still persist it;
    the original exception is chained as ``__cause__``.
    """

    def __init__(self, record: SessionTokenRecord, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.record = record
        self.cause = cause


@dataclass(slots=True)
class AuthorizedCall(Generic[T]):
    """Outcome of an API call made on behalf of a session."""

    record: SessionTokenRecord
    value: Optional[T] = None
    error: Optional[TokenError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TokenLifecycleManager:
    """Hand out usable access tokens, refreshing them when they go stale."""

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._oauth = oauth_client
        self._clock = clock or _now_ms
        self._inflight: Dict[str, asyncio.Task[SessionTokenRecord]] = {}

    def is_expired(self, record: SessionTokenRecord) -> bool:
        return is_expired(record, self._clock())

    async def ensure_valid(
        self, record: SessionTokenRecord, *, force: bool = False
    ) -> SessionTokenRecord:
        """
        Return a record whose access token can be used, or one carrying ``last_error``.

        A record flagged with ``last_error`` is never served from cache.
        """
        if not force and record.last_error is None and not self.is_expired(record):
            return record

        refresh_token = record.refresh_token
        if not refresh_token:
            logger.warning("Cannot refresh access token: no refresh token on session.")
            return record.with_error(ErrorKind.NO_REFRESH_TOKEN)

        task = self._inflight.get(refresh_token)
        if task is None:
            task = asyncio.ensure_future(self._refresh(record, refresh_token))
            self._inflight[refresh_token] = task
            task.add_done_callback(
                lambda finished, key=refresh_token: self._forget(key, finished)
            )
        else:
            logger.debug("Joining in-flight refresh for %s", redact(refresh_token))
        return await asyncio.shield(task)

    async def with_auto_refresh(
        self,
        record: SessionTokenRecord,
        api_call: Callable[[str], Awaitable[T]],
    ) -> AuthorizedCall[T]:
        """
        Run ``api_call`` with the session's token, refreshing once on an auth failure.

        Non-authentication errors raised by the first attempt propagate to the
        caller unchanged; after a refresh they are wrapped in
        ``RefreshedCallError`` so the refreshed record is not lost.
        """
        try:
            return AuthorizedCall(record=record, value=await api_call(record.access_token))
        except Exception as exc:
            if not is_auth_failure(exc):
                raise
            logger.info("API call rejected the access token; forcing one refresh.")

        refreshed = await self.ensure_valid(record, force=True)
        if refreshed.last_error is not None:
            return AuthorizedCall(
                record=refreshed,
                error=TokenError(
                    kind=ErrorKind.AUTH_EXPIRED,
                    detail=refreshed.last_error.detail or refreshed.last_error.kind.value,
                ),
            )

        try:
            value = await api_call(refreshed.access_token)
        except Exception as exc:
            if not is_auth_failure(exc):
                raise RefreshedCallError(refreshed, exc) from exc
            logger.warning("Refreshed access token was rejected as well; giving up.")
            return AuthorizedCall(
                record=refreshed.with_error(ErrorKind.AUTH_EXPIRED, str(exc)),
                error=TokenError(kind=ErrorKind.AUTH_EXPIRED, detail=str(exc)),
            )
        return AuthorizedCall(record=refreshed, value=value)

    async def _refresh(
        self, record: SessionTokenRecord, refresh_token: str
    ) -> SessionTokenRecord:
        try:
            grant = await self._oauth.refresh_with_credentials(refresh_token)
            logger.info("Access token refreshed with google-auth credentials.")
        except OAuthTokenExchangeError as primary_exc:
            logger.warning(
                "Credentials refresh failed (%s); attempting manual refresh.", primary_exc
            )
            try:
                grant = await self._oauth.refresh_token(refresh_token)
                logger.info("Manual token refresh succeeded.")
            except OAuthTokenExchangeError as fallback_exc:
                logger.error("Manual token refresh failed: %s", fallback_exc)
                return record.with_error(
                    ErrorKind.REFRESH_FAILED,
                    f"{primary_exc}; fallback: {fallback_exc}",
                )
        return self._apply_grant(record, grant)

    def _apply_grant(
        self, record: SessionTokenRecord, grant: TokenGrant
    ) -> SessionTokenRecord:
        return record.model_copy(
            update={
                "access_token": grant.access_token,
                "access_token_expires_at": grant.expires_at_ms(self._clock()),
                "refresh_token": grant.refresh_token or record.refresh_token,
                "last_error": None,
            }
        )

    def _forget(self, key: str, finished: asyncio.Task[SessionTokenRecord]) -> None:
        if self._inflight.get(key) is finished:
            del self._inflight[key]


__all__ = [
    "AuthorizedCall",
    "RefreshedCallError",
    "TokenLifecycleManager",
    "is_expired",
]
