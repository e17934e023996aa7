from __future__ import annotations

import asyncio

import pytest

from assistant.clients.google_api import GoogleApiAuthError, GoogleApiError
from assistant.clients.google_auth import OAuthTokenExchangeError
from assistant.models.session import ErrorKind, SessionTokenRecord
from assistant.schemas.auth import TokenGrant
from assistant.services.token_lifecycle import (
    RefreshedCallError,
    TokenLifecycleManager,
    is_expired,
)

NOW_MS = 1_700_000_000_000


class StubOAuthClient:
    """Counts refresh attempts and fails either strategy on demand."""

    def __init__(
        self,
        *,
        fail_primary: bool = False,
        fail_fallback: bool = False,
        gate: asyncio.Event | None = None,
        new_refresh_token: str | None = None,
    ) -> None:
        self.fail_primary = fail_primary
        self.fail_fallback = fail_fallback
        self.gate = gate
        self.new_refresh_token = new_refresh_token
        self.primary_calls: list[str] = []
        self.fallback_calls: list[str] = []

    async def refresh_with_credentials(self, refresh_token: str) -> TokenGrant:
        self.primary_calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_primary:
            raise OAuthTokenExchangeError("Credentials refresh failed: invalid_client")
        return TokenGrant(
            access_token="primary-access",
            refresh_token=self.new_refresh_token,
            expires_in=3600,
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.fallback_calls.append(refresh_token)
        if self.fail_fallback:
            raise OAuthTokenExchangeError("Manual token refresh failed: 400 invalid_grant")
        return TokenGrant(access_token="fallback-access", expires_in=1800)


def _manager(oauth_client: StubOAuthClient) -> TokenLifecycleManager:
    return TokenLifecycleManager(oauth_client, clock=lambda: NOW_MS)


def _expired_record(**overrides) -> SessionTokenRecord:
    values = {
        "access_token": "stale-access",
        "refresh_token": "refresh-1",
        "access_token_expires_at": NOW_MS - 1,
    }
    values.update(overrides)
    return SessionTokenRecord(**values)


def test_is_expired_boundaries() -> None:
    assert is_expired(SessionTokenRecord(access_token="a"), NOW_MS)
    assert not is_expired(
        SessionTokenRecord(access_token="a", access_token_expires_at=NOW_MS + 60_000),
        NOW_MS,
    )
    assert is_expired(
        SessionTokenRecord(access_token="a", access_token_expires_at=NOW_MS - 1), NOW_MS
    )
    assert is_expired(
        SessionTokenRecord(access_token="a", access_token_expires_at=NOW_MS), NOW_MS
    )


@pytest.mark.asyncio
async def test_ensure_valid_returns_fresh_record_without_refreshing() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)

    result = await _manager(oauth).ensure_valid(record)

    assert result is record
    assert oauth.primary_calls == []
    assert oauth.fallback_calls == []


@pytest.mark.asyncio
async def test_ensure_valid_without_refresh_token_reports_error() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(refresh_token=None)

    result = await _manager(oauth).ensure_valid(record)

    assert result.last_error is not None
    assert result.last_error.kind is ErrorKind.NO_REFRESH_TOKEN
    assert result.last_error.requires_sign_in
    assert result.access_token == "stale-access"
    assert oauth.primary_calls == []
    assert oauth.fallback_calls == []


@pytest.mark.asyncio
async def test_ensure_valid_refreshes_with_primary_strategy() -> None:
    oauth = StubOAuthClient()

    result = await _manager(oauth).ensure_valid(_expired_record())

    assert result.access_token == "primary-access"
    assert result.access_token_expires_at == NOW_MS + 3_600_000
    assert result.refresh_token == "refresh-1"
    assert result.last_error is None
    assert oauth.fallback_calls == []


@pytest.mark.asyncio
async def test_rotated_refresh_token_replaces_previous_one() -> None:
    oauth = StubOAuthClient(new_refresh_token="refresh-2")

    result = await _manager(oauth).ensure_valid(_expired_record())

    assert result.refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_ensure_valid_falls_back_when_primary_fails() -> None:
    oauth = StubOAuthClient(fail_primary=True)

    result = await _manager(oauth).ensure_valid(_expired_record())

    assert oauth.primary_calls == ["refresh-1"]
    assert oauth.fallback_calls == ["refresh-1"]
    assert result.access_token == "fallback-access"
    assert result.access_token_expires_at == NOW_MS + 1_800_000
    assert result.last_error is None


@pytest.mark.asyncio
async def test_ensure_valid_keeps_tokens_when_both_strategies_fail() -> None:
    oauth = StubOAuthClient(fail_primary=True, fail_fallback=True)
    record = _expired_record()

    result = await _manager(oauth).ensure_valid(record)

    assert result.access_token == record.access_token
    assert result.refresh_token == record.refresh_token
    assert result.access_token_expires_at == record.access_token_expires_at
    assert result.last_error is not None
    assert result.last_error.kind is ErrorKind.REFRESH_FAILED
    assert "invalid_grant" in (result.last_error.detail or "")


@pytest.mark.asyncio
async def test_flagged_record_is_refreshed_even_when_unexpired() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000).with_error(
        ErrorKind.REFRESH_FAILED
    )

    result = await _manager(oauth).ensure_valid(record)

    assert oauth.primary_calls == ["refresh-1"]
    assert result.last_error is None


@pytest.mark.asyncio
async def test_concurrent_callers_share_a_single_refresh() -> None:
    gate = asyncio.Event()
    oauth = StubOAuthClient(gate=gate)
    manager = _manager(oauth)
    record = _expired_record()

    callers = [asyncio.create_task(manager.ensure_valid(record)) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*callers)

    assert oauth.primary_calls == ["refresh-1"]
    assert {result.access_token for result in results} == {"primary-access"}

    # Once settled, a later expiry triggers a new refresh.
    await manager.ensure_valid(record)
    assert len(oauth.primary_calls) == 2


@pytest.mark.asyncio
async def test_with_auto_refresh_retries_once_after_auth_failure() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)
    seen_tokens: list[str] = []

    async def api_call(token: str) -> str:
        seen_tokens.append(token)
        if token == "stale-access":
            raise GoogleApiAuthError("Invalid Credentials", 401)
        return "payload"

    result = await _manager(oauth).with_auto_refresh(record, api_call)

    assert result.ok
    assert result.value == "payload"
    assert result.record.access_token == "primary-access"
    assert seen_tokens == ["stale-access", "primary-access"]


@pytest.mark.asyncio
async def test_with_auto_refresh_gives_up_after_second_auth_failure() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)
    attempts: list[str] = []

    async def api_call(token: str) -> str:
        attempts.append(token)
        raise GoogleApiAuthError("Invalid Credentials", 401)

    result = await _manager(oauth).with_auto_refresh(record, api_call)

    assert len(attempts) == 2
    assert len(oauth.primary_calls) == 1
    assert not result.ok
    assert result.error is not None
    assert result.error.kind is ErrorKind.AUTH_EXPIRED
    assert result.record.last_error is not None
    assert result.record.last_error.kind is ErrorKind.AUTH_EXPIRED


@pytest.mark.asyncio
async def test_with_auto_refresh_reports_auth_expired_when_refresh_fails() -> None:
    oauth = StubOAuthClient(fail_primary=True, fail_fallback=True)
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)
    attempts: list[str] = []

    async def api_call(token: str) -> str:
        attempts.append(token)
        raise GoogleApiAuthError("Invalid Credentials", 401)

    result = await _manager(oauth).with_auto_refresh(record, api_call)

    assert attempts == ["stale-access"]
    assert result.error is not None
    assert result.error.kind is ErrorKind.AUTH_EXPIRED


@pytest.mark.asyncio
async def test_with_auto_refresh_propagates_other_errors() -> None:
    oauth = StubOAuthClient()
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)

    async def api_call(token: str) -> str:
        raise GoogleApiError("Backend Error", 500)

    with pytest.raises(GoogleApiError):
        await _manager(oauth).with_auto_refresh(record, api_call)

    assert oauth.primary_calls == []


@pytest.mark.asyncio
async def test_with_auto_refresh_keeps_refreshed_record_when_retry_fails() -> None:
    oauth = StubOAuthClient(new_refresh_token="refresh-2")
    record = _expired_record(access_token_expires_at=NOW_MS + 60_000)
    failure = GoogleApiError("Backend Error", 503)

    async def api_call(token: str) -> str:
        if token == "stale-access":
            raise GoogleApiAuthError("Invalid Credentials", 401)
        raise failure

    with pytest.raises(RefreshedCallError) as excinfo:
        await _manager(oauth).with_auto_refresh(record, api_call)

    assert excinfo.value.cause is failure
    assert excinfo.value.__cause__ is failure
    assert excinfo.value.record.access_token == "primary-access"
    assert excinfo.value.record.refresh_token == "refresh-2"
    assert excinfo.value.record.last_error is None
