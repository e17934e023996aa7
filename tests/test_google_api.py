from __future__ import annotations

import base64

import httplib2
import httpx
import pytest
from googleapiclient.errors import HttpError
from httplib2 import Response as HttpResponse

from assistant.clients import google_api
from assistant.clients.gmail import encode_plain_text_message
from assistant.clients.google_api import (
    GoogleApiAuthError,
    GoogleApiError,
    _translate_http_error,
    execute,
    is_auth_failure,
)


def _http_error(status: int, content: bytes) -> HttpError:
    return HttpError(HttpResponse({"status": status}), content)


def test_is_auth_failure_recognizes_unauthorized_responses() -> None:
    request = httpx.Request("GET", "https://www.googleapis.com/gmail/v1/users/me/messages")

    assert is_auth_failure(GoogleApiAuthError("Invalid Credentials", 401))
    assert is_auth_failure(
        httpx.HTTPStatusError(
            "unauthorized", request=request, response=httpx.Response(401, request=request)
        )
    )
    assert not is_auth_failure(
        httpx.HTTPStatusError(
            "server error", request=request, response=httpx.Response(500, request=request)
        )
    )
    assert not is_auth_failure(GoogleApiError("Backend Error", 500))
    assert not is_auth_failure(ValueError("boom"))


def test_translate_http_error_separates_auth_failures() -> None:
    unauthorized = _translate_http_error(
        _http_error(401, b'{"error": {"code": 401, "message": "Invalid Credentials"}}')
    )
    assert isinstance(unauthorized, GoogleApiAuthError)
    assert unauthorized.status_code == 401

    rate_limited = _translate_http_error(
        _http_error(429, b'{"error": {"code": 429, "message": "Rate Limit Exceeded"}}')
    )
    assert not isinstance(rate_limited, GoogleApiAuthError)
    assert rate_limited.status_code == 429


def test_encode_plain_text_message_is_unpadded_base64url() -> None:
    encoded = encode_plain_text_message(
        to="bob@example.com", subject="Hello?", body="Lunch at noon >> cafe"
    )

    assert "=" not in encoded
    assert "+" not in encoded and "/" not in encoded

    padded = encoded + "=" * (-len(encoded) % 4)
    decoded = base64.urlsafe_b64decode(padded).decode("utf-8")
    assert "To: bob@example.com" in decoded
    assert "Subject: Hello?" in decoded
    assert decoded.endswith("\n\nLunch at noon >> cafe")


@pytest.mark.parametrize("status", [400, 403, 404])
def test_non_auth_statuses_stay_generic(status: int) -> None:
    error = _translate_http_error(_http_error(status, b"{}"))

    assert type(error) is GoogleApiError
    assert error.status_code == status


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "failure",
    [
        httplib2.ServerNotFoundError("Unable to find the server at gmail.googleapis.com"),
        ConnectionResetError("connection reset by peer"),
    ],
)
async def test_execute_maps_transport_failures(
    monkeypatch: pytest.MonkeyPatch, failure: Exception
) -> None:
    monkeypatch.setattr(google_api, "build", lambda *args, **kwargs: object())

    def operation(service: object) -> dict:
        raise failure

    with pytest.raises(GoogleApiError) as excinfo:
        await execute("access-token", "gmail", "v1", operation)

    assert not isinstance(excinfo.value, GoogleApiAuthError)
    assert excinfo.value.__cause__ is failure


@pytest.mark.asyncio
async def test_execute_maps_unauthorized_http_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(google_api, "build", lambda *args, **kwargs: object())

    def operation(service: object) -> dict:
        raise _http_error(401, b'{"error": {"code": 401, "message": "Invalid Credentials"}}')

    with pytest.raises(GoogleApiAuthError):
        await execute("access-token", "gmail", "v1", operation)
