"""Shared plumbing for bearer-token calls into Google's discovery APIs."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, TypeVar

import httplib2
import httpx
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

T = TypeVar("T")

_AUTH_ERROR_REASONS = {"authError", "invalid_grant", "unauthorized"}


class GoogleApiError(Exception):
    """Raised when a Google API call fails for reasons other than credentials."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GoogleApiAuthError(GoogleApiError):
    """Raised when Google rejects the bearer token (HTTP 401 or equivalent)."""


def is_auth_failure(exc: BaseException) -> bool:
    """Return True when an exception signals an invalid or expired credential."""
    if isinstance(exc, GoogleApiAuthError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 401
    return False


def _translate_http_error(exc: HttpError) -> GoogleApiError:
    status_code = int(exc.resp.status) if exc.resp is not None else None
    reason = exc._get_reason()
    details = getattr(exc, "error_details", None)
    if not isinstance(details, list):
        details = []
    reasons = {item.get("reason") for item in details if isinstance(item, dict)}
    if status_code == 401 or reasons & _AUTH_ERROR_REASONS:
        return GoogleApiAuthError(reason, status_code)
    return GoogleApiError(reason, status_code)


async def execute(
    access_token: str,
    api_name: str,
    api_version: str,
    operation: Callable[[Any], T],
) -> T:
    """Build a discovery client for the token and run ``operation`` off the event loop."""

    def _run() -> T:
        credentials = Credentials(token=access_token)
        try:
            service = build(
                api_name, api_version, credentials=credentials, cache_discovery=False
            )
            return operation(service)
        except HttpError as exc:
            raise _translate_http_error(exc) from exc
        except RefreshError as exc:
            # A token-only credential cannot refresh itself after a 401.
            raise GoogleApiAuthError(str(exc), 401) from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise GoogleApiError(f"{api_name} request failed: {exc}") from exc

    return await asyncio.to_thread(_run)


__all__ = ["GoogleApiAuthError", "GoogleApiError", "execute", "is_auth_failure"]
