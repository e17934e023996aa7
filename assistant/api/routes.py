"""
FastAPI routes for the personal assistant.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, Awaitable, Callable, NoReturn, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from assistant.clients.gemini import GeminiModelError
from assistant.clients.google_api import GoogleApiError
from assistant.clients.google_auth import OAuthTokenExchangeError
from assistant.dependencies import (
    get_app_settings,
    get_assistant_action_service,
    get_calendar_client,
    get_face_match_engine,
    get_gmail_client,
    get_google_oauth_client,
    get_oauth_state_encoder,
    get_session_cipher,
    get_session_record,
    get_token_lifecycle_manager,
)
from assistant.models.faces import UNKNOWN_LABEL
from assistant.models.session import ErrorKind, SessionTokenRecord, TokenError
from assistant.schemas import (
    AssistantActionRequest,
    CalendarEventCreatedResponse,
    CalendarEventListResponse,
    CalendarEventRequest,
    EmailListResponse,
    EnrollFaceRequest,
    FaceSummary,
    InteractionRequest,
    MatchFaceRequest,
    MatchFaceResponse,
    NotesRequest,
    OAuthCallbackPayload,
    RefreshResponse,
    SendEmailRequest,
    SendEmailResponse,
)
from assistant.services.assistant_actions import UnknownActionError
from assistant.services.token_lifecycle import RefreshedCallError

router = APIRouter()
logger = logging.getLogger(__name__)

T = TypeVar("T")

_SIGN_IN_AGAIN = "Google session expired; sign out and sign in again."

_REQUIRED_SETTINGS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "GOOGLE_REDIRECT_URI",
    "GEMINI_API_KEY",
    "SESSION_SECRET",
)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def _iso_from_ms(value: int | None) -> str | None:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def _set_session_cookie(
    response: Response, record: SessionTokenRecord, settings: Any, cipher: Any
) -> None:
    response.set_cookie(
        key=settings.security.session_cookie_name,
        value=cipher.seal(record),
        max_age=settings.security.session_max_age_seconds,
        httponly=True,
        secure=settings.security.secure_cookies,
        samesite="lax",
    )


def _require_session(record: Optional[SessionTokenRecord]) -> SessionTokenRecord:
    if record is None or not record.access_token:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Not authenticated or missing access token.",
        )
    return record


def _reissued_cookie(
    previous: SessionTokenRecord, current: SessionTokenRecord, settings: Any, cipher: Any
) -> dict[str, str] | None:
    """Set-Cookie header for error responses, which drop cookies set on the injected response."""
    if current == previous:
        return None
    carrier = Response()
    _set_session_cookie(carrier, current, settings, cipher)
    return {"set-cookie": carrier.headers["set-cookie"]}


def _raise_for_token_error(
    error: TokenError, headers: dict[str, str] | None = None
) -> NoReturn:
    if error.kind is ErrorKind.REFRESH_FAILED:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail={
                "error": "Failed to refresh Google access token; try again later.",
                "kind": error.kind.value,
                "details": error.detail,
            },
            headers=headers,
        )
    raise HTTPException(
        status_code=HTTPStatus.UNAUTHORIZED,
        detail={"error": _SIGN_IN_AGAIN, "kind": error.kind.value},
        headers=headers,
    )


def _raise_bad_gateway(
    message: str, exc: GoogleApiError, headers: dict[str, str] | None
) -> NoReturn:
    logger.error("%s: %s", message, exc)
    raise HTTPException(
        status_code=HTTPStatus.BAD_GATEWAY,
        detail={"error": message, "details": str(exc)},
        headers=headers,
    ) from exc


async def _call_google(
    *,
    record: SessionTokenRecord,
    manager: Any,
    api_call: Callable[[str], Awaitable[T]],
    response: Response,
    settings: Any,
    cipher: Any,
    failure_message: str,
) -> T:
    """Run a Google API call with a valid token and persist any refreshed session.

    The refreshed session is written back on success and on failure alike, so a
    rotated refresh token always reaches the client.
    """
    valid = await manager.ensure_valid(record)
    if valid.last_error is not None:
        _raise_for_token_error(valid.last_error)

    try:
        result = await manager.with_auto_refresh(valid, api_call)
    except RefreshedCallError as exc:
        if not isinstance(exc.cause, GoogleApiError):
            raise
        _raise_bad_gateway(
            failure_message,
            exc.cause,
            _reissued_cookie(record, exc.record, settings, cipher),
        )
    except GoogleApiError as exc:
        _raise_bad_gateway(
            failure_message, exc, _reissued_cookie(record, valid, settings, cipher)
        )

    if result.error is not None:
        _raise_for_token_error(
            result.error, _reissued_cookie(record, result.record, settings, cipher)
        )
    if result.record != record:
        _set_session_cookie(response, result.record, settings, cipher)
    return result.value


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/google/authorize", status_code=HTTPStatus.OK)
async def start_google_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful sign-in.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Any:
    """
    Kick off sign-in by generating a state token and authorization URL.
    """
    state_payload = {
        "nonce": uuid.uuid4().hex,
        "redirect_to": redirect_to,
        "issued_at": datetime.now(timezone.utc).isoformat(),
    }
    state = state_encoder.encode(state_payload)
    authorization_url = oauth_client.build_authorization_url(state=state)

    accept_header = request.headers.get("accept", "")
    wants_html = "text/html" in accept_header.lower()
    if redirect or wants_html:
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return {"authorization_url": authorization_url, "state": state}


async def _complete_sign_in(
    payload: OAuthCallbackPayload,
    oauth_client: Any,
    state_encoder: Any,
    settings: Any,
) -> tuple[SessionTokenRecord, str | None]:
    """Verify the state, exchange the code, and build the session record."""
    state_data = state_encoder.decode(payload.state)

    issued_at_raw = state_data.get("issued_at")
    if not issued_at_raw:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing issued_at in state token.",
        )

    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except ValueError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Invalid issued_at in state token.",
        ) from exc

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    try:
        grant = await oauth_client.exchange_authorization_code(payload.code)
    except OAuthTokenExchangeError as exc:
        logger.warning("Authorization code exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc

    if not grant.refresh_token:
        logger.warning("Google issued no refresh token; session cannot be refreshed.")

    profile: dict[str, Any] = {}
    try:
        profile = await oauth_client.fetch_userinfo(grant.access_token)
    except OAuthTokenExchangeError as exc:
        logger.warning("Signed in without profile details: %s", exc)

    record = SessionTokenRecord(
        access_token=grant.access_token,
        refresh_token=grant.refresh_token,
        access_token_expires_at=grant.expires_at_ms(_now_ms()),
        user_email=profile.get("email"),
        user_name=profile.get("name"),
    )
    return record, state_data.get("redirect_to")


@router.post("/auth/google/callback", status_code=HTTPStatus.OK)
async def handle_google_oauth_callback(
    payload: OAuthCallbackPayload,
    response: Response,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
) -> dict:
    """Complete the OAuth exchange, set the session cookie, and return redirect metadata."""
    record, redirect_to = await _complete_sign_in(
        payload, oauth_client, state_encoder, settings
    )
    _set_session_cookie(response, record, settings, cipher)
    return {"status": "connected", "redirect_to": redirect_to, "user": record.user_email}


@router.get("/auth/google/callback", status_code=HTTPStatus.OK)
async def handle_google_oauth_callback_get(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_google_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
    state: str = Query(..., description="OAuth state token."),
    code: str = Query(..., description="Authorization code returned by Google."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    payload = OAuthCallbackPayload(state=state, code=code)
    record, redirect_to = await _complete_sign_in(
        payload, oauth_client, state_encoder, settings
    )

    accept_header = request.headers.get("accept", "")
    wants_html = "text/html" in accept_header.lower()
    redirect_target = redirect_to or settings.frontend_base_url

    if redirect_target and (redirect or wants_html):
        result: Response = RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        result = JSONResponse(
            content={
                "status": "connected",
                "redirect_to": redirect_to,
                "user": record.user_email,
            }
        )
    _set_session_cookie(result, record, settings, cipher)
    return result


@router.post("/auth/signout", status_code=HTTPStatus.OK)
async def sign_out(
    response: Response,
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Forget the session; the token record is not kept anywhere else."""
    response.delete_cookie(settings.security.session_cookie_name)
    return {"status": "signed_out"}


@router.post("/auth/refresh", response_model=RefreshResponse)
async def refresh_session_token(
    response: Response,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
) -> RefreshResponse:
    """Refresh the access token regardless of its expiry."""
    if record is None:
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Not authenticated")

    logger.info(
        "Forced refresh requested; current expiry %s, refresh token present: %s",
        _iso_from_ms(record.access_token_expires_at) or "unknown",
        bool(record.refresh_token),
    )
    refreshed = await manager.ensure_valid(record, force=True)
    if refreshed.last_error is not None:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail={
                "error": "Failed to refresh token",
                "kind": refreshed.last_error.kind.value,
                "details": refreshed.last_error.detail,
            },
        )

    _set_session_cookie(response, refreshed, settings, cipher)
    return RefreshResponse(expires=_iso_from_ms(refreshed.access_token_expires_at))


@router.get("/auth/verify", status_code=HTTPStatus.OK)
async def verify_auth_state(
    request: Request,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Report what the server can see of the caller's session, for debugging sign-in."""
    cookie_names = list(request.cookies.keys())
    configured = {
        "GOOGLE_CLIENT_ID": bool(settings.google.client_id),
        "GOOGLE_CLIENT_SECRET": bool(settings.google.client_secret),
        "GOOGLE_REDIRECT_URI": bool(settings.google.redirect_uri),
        "GEMINI_API_KEY": bool(settings.gemini.api_key),
        "SESSION_SECRET": bool(settings.security.session_secret),
    }
    token_state: dict[str, Any] = {"exists": record is not None}
    if record is not None:
        token_state.update(
            {
                "has_access_token": bool(record.access_token),
                "has_refresh_token": bool(record.refresh_token),
                "expires_at": _iso_from_ms(record.access_token_expires_at),
                "is_expired": manager.is_expired(record),
                "last_error": record.last_error.kind.value if record.last_error else None,
                "user": {"name": record.user_name, "email": record.user_email},
            }
        )
    return {
        "status": "Auth Verification",
        "token": token_state,
        "cookies": {
            "count": len(cookie_names),
            "names": cookie_names,
            "has_session_cookie": settings.security.session_cookie_name in cookie_names,
        },
        "environment": {
            "APP_ENV": settings.environment,
            **{name: "set" if configured[name] else "not set" for name in _REQUIRED_SETTINGS},
        },
    }


@router.get("/email", response_model=EmailListResponse)
async def list_emails(
    response: Response,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    gmail: Annotated[Any, Depends(get_gmail_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
    max_results: int = Query(10, ge=1, le=50),
) -> EmailListResponse:
    """Fetch the most recent messages in the user's mailbox."""
    session = _require_session(record)
    emails = await _call_google(
        record=session,
        manager=manager,
        api_call=lambda token: gmail.list_messages(token, max_results=max_results),
        response=response,
        settings=settings,
        cipher=cipher,
        failure_message="Failed to fetch emails",
    )
    logger.info("Fetched %d emails", len(emails))
    return EmailListResponse(emails=emails)


@router.post("/email", response_model=SendEmailResponse)
async def send_email(
    payload: SendEmailRequest,
    response: Response,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    gmail: Annotated[Any, Depends(get_gmail_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
) -> SendEmailResponse:
    """Send a plain-text message from the user's mailbox."""
    session = _require_session(record)
    sent = await _call_google(
        record=session,
        manager=manager,
        api_call=lambda token: gmail.send_message(
            token, to=payload.to, subject=payload.subject, body=payload.body
        ),
        response=response,
        settings=settings,
        cipher=cipher,
        failure_message="Failed to send email",
    )
    return SendEmailResponse(message_id=sent.get("id"))


@router.get("/calendar", response_model=CalendarEventListResponse)
async def list_calendar_events(
    response: Response,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    calendar: Annotated[Any, Depends(get_calendar_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
    time_min: str | None = Query(None, alias="timeMin"),
    time_max: str | None = Query(None, alias="timeMax"),
) -> CalendarEventListResponse:
    """List events on the primary calendar between two RFC 3339 instants."""
    session = _require_session(record)
    if not time_min or not time_max:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing required timeMin or timeMax parameters",
        )
    events = await _call_google(
        record=session,
        manager=manager,
        api_call=lambda token: calendar.list_events(
            token, time_min=time_min, time_max=time_max
        ),
        response=response,
        settings=settings,
        cipher=cipher,
        failure_message="Failed to fetch calendar events",
    )
    return CalendarEventListResponse(events=events)


@router.post("/calendar", response_model=CalendarEventCreatedResponse)
async def create_calendar_event(
    payload: CalendarEventRequest,
    response: Response,
    record: Annotated[Optional[SessionTokenRecord], Depends(get_session_record)],
    manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    calendar: Annotated[Any, Depends(get_calendar_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    cipher: Annotated[Any, Depends(get_session_cipher)],
) -> CalendarEventCreatedResponse:
    """Create an event on the primary calendar and invite its attendees."""
    session = _require_session(record)
    event = await _call_google(
        record=session,
        manager=manager,
        api_call=lambda token: calendar.create_event(token, event=payload.to_google_body()),
        response=response,
        settings=settings,
        cipher=cipher,
        failure_message="Failed to create calendar event",
    )
    logger.info("Created calendar event %s", event.get("id"))
    return CalendarEventCreatedResponse(event=event, link=event.get("htmlLink"))


@router.post("/gemini", status_code=HTTPStatus.OK)
async def run_assistant_action(
    payload: AssistantActionRequest,
    service: Annotated[Any, Depends(get_assistant_action_service)],
) -> dict:
    """Apply a prompted Gemini action (summarize, draftReply, parseEvent, chat)."""
    try:
        result = await service.run(payload.action, payload.content)
    except UnknownActionError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except GeminiModelError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc

    if result.error is ErrorKind.MALFORMED_RESPONSE:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to parse event details", "response": result.raw},
        )
    return result.as_payload()


@router.get("/faces", response_model=list[FaceSummary])
async def list_faces(
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> list[FaceSummary]:
    """List enrolled faces without their descriptors."""
    return [
        FaceSummary(
            label=face.label,
            notes=face.notes,
            last_interaction=face.last_interaction,
            dimensions=len(face.embedding),
        )
        for face in engine.list_faces()
    ]


@router.post("/faces", status_code=HTTPStatus.CREATED, response_model=FaceSummary)
async def enroll_face(
    payload: EnrollFaceRequest,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> FaceSummary:
    """Enroll or re-enroll a face under a label."""
    if not payload.embedding:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail={
                "error": "No face detected in the image; try a different photo.",
                "kind": ErrorKind.NO_FACE_DETECTED.value,
            },
        )
    face = engine.enroll(
        payload.label,
        payload.embedding,
        payload.notes,
        merge_notes=payload.merge_notes,
    )
    return FaceSummary(
        label=face.label,
        notes=face.notes,
        last_interaction=face.last_interaction,
        dimensions=len(face.embedding),
    )


@router.post("/faces/match", response_model=MatchFaceResponse)
async def match_face(
    payload: MatchFaceRequest,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> MatchFaceResponse:
    """Classify one face embedding against the enrolled faces."""
    match = engine.match(payload.embedding, threshold=payload.threshold)
    if match.error is ErrorKind.NO_FACE_DETECTED:
        raise HTTPException(
            status_code=HTTPStatus.UNPROCESSABLE_ENTITY,
            detail={"error": "No face detected.", "kind": match.error.value},
        )
    if match.error is ErrorKind.NO_ENROLLMENT:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail={"error": "No faces enrolled yet.", "kind": match.error.value},
        )
    return MatchFaceResponse(
        label=match.label or UNKNOWN_LABEL,
        distance=match.distance,
        known=match.is_known,
    )


@router.post("/faces/{label}/interactions", status_code=HTTPStatus.OK)
async def record_face_interaction(
    label: str,
    payload: InteractionRequest,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> dict:
    """Append a timestamped interaction to an enrolled face's notes."""
    if not engine.record_interaction(label, payload.text):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Face not enrolled.")
    return {"label": label, "notes": engine.get_notes(label)}


@router.get("/faces/{label}/notes", status_code=HTTPStatus.OK)
async def get_face_notes(
    label: str,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> dict:
    notes = engine.get_notes(label)
    if notes is None and not any(face.label == label for face in engine.list_faces()):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Face not enrolled.")
    return {"label": label, "notes": notes}


@router.put("/faces/{label}/notes", status_code=HTTPStatus.OK)
async def replace_face_notes(
    label: str,
    payload: NotesRequest,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> dict:
    if not engine.update_notes(label, payload.notes):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Face not enrolled.")
    return {"label": label, "notes": payload.notes}


@router.delete("/faces/{label}", status_code=HTTPStatus.NO_CONTENT)
async def forget_face(
    label: str,
    engine: Annotated[Any, Depends(get_face_match_engine)],
) -> Response:
    if not engine.forget(label):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Face not enrolled.")
    return Response(status_code=HTTPStatus.NO_CONTENT)
