"""Public schema exports."""

from .auth import OAuthCallbackPayload, RefreshResponse, TokenGrant
from .calendar import (
    CalendarEventCreatedResponse,
    CalendarEventListResponse,
    CalendarEventRequest,
    EventAttendee,
    EventTime,
)
from .faces import (
    EnrollFaceRequest,
    FaceSummary,
    InteractionRequest,
    MatchFaceRequest,
    MatchFaceResponse,
    NotesRequest,
)
from .gemini import AssistantActionRequest
from .mail import EmailListResponse, SendEmailRequest, SendEmailResponse

__all__ = [
    "AssistantActionRequest",
    "CalendarEventCreatedResponse",
    "CalendarEventListResponse",
    "CalendarEventRequest",
    "EmailListResponse",
    "EnrollFaceRequest",
    "EventAttendee",
    "EventTime",
    "FaceSummary",
    "InteractionRequest",
    "MatchFaceRequest",
    "MatchFaceResponse",
    "NotesRequest",
    "OAuthCallbackPayload",
    "RefreshResponse",
    "SendEmailRequest",
    "SendEmailResponse",
    "TokenGrant",
]
