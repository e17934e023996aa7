"""Schemas for calendar events."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventTime(BaseModel):
    """Start or end instant of an event, in Google's field naming."""

    model_config = ConfigDict(populate_by_name=True)

    date_time: str = Field(..., alias="dateTime", min_length=1)
    time_zone: str = Field("UTC", alias="timeZone")


class EventAttendee(BaseModel):
    email: str = Field(..., min_length=3)


class CalendarEventRequest(BaseModel):
    """Event submitted by the client for insertion into the primary calendar."""

    summary: str = Field(..., min_length=1)
    description: str = ""
    start: EventTime
    end: EventTime
    attendees: Optional[List[EventAttendee]] = None

    def to_google_body(self) -> Dict[str, Any]:
        """Render the insert body; attendees are sent only when present."""
        body = self.model_dump(by_alias=True, exclude={"attendees"})
        if self.attendees:
            body["attendees"] = [attendee.model_dump() for attendee in self.attendees]
        return body


class CalendarEventListResponse(BaseModel):
    events: List[Dict[str, Any]] = Field(default_factory=list)


class CalendarEventCreatedResponse(BaseModel):
    success: bool = True
    event: Dict[str, Any]
    link: Optional[str] = None


__all__ = [
    "CalendarEventCreatedResponse",
    "CalendarEventListResponse",
    "CalendarEventRequest",
    "EventAttendee",
    "EventTime",
]
