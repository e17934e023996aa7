"""Google Calendar client wrapper."""

from __future__ import annotations

from typing import Any, Dict, List

from assistant.clients.google_api import GoogleApiError, execute


class GoogleCalendarClient:
    """Read and create events on the user's primary calendar."""

    def __init__(self, *, calendar_id: str = "primary") -> None:
        self._calendar_id = calendar_id

    async def list_events(
        self, access_token: str, *, time_min: str, time_max: str
    ) -> List[Dict[str, Any]]:
        """Return expanded single events between the bounds, ordered by start time."""

        def _list(service: Any) -> List[Dict[str, Any]]:
            response = (
                service.events()
                .list(
                    calendarId=self._calendar_id,
                    timeMin=time_min,
                    timeMax=time_max,
                    singleEvents=True,
                    orderBy="startTime",
                )
                .execute()
            )
            return response.get("items") or []

        return await execute(access_token, "calendar", "v3", _list)

    async def create_event(
        self, access_token: str, *, event: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Insert an event, notifying attendees, and return the created resource."""

        def _insert(service: Any) -> Dict[str, Any]:
            created = (
                service.events()
                .insert(calendarId=self._calendar_id, body=event, sendUpdates="all")
                .execute()
            )
            if not created or not created.get("id"):
                raise GoogleApiError("Failed to create event: no event ID returned")
            return created

        return await execute(access_token, "calendar", "v3", _insert)


__all__ = ["GoogleCalendarClient"]
