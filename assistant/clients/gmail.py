"""Gmail client wrapper for reading and sending mail."""

from __future__ import annotations

import base64
from typing import Any, Dict, List

from assistant.clients.google_api import execute


def encode_plain_text_message(*, to: str, subject: str, body: str) -> str:
    """Render a text/plain RFC 822 message as unpadded base64url."""
    message = "\n".join(
        [
            'Content-Type: text/plain; charset="UTF-8"',
            "MIME-Version: 1.0",
            f"To: {to}",
            f"Subject: {subject}",
            "",
            body,
        ]
    )
    encoded = base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


class GmailClient:
    """List and send messages in the signed-in user's mailbox."""

    def __init__(self, *, user_id: str = "me") -> None:
        self._user_id = user_id

    async def list_messages(
        self, access_token: str, *, max_results: int = 10
    ) -> List[Dict[str, Any]]:
        """Return full message resources for the most recent messages."""

        def _list(service: Any) -> List[Dict[str, Any]]:
            messages = service.users().messages()
            listing = messages.list(userId=self._user_id, maxResults=max_results).execute()
            emails = []
            for message in listing.get("messages") or []:
                emails.append(
                    messages.get(userId=self._user_id, id=message["id"]).execute()
                )
            return emails

        return await execute(access_token, "gmail", "v1", _list)

    async def send_message(
        self, access_token: str, *, to: str, subject: str, body: str
    ) -> Dict[str, Any]:
        """Send a plain-text message and return the created message resource."""
        raw = encode_plain_text_message(to=to, subject=subject, body=body)

        def _send(service: Any) -> Dict[str, Any]:
            return (
                service.users()
                .messages()
                .send(userId=self._user_id, body={"raw": raw})
                .execute()
            )

        return await execute(access_token, "gmail", "v1", _send)


__all__ = ["GmailClient", "encode_plain_text_message"]
