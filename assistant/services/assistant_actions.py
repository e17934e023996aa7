"""Prompted Gemini actions offered to the mail, summary and chat pages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from assistant.clients.gemini import parse_json_response
from assistant.models.session import ErrorKind

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate_text(self, prompt: str) -> str: ...


class UnknownActionError(ValueError):
    """Raised when a client requests an action the assistant does not offer."""


@dataclass(slots=True)
class ActionResult:
    """Response body for an action, or the failure kind with the raw model text."""

    key: str
    value: Any = None
    error: Optional[ErrorKind] = None
    raw: Optional[str] = None

    def as_payload(self) -> Dict[str, Any]:
        return {self.key: self.value}


class AssistantActionService:
    """Map action names onto prompt templates sent to the text generator."""

    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator
        self._actions: Dict[str, Callable[[str], Awaitable[ActionResult]]] = {
            "summarize": self.summarize,
            "draftReply": self.draft_reply,
            "parseEvent": self.parse_event,
            "chat": self.chat,
        }

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(self._actions)

    async def run(self, action: str, content: str) -> ActionResult:
        handler = self._actions.get(action)
        if handler is None:
            raise UnknownActionError(f"Invalid action: {action}")
        return await handler(content)

    async def summarize(self, content: str) -> ActionResult:
        prompt = (
            "Summarize the following content in a concise way, highlighting key points and any action items:\n\n"
            f"{content}"
        )
        return ActionResult("summary", await self._generator.generate_text(prompt))

    async def draft_reply(self, content: str) -> ActionResult:
        prompt = (
            "Draft a professional reply to the following email:\n\n"
            f"{content}"
        )
        return ActionResult("reply", await self._generator.generate_text(prompt))

    async def parse_event(self, content: str) -> ActionResult:
        prompt = (
            "Extract calendar event details from the following text. Return a JSON object with the following fields: title, startTime, endTime, date, description, and attendees.\n\n"
            f"{content}"
        )
        raw = await self._generator.generate_text(prompt)
        try:
            event = parse_json_response(raw)
        except ValueError:
            logger.warning("Gemini returned unparseable event details.")
            return ActionResult("event", error=ErrorKind.MALFORMED_RESPONSE, raw=raw)
        if not isinstance(event, dict):
            return ActionResult("event", error=ErrorKind.MALFORMED_RESPONSE, raw=raw)
        return ActionResult("event", event)

    async def chat(self, content: str) -> ActionResult:
        prompt = (
            "You are a helpful personal assistant with access to the user's email and calendar. Answer the following message conversationally and concisely:\n\n"
            f"{content}"
        )
        return ActionResult("response", await self._generator.generate_text(prompt))


__all__ = [
    "ActionResult",
    "AssistantActionService",
    "TextGenerator",
    "UnknownActionError",
]
