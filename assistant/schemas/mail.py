"""Schemas for the mail endpoints."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class SendEmailRequest(BaseModel):
    """Plain-text message to send from the signed-in user's mailbox."""

    to: str = Field(..., min_length=3, description="Recipient address.")
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


class SendEmailResponse(BaseModel):
    success: bool = True
    message_id: str | None = Field(None, serialization_alias="messageId")


class EmailListResponse(BaseModel):
    emails: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = ["EmailListResponse", "SendEmailRequest", "SendEmailResponse"]
