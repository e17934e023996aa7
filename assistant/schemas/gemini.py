"""Schemas for the generative assistant endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AssistantActionRequest(BaseModel):
    """A named assistant action applied to free-form content."""

    action: str = Field(
        ...,
        min_length=1,
        description="One of summarize, draftReply, parseEvent or chat.",
    )
    content: str = Field(..., min_length=1)


__all__ = ["AssistantActionRequest"]
