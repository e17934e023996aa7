"""Schemas for face enrollment and recognition endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, FiniteFloat


class EnrollFaceRequest(BaseModel):
    """Face descriptor computed client-side; ``embedding`` is null when no face was found."""

    label: str = Field(..., min_length=1)
    embedding: Optional[List[FiniteFloat]] = None
    notes: Optional[str] = None
    merge_notes: bool = Field(
        False, description="Append the supplied notes to the existing log instead of replacing it."
    )


class MatchFaceRequest(BaseModel):
    embedding: Optional[List[FiniteFloat]] = None
    threshold: Optional[float] = Field(None, gt=0)


class MatchFaceResponse(BaseModel):
    label: str
    distance: Optional[float] = None
    known: bool


class InteractionRequest(BaseModel):
    text: str = Field(..., min_length=1)


class NotesRequest(BaseModel):
    notes: str


class FaceSummary(BaseModel):
    """Enrolled face as listed to clients, without the raw descriptor."""

    label: str
    notes: Optional[str] = None
    last_interaction: Optional[datetime] = None
    dimensions: int


__all__ = [
    "EnrollFaceRequest",
    "FaceSummary",
    "InteractionRequest",
    "MatchFaceRequest",
    "MatchFaceResponse",
    "NotesRequest",
]
