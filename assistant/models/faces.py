"""
Domain models for face enrollment and recognition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, FiniteFloat

from assistant.models.session import ErrorKind

UNKNOWN_LABEL = "Unknown"


class EnrolledFace(BaseModel):
    """A labelled face descriptor stored for future recognition."""

    label: str = Field(..., min_length=1)
    embedding: list[FiniteFloat] = Field(..., min_length=1)
    notes: Optional[str] = None
    last_interaction: Optional[datetime] = None


@dataclass(slots=True)
class FaceMatch:
    """Outcome of classifying one embedding against the enrolled set."""

    label: Optional[str]
    distance: Optional[float] = None
    error: Optional[ErrorKind] = None

    @property
    def is_known(self) -> bool:
        return self.error is None and self.label not in (None, UNKNOWN_LABEL)


__all__ = ["EnrolledFace", "FaceMatch", "UNKNOWN_LABEL"]
