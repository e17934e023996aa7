"""
Face enrollment and nearest-neighbour recognition.

Embeddings are produced by the client's face-embedding model; this engine
only stores them and compares them by Euclidean distance. The scan is
linear, which suits the tens of faces a personal assistant enrolls.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from assistant.models.faces import UNKNOWN_LABEL, EnrolledFace, FaceMatch
from assistant.models.session import ErrorKind
from assistant.services.face_store import FaceEnrollmentStore

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FaceMatchEngine:
    """Enroll labelled embeddings and classify new ones against them."""

    def __init__(
        self,
        store: FaceEnrollmentStore,
        *,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._threshold = threshold
        self._clock = clock or _utcnow

    @property
    def threshold(self) -> float:
        return self._threshold

    def enroll(
        self,
        label: str,
        embedding: Sequence[float],
        notes: str | None = None,
        *,
        merge_notes: bool = False,
    ) -> EnrolledFace:
        """
        Insert or replace the face stored under ``label``.

        The embedding always replaces the previous one. Notes follow last write
        wins unless ``merge_notes`` is set, in which case they are appended to
        the existing log. Raises ``ValueError`` unless the embedding is a
        non-empty vector of finite numbers.
        """
        vector = np.asarray(embedding, dtype=np.float64)
        if vector.size == 0 or not np.all(np.isfinite(vector)):
            raise ValueError(f"Embedding for '{label}' must contain finite numbers only.")

        existing = self._store.get(label)
        if merge_notes and existing is not None:
            notes = _join_notes(existing.notes, notes)

        face = EnrolledFace(
            label=label,
            embedding=vector.tolist(),
            notes=notes,
            last_interaction=self._clock(),
        )
        self._store.put(face)
        logger.info(
            "%s face '%s' (%d dimensions)",
            "Re-enrolled" if existing else "Enrolled",
            label,
            len(face.embedding),
        )
        return face

    def match(
        self,
        embedding: Optional[Sequence[float]],
        enrolled: Iterable[EnrolledFace] | None = None,
        threshold: float | None = None,
    ) -> FaceMatch:
        """
        Return the closest enrolled label within ``threshold``, else ``"Unknown"``.

        An empty enrollment yields ``NO_ENROLLMENT`` instead of ``"Unknown"``.
        Records whose dimension differs from the query are not compared. On
        exactly equal distances the earliest enrolled record wins.
        A query containing NaN or infinity is treated as no face detected.
        """
        if embedding is None or len(embedding) == 0:
            return FaceMatch(label=None, error=ErrorKind.NO_FACE_DETECTED)

        faces: List[EnrolledFace] = (
            list(enrolled) if enrolled is not None else self._store.list_faces()
        )
        if not faces:
            return FaceMatch(label=None, error=ErrorKind.NO_ENROLLMENT)

        query = np.asarray(embedding, dtype=np.float64)
        if not np.all(np.isfinite(query)):
            return FaceMatch(label=None, error=ErrorKind.NO_FACE_DETECTED)
        candidates = [face for face in faces if len(face.embedding) == query.shape[0]]
        if len(candidates) < len(faces):
            logger.warning(
                "Skipped %d enrolled faces with a dimension other than %d",
                len(faces) - len(candidates),
                query.shape[0],
            )
        if not candidates:
            return FaceMatch(label=UNKNOWN_LABEL)

        gallery = np.asarray([face.embedding for face in candidates], dtype=np.float64)
        distances = np.linalg.norm(gallery - query, axis=1)
        best_index = int(np.argmin(distances))
        best_distance = float(distances[best_index])

        limit = self._threshold if threshold is None else threshold
        if best_distance <= limit:
            return FaceMatch(label=candidates[best_index].label, distance=best_distance)
        return FaceMatch(label=UNKNOWN_LABEL, distance=best_distance)

    def record_interaction(self, label: str, text: str) -> bool:
        """Append a timestamped line to the face's notes; False for unknown labels."""
        face = self._store.get(label)
        if face is None:
            return False
        now = self._clock()
        line = f"{now.strftime('%Y-%m-%d %H:%M:%S')}: {text}"
        self._store.put(
            face.model_copy(
                update={"notes": _join_notes(face.notes, line), "last_interaction": now}
            )
        )
        return True

    def update_notes(self, label: str, notes: str) -> bool:
        """Overwrite the face's notes; False for unknown labels."""
        face = self._store.get(label)
        if face is None:
            return False
        self._store.put(
            face.model_copy(update={"notes": notes, "last_interaction": self._clock()})
        )
        return True

    def get_notes(self, label: str) -> Optional[str]:
        face = self._store.get(label)
        if face is None:
            return None
        return face.notes or None

    def list_faces(self) -> List[EnrolledFace]:
        return self._store.list_faces()

    def forget(self, label: str) -> bool:
        return self._store.delete(label)


def _join_notes(existing: str | None, addition: str | None) -> str | None:
    if not addition:
        return existing
    if not existing:
        return addition
    return f"{existing}\n\n{addition}".strip()


__all__ = ["DEFAULT_MATCH_THRESHOLD", "FaceMatchEngine"]
