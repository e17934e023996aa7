"""Persistence for enrolled faces on top of the key-value record store."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import ValidationError

from assistant.clients.sqlite_store import SQLiteStore
from assistant.models.faces import EnrolledFace

logger = logging.getLogger(__name__)


class FaceEnrollmentStore:
    """Keep one JSON blob per label, listed in enrollment order."""

    _SORT_PREFIX = "face#"

    def __init__(self, store: SQLiteStore, *, namespace: str = "default") -> None:
        self._store = store
        self._partition = f"faces#{namespace}"

    def get(self, label: str) -> Optional[EnrolledFace]:
        item = self._store.get_item(
            partition_key=self._partition, sort_key=self._sort_key(label)
        )
        if item is None:
            return None
        return self._to_face(item)

    def put(self, face: EnrolledFace) -> None:
        item = face.model_dump(mode="json")
        item.update({"pk": self._partition, "sk": self._sort_key(face.label)})
        self._store.put_item(item)

    def delete(self, label: str) -> bool:
        return self._store.delete_item(
            partition_key=self._partition, sort_key=self._sort_key(label)
        )

    def list_faces(self) -> List[EnrolledFace]:
        items = self._store.list_items_with_prefix(
            partition_key=self._partition, sort_key_prefix=self._SORT_PREFIX
        )
        faces = []
        for item in items:
            face = self._to_face(item)
            if face is not None:
                faces.append(face)
        return faces

    def _sort_key(self, label: str) -> str:
        return f"{self._SORT_PREFIX}{label}"

    @staticmethod
    def _to_face(item: dict) -> Optional[EnrolledFace]:
        try:
            return EnrolledFace.model_validate(item)
        except ValidationError:
            logger.warning("Skipping unreadable face record %s", item.get("sk"))
            return None


__all__ = ["FaceEnrollmentStore"]
