from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from assistant.clients.sqlite_store import SQLiteStore
from assistant.models.faces import UNKNOWN_LABEL, EnrolledFace
from assistant.models.session import ErrorKind
from assistant.services.face_match import FaceMatchEngine
from assistant.services.face_store import FaceEnrollmentStore

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def face_store(tmp_path: Path) -> FaceEnrollmentStore:
    return FaceEnrollmentStore(SQLiteStore(str(tmp_path / "faces.db")))


@pytest.fixture()
def engine(face_store: FaceEnrollmentStore) -> FaceMatchEngine:
    return FaceMatchEngine(face_store, threshold=0.5, clock=lambda: FIXED_NOW)


def test_match_against_empty_enrollment_reports_no_enrollment(
    engine: FaceMatchEngine,
) -> None:
    result = engine.match([0.1, 0.2, 0.3])

    assert result.error is ErrorKind.NO_ENROLLMENT
    assert result.label is None
    assert not result.is_known


def test_match_without_embedding_reports_no_face(engine: FaceMatchEngine) -> None:
    engine.enroll("A", [0.0, 0.0])

    assert engine.match(None).error is ErrorKind.NO_FACE_DETECTED
    assert engine.match([]).error is ErrorKind.NO_FACE_DETECTED


def test_match_applies_threshold(engine: FaceMatchEngine) -> None:
    enrolled = [EnrolledFace(label="A", embedding=[0.0, 0.0, 0.0])]

    exact = engine.match([0.0, 0.0, 0.0], enrolled, threshold=0.5)
    assert exact.label == "A"
    assert exact.distance == pytest.approx(0.0)
    assert exact.is_known

    far = engine.match([0.9, 0.0, 0.0], enrolled, threshold=0.5)
    assert far.label == UNKNOWN_LABEL
    assert far.distance == pytest.approx(0.9)
    assert not far.is_known


def test_match_picks_nearest_and_prefers_earliest_on_ties(
    engine: FaceMatchEngine,
) -> None:
    engine.enroll("first", [1.0, 0.0])
    engine.enroll("second", [-1.0, 0.0])
    engine.enroll("near", [0.1, 0.1])

    assert engine.match([0.1, 0.1], threshold=0.5).label == "near"
    assert engine.match([0.0, 0.0], threshold=2.0).label == "near"

    engine.forget("near")
    assert engine.match([0.0, 0.0], threshold=2.0).label == "first"


def test_match_skips_records_with_other_dimensions(engine: FaceMatchEngine) -> None:
    engine.enroll("short", [0.0, 0.0])

    result = engine.match([0.0, 0.0, 0.0])

    assert result.label == UNKNOWN_LABEL
    assert result.distance is None
    assert result.error is None


def test_reenrollment_replaces_embedding_and_notes(
    engine: FaceMatchEngine, face_store: FaceEnrollmentStore
) -> None:
    engine.enroll("A", [0.1, 0.2], "note1")
    engine.enroll("A", [0.3, 0.4], "note2")

    faces = face_store.list_faces()
    assert [face.label for face in faces] == ["A"]
    assert faces[0].embedding == [0.3, 0.4]
    assert faces[0].notes == "note2"
    assert faces[0].last_interaction == FIXED_NOW


def test_reenrollment_can_merge_notes(engine: FaceMatchEngine) -> None:
    engine.enroll("A", [0.1, 0.2], "note1")
    engine.enroll("A", [0.3, 0.4], "note2", merge_notes=True)

    assert engine.get_notes("A") == "note1\n\nnote2"


def test_record_interaction_on_unknown_label_changes_nothing(
    engine: FaceMatchEngine, face_store: FaceEnrollmentStore
) -> None:
    engine.enroll("A", [0.1, 0.2], "note1")
    before = face_store.list_faces()

    assert engine.record_interaction("Ghost", "text") is False
    assert face_store.list_faces() == before


def test_record_interaction_appends_timestamped_line(engine: FaceMatchEngine) -> None:
    engine.enroll("A", [0.1, 0.2], "Met at the conference")

    assert engine.record_interaction("A", "Talked about hiking")

    assert engine.get_notes("A") == (
        "Met at the conference\n\n2024-05-01 09:30:00: Talked about hiking"
    )


def test_update_notes_and_forget(engine: FaceMatchEngine) -> None:
    engine.enroll("A", [0.1, 0.2], "old")

    assert engine.update_notes("A", "new")
    assert engine.get_notes("A") == "new"
    assert not engine.update_notes("Ghost", "new")

    assert engine.forget("A")
    assert not engine.forget("A")
    assert engine.list_faces() == []


def test_enrollments_persist_across_engines(tmp_path: Path) -> None:
    db_path = str(tmp_path / "faces.db")
    FaceMatchEngine(FaceEnrollmentStore(SQLiteStore(db_path))).enroll("A", [0.5, 0.5])

    reopened = FaceMatchEngine(FaceEnrollmentStore(SQLiteStore(db_path)))

    assert reopened.match([0.5, 0.5]).label == "A"


def test_enroll_rejects_non_finite_embeddings(
    engine: FaceMatchEngine, face_store: FaceEnrollmentStore
) -> None:
    with pytest.raises(ValueError):
        engine.enroll("Bad", [float("nan"), 0.0])
    with pytest.raises(ValueError):
        engine.enroll("Bad", [float("inf"), 0.0])

    assert face_store.list_faces() == []


def test_non_finite_query_counts_as_no_face(engine: FaceMatchEngine) -> None:
    engine.enroll("A", [0.0, 0.0])

    result = engine.match([float("nan"), 0.0])

    assert result.error is ErrorKind.NO_FACE_DETECTED
