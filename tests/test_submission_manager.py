import io
import logging
from datetime import datetime

import pytest
import pytz
from sqlalchemy.exc import OperationalError

from core.exceptions import InternalFailure, NotFoundError, ValidationError
from models.assignment_file import AssignmentFileModel
from models.submission import SubmissionModel
from utils.blob_store import BlobStoreError, LocalBlobStore
from utils.submission_manager import (
    IncomingFile,
    SubmissionManager,
    SubmissionState,
    submission_state,
)


class MemoryBlobStore:
    """In-memory blob store that can be told to fail."""

    def __init__(self, fail_write_on=None, fail_delete=False):
        self.blobs = {}
        self.writes = 0
        self.fail_write_on = fail_write_on
        self.fail_delete = fail_delete

    def write(self, name, stream):
        self.writes += 1
        if self.writes == self.fail_write_on:
            raise BlobStoreError("disk full")
        self.blobs[name] = stream.read()
        return len(self.blobs[name])

    def read(self, path):
        try:
            return self.blobs[path]
        except KeyError:
            raise BlobStoreError(f"missing {path}")

    def delete(self, path):
        if self.fail_delete:
            raise BlobStoreError("permission denied")
        self.blobs.pop(path, None)


def _files(*names):
    return [
        IncomingFile(file_name=n, content_type="text/plain", stream=io.BytesIO(n.encode()))
        for n in names
    ]


def _count(db, model):
    return db.query(model).count()


def test_submit_then_resubmit_keeps_single_row(db_session, seeded):
    store = MemoryBlobStore()
    manager = SubmissionManager(db_session, store)
    student_id = seeded["student"].id

    first = manager.submit(seeded["assignment"], student_id, _files("a.txt"))
    first_time = first.submitted_at
    second = manager.submit(seeded["assignment"], student_id, _files("b.txt"))

    assert second.id == first.id
    assert second.submitted_at >= first_time
    assert _count(db_session, SubmissionModel) == 1
    assert _count(db_session, AssignmentFileModel) == 2
    assert len(store.blobs) == 2
    assert submission_state(second) == SubmissionState.SUBMITTED


def test_blob_names_keep_original_filename(db_session, seeded):
    store = MemoryBlobStore()
    SubmissionManager(db_session, store).submit(
        seeded["assignment"], seeded["student"].id, _files("my report.pdf")
    )

    (name,) = store.blobs
    assert name.endswith("_my_report.pdf")
    row = db_session.query(AssignmentFileModel).one()
    assert row.file_name == "my report.pdf"
    assert row.file_path == name


def test_failed_blob_write_removes_earlier_blobs_and_writes_no_rows(db_session, seeded):
    store = MemoryBlobStore(fail_write_on=2)
    manager = SubmissionManager(db_session, store)

    with pytest.raises(InternalFailure):
        manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt", "b.txt"))

    assert store.blobs == {}
    assert _count(db_session, AssignmentFileModel) == 0
    assert _count(db_session, SubmissionModel) == 0


def test_failed_commit_removes_written_blobs(db_session, seeded, monkeypatch):
    store = MemoryBlobStore()
    manager = SubmissionManager(db_session, store)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(InternalFailure):
        manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt", "b.txt"))
    monkeypatch.undo()

    assert store.blobs == {}
    assert _count(db_session, AssignmentFileModel) == 0
    assert _count(db_session, SubmissionModel) == 0


def test_failed_material_commit_removes_written_blobs(db_session, seeded, monkeypatch):
    store = MemoryBlobStore()
    manager = SubmissionManager(db_session, store)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(InternalFailure):
        manager.add_materials(seeded["assignment"], seeded["teacher"].id, _files("notes.txt"))
    monkeypatch.undo()

    assert store.blobs == {}
    assert _count(db_session, AssignmentFileModel) == 0


def test_empty_upload_is_rejected_before_any_write(db_session, seeded):
    store = MemoryBlobStore()

    with pytest.raises(ValidationError):
        SubmissionManager(db_session, store).submit(seeded["assignment"], seeded["student"].id, [])

    assert store.writes == 0


def test_lost_first_submission_race_becomes_update(db_session, seeded, settings):
    from core.database import create_db_engine, create_session_factory

    assignment_id = seeded["assignment"].id
    student_id = seeded["student"].id

    # Another request inserts the row after this one looked for it
    engine = create_db_engine(settings)
    other = create_session_factory(engine)()
    other.add(
        SubmissionModel(
            assignment_id=assignment_id,
            user_id=student_id,
            submitted_at=datetime(2020, 1, 1, tzinfo=pytz.utc),
            is_graded=False,
        )
    )
    other.commit()
    other.close()
    engine.dispose()

    manager = SubmissionManager(db_session, MemoryBlobStore())
    real_lookup = manager.get_student_submission
    calls = []

    def stale_lookup(a_id, u_id):
        calls.append((a_id, u_id))
        if len(calls) == 1:
            return None
        return real_lookup(a_id, u_id)

    manager.get_student_submission = stale_lookup
    submission = manager.submit(seeded["assignment"], student_id, _files("a.txt"))

    assert len(calls) == 2
    assert _count(db_session, SubmissionModel) == 1
    assert submission.submitted_at.year > 2020
    assert _count(db_session, AssignmentFileModel) == 1


def test_cancel_submission_requires_row(db_session, seeded):
    manager = SubmissionManager(db_session, MemoryBlobStore())

    with pytest.raises(NotFoundError):
        manager.cancel_submission(seeded["assignment"].id, seeded["student"].id)


def test_grade_and_cancel_grade_transitions(db_session, seeded):
    manager = SubmissionManager(db_session, MemoryBlobStore())
    class_id = seeded["classroom"].id
    teacher_id = seeded["teacher"].id
    submission = manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt"))

    graded = manager.grade(class_id, submission.id, teacher_id, 8)
    assert submission_state(graded) == SubmissionState.GRADED
    assert graded.graded_by == teacher_id
    assert graded.graded_at is not None

    cancelled = manager.cancel_grade(class_id, submission.id, teacher_id)
    assert submission_state(cancelled) == SubmissionState.NO_SUBMISSION
    assert cancelled.grade is None
    assert cancelled.graded_at is None
    assert cancelled.graded_by is None
    assert cancelled.submitted_at is None
    assert cancelled.is_graded is False


def test_grade_in_wrong_classroom_is_not_found(db_session, seeded):
    manager = SubmissionManager(db_session, MemoryBlobStore())
    submission = manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt"))

    with pytest.raises(NotFoundError):
        manager.grade(seeded["classroom"].id + 1, submission.id, seeded["teacher"].id, 1)


def test_delete_file_swallows_blob_failure(db_session, seeded):
    store = MemoryBlobStore()
    manager = SubmissionManager(db_session, store)
    student_id = seeded["student"].id
    manager.submit(seeded["assignment"], student_id, _files("a.txt"))
    row = db_session.query(AssignmentFileModel).one()

    store.fail_delete = True
    manager.delete_file(row, requester_id=student_id, requester_is_teacher=False)

    assert _count(db_session, AssignmentFileModel) == 0
    assert len(store.blobs) == 1


def test_read_file_failure_is_internal(db_session, seeded):
    store = MemoryBlobStore()
    manager = SubmissionManager(db_session, store)
    manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt"))
    row = db_session.query(AssignmentFileModel).one()
    store.blobs.clear()

    with pytest.raises(InternalFailure):
        manager.read_file(row)


def test_submission_state_of_missing_row():
    assert submission_state(None) == SubmissionState.NO_SUBMISSION


def test_graded_row_without_submission_time_is_no_submission(db_session, seeded):
    manager = SubmissionManager(db_session, MemoryBlobStore())
    class_id = seeded["classroom"].id
    teacher_id = seeded["teacher"].id
    submission = manager.submit(seeded["assignment"], seeded["student"].id, _files("a.txt"))
    manager.cancel_grade(class_id, submission.id, teacher_id)

    regraded = manager.grade(class_id, submission.id, teacher_id, 5)

    assert regraded.is_graded is True
    assert submission_state(regraded) == SubmissionState.NO_SUBMISSION


def test_transitions_are_logged(db_session, seeded, caplog):
    manager = SubmissionManager(db_session, MemoryBlobStore())
    class_id = seeded["classroom"].id
    teacher_id = seeded["teacher"].id
    student_id = seeded["student"].id

    with caplog.at_level(logging.INFO, logger="utils.submission_manager"):
        submission = manager.submit(seeded["assignment"], student_id, _files("a.txt"))
        manager.grade(class_id, submission.id, teacher_id, 9)
        manager.submit(seeded["assignment"], student_id, _files("b.txt"))
        manager.cancel_submission(seeded["assignment"].id, student_id)

    sid = submission.id
    messages = [record.getMessage() for record in caplog.records]
    transitions = [m for m in messages if m.startswith("Submission ")]
    assert transitions == [
        f"Submission {sid}: no_submission -> submitted (user {student_id})",
        f"Submission {sid}: submitted -> graded (user {teacher_id})",
        f"Submission {sid}: graded -> graded (user {student_id})",
        f"Submission {sid}: graded -> no_submission (user {student_id})",
    ]


class ChunkedOnlyStream(io.BytesIO):
    """A stream that refuses to be read in one piece."""

    def __init__(self, data):
        super().__init__(data)
        self.largest_read = 0

    def read(self, size=-1):
        assert size is not None and size > 0, "stream was read whole"
        chunk = super().read(size)
        self.largest_read = max(self.largest_read, len(chunk))
        return chunk


def test_uploads_are_streamed_to_disk_in_chunks(db_session, seeded, tmp_path):
    payload = b"x" * (4 * 1024 * 1024)
    streams = [ChunkedOnlyStream(payload) for _ in range(3)]
    files = [
        IncomingFile(file_name=f"part{i}.bin", content_type=None, stream=s)
        for i, s in enumerate(streams)
    ]
    store = LocalBlobStore(tmp_path / "blobs")

    SubmissionManager(db_session, store).submit(seeded["assignment"], seeded["student"].id, files)

    for stream in streams:
        assert 0 < stream.largest_read < len(payload)
    rows = db_session.query(AssignmentFileModel).order_by(AssignmentFileModel.id).all()
    assert [store.read(row.file_path) for row in rows] == [payload] * 3
