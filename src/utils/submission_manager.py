"""Submission lifecycle engine.

A student's work on an assignment moves between three states:

    NO_SUBMISSION --submit--> SUBMITTED --grade--> GRADED
          ^                       |                   |
          +---cancel_submission---+                   |
          +-------------------cancel_grade------------+

``submit`` from SUBMITTED (or GRADED) is a resubmission: it refreshes
``submitted_at`` and attaches the new files next to the old ones. Files are
never removed by a transition; only ``delete_file`` removes them.

Every transition is all-or-nothing. Uploaded bytes go to the blob store
before any row is written; if a blob write fails, the blobs already written by
the same call are removed and nothing is inserted. If the database step fails
after the blobs were written, those blobs are removed as well.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, List, Optional, Sequence, Tuple

import pytz
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import (
    InsufficientRoleError,
    InternalFailure,
    NotFoundError,
    ValidationError,
)
from models.assignment import AssignmentModel
from models.assignment_file import AssignmentFileModel, AssignmentFileType
from models.submission import SubmissionModel
from utils.blob_store import BlobStore, BlobStoreError, generate_blob_name

logger = logging.getLogger(__name__)

# A lost race on the first submission is retried once as an update
MAX_SUBMIT_ATTEMPTS = 2


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file whose contents are read from ``stream`` when stored."""

    file_name: str
    content_type: Optional[str]
    stream: BinaryIO


@dataclass(frozen=True)
class StoredBlob:
    file: IncomingFile
    path: str
    size: int


class SubmissionState(str, enum.Enum):
    NO_SUBMISSION = "no_submission"
    SUBMITTED = "submitted"
    GRADED = "graded"


def submission_state(submission: Optional[SubmissionModel]) -> SubmissionState:
    """Classify a submission row. A row without ``submitted_at`` counts as no submission."""
    if submission is None or submission.submitted_at is None:
        return SubmissionState.NO_SUBMISSION
    if submission.is_graded:
        return SubmissionState.GRADED
    return SubmissionState.SUBMITTED


class SubmissionManager:
    """Drives submissions, grades and file attachments through their lifecycle."""

    def __init__(self, db: Session, blob_store: BlobStore):
        """Initialize SubmissionManager.

        Args:
            db: SQLAlchemy Session.
            blob_store: Storage for uploaded file contents.
        """
        self.db = db
        self.blob_store = blob_store

    # --- Blob bookkeeping ---

    def _store_blobs(self, files: Sequence[IncomingFile]) -> List[StoredBlob]:
        """Write every file to the blob store, or none of them.

        Raises:
            ValidationError: If no files were supplied.
            InternalFailure: If a write fails; earlier writes are removed.
        """
        if not files:
            raise ValidationError("At least one file must be uploaded")

        stored: List[StoredBlob] = []
        for incoming in files:
            path = generate_blob_name(incoming.file_name)
            try:
                size = self.blob_store.write(path, incoming.stream)
            except BlobStoreError as e:
                logger.error("Blob write failed for %s: %s", incoming.file_name, e)
                self._discard_blobs(stored)
                raise InternalFailure("Failed to store uploaded file") from e
            logger.info("Stored %s (%d bytes)", incoming.file_name, size)
            stored.append(StoredBlob(file=incoming, path=path, size=size))
        return stored

    def _discard_blobs(self, stored: Sequence[StoredBlob]) -> None:
        for blob in stored:
            try:
                self.blob_store.delete(blob.path)
            except BlobStoreError as e:
                logger.warning("Failed to remove orphaned blob %s: %s", blob.path, e)

    def _add_file_rows(
        self,
        assignment_id: int,
        user_id: int,
        file_type: AssignmentFileType,
        stored: Sequence[StoredBlob],
    ) -> List[AssignmentFileModel]:
        rows = []
        for blob in stored:
            row = AssignmentFileModel(
                assignment_id=assignment_id,
                user_id=user_id,
                file_name=blob.file.file_name or "unknown",
                file_path=blob.path,
                content_type=blob.file.content_type,
                file_type=file_type.value,
                upload_time=datetime.now(pytz.utc),
            )
            self.db.add(row)
            rows.append(row)
        return rows

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to %s", action)
            raise InternalFailure(f"Failed to {action}") from e

    # --- Materials ---

    def add_materials(
        self,
        assignment: AssignmentModel,
        teacher_id: int,
        files: Sequence[IncomingFile],
    ) -> List[AssignmentFileModel]:
        """Attach teacher-supplied material files to an assignment.

        Raises:
            ValidationError: If no files were supplied.
            InternalFailure: If blob storage or the database fails.
        """
        stored = self._store_blobs(files)
        try:
            rows = self._add_file_rows(
                assignment.id, teacher_id, AssignmentFileType.MATERIAL, stored
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self._discard_blobs(stored)
            logger.exception("Failed to record materials for assignment %s", assignment.id)
            raise InternalFailure("Failed to save assignment materials") from e

        for row in rows:
            self.db.refresh(row)
        logger.info(
            "User %s added %d material file(s) to assignment %s",
            teacher_id,
            len(rows),
            assignment.id,
        )
        return rows

    # --- Lifecycle transitions ---

    def get_student_submission(
        self, assignment_id: int, user_id: int
    ) -> Optional[SubmissionModel]:
        return (
            self.db.query(SubmissionModel)
            .filter(
                SubmissionModel.assignment_id == assignment_id,
                SubmissionModel.user_id == user_id,
            )
            .first()
        )

    def _log_transition(
        self,
        submission_id: int,
        before: SubmissionState,
        after: SubmissionState,
        actor_id: int,
    ) -> None:
        logger.info(
            "Submission %s: %s -> %s (user %s)",
            submission_id,
            before.value,
            after.value,
            actor_id,
        )

    def _upsert_submission(
        self, assignment_id: int, user_id: int, now: datetime
    ) -> Tuple[SubmissionModel, SubmissionState]:
        submission = self.get_student_submission(assignment_id, user_id)
        before = submission_state(submission)
        if submission is None:
            submission = SubmissionModel(
                assignment_id=assignment_id,
                user_id=user_id,
                submitted_at=now,
                is_graded=False,
            )
            self.db.add(submission)
        else:
            submission.submitted_at = now
        # Surface a lost unique-constraint race here rather than at commit
        self.db.flush()
        return submission, before

    def submit(
        self,
        assignment: AssignmentModel,
        student_id: int,
        files: Sequence[IncomingFile],
    ) -> SubmissionModel:
        """Submit or resubmit work for an assignment.

        Creates the submission row on first submission and refreshes
        ``submitted_at`` otherwise. The new files are added alongside any
        previously uploaded ones.

        Args:
            assignment: Target assignment.
            student_id: Submitting principal.
            files: Uploaded files, at least one.

        Returns:
            The submission row.

        Raises:
            ValidationError: If no files were supplied.
            InternalFailure: If blob storage or the database fails.
        """
        stored = self._store_blobs(files)
        submission = None
        before = SubmissionState.NO_SUBMISSION
        for attempt in range(1, MAX_SUBMIT_ATTEMPTS + 1):
            now = datetime.now(pytz.utc)
            try:
                self._add_file_rows(
                    assignment.id, student_id, AssignmentFileType.SUBMISSION, stored
                )
                submission, before = self._upsert_submission(
                    assignment.id, student_id, now
                )
                self.db.commit()
                break
            except IntegrityError as e:
                self.db.rollback()
                if attempt < MAX_SUBMIT_ATTEMPTS:
                    logger.info(
                        "Concurrent first submission for assignment %s by user %s, "
                        "retrying as resubmission",
                        assignment.id,
                        student_id,
                    )
                    continue
                self._discard_blobs(stored)
                logger.exception("Failed to record submission for assignment %s", assignment.id)
                raise InternalFailure("Failed to save submission") from e
            except SQLAlchemyError as e:
                self.db.rollback()
                self._discard_blobs(stored)
                logger.exception("Failed to record submission for assignment %s", assignment.id)
                raise InternalFailure("Failed to save submission") from e

        self.db.refresh(submission)
        self._log_transition(submission.id, before, submission_state(submission), student_id)
        logger.info(
            "User %s submitted %d file(s) for assignment %s",
            student_id,
            len(stored),
            assignment.id,
        )
        return submission

    def cancel_submission(self, assignment_id: int, student_id: int) -> None:
        """Delete the caller's submission row. Attached files are kept.

        Raises:
            NotFoundError: If there is no submission row.
            InternalFailure: If the database fails.
        """
        submission = self.get_student_submission(assignment_id, student_id)
        if submission is None:
            raise NotFoundError("Submission")
        submission_id = submission.id
        before = submission_state(submission)
        self.db.delete(submission)
        self._commit("cancel submission")
        self._log_transition(
            submission_id, before, SubmissionState.NO_SUBMISSION, student_id
        )

    def list_submissions(self, class_id: int) -> List[SubmissionModel]:
        return (
            self.db.query(SubmissionModel)
            .join(AssignmentModel, AssignmentModel.id == SubmissionModel.assignment_id)
            .filter(AssignmentModel.classroom_id == class_id)
            .order_by(SubmissionModel.submitted_at.desc(), SubmissionModel.id.desc())
            .all()
        )

    def get_submission(self, class_id: int, submission_id: int) -> SubmissionModel:
        """Get a submission for an assignment of the given classroom.

        Raises:
            NotFoundError: If no such submission exists in the classroom.
        """
        submission = (
            self.db.query(SubmissionModel)
            .join(AssignmentModel, AssignmentModel.id == SubmissionModel.assignment_id)
            .filter(
                SubmissionModel.id == submission_id,
                AssignmentModel.classroom_id == class_id,
            )
            .first()
        )
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def list_submission_files(
        self, submission: SubmissionModel
    ) -> List[AssignmentFileModel]:
        return (
            self.db.query(AssignmentFileModel)
            .filter(
                AssignmentFileModel.assignment_id == submission.assignment_id,
                AssignmentFileModel.user_id == submission.user_id,
                AssignmentFileModel.file_type == AssignmentFileType.SUBMISSION.value,
            )
            .order_by(AssignmentFileModel.id.asc())
            .all()
        )

    def grade(
        self,
        class_id: int,
        submission_id: int,
        grader_id: int,
        grade: Optional[int],
    ) -> SubmissionModel:
        """Record a grade. A None grade marks the work graded with no score.

        Raises:
            NotFoundError: If the submission does not exist in the classroom.
            InternalFailure: If the database fails.
        """
        submission = self.get_submission(class_id, submission_id)
        before = submission_state(submission)
        submission.grade = grade
        submission.is_graded = True
        submission.graded_at = datetime.now(pytz.utc)
        submission.graded_by = grader_id
        self._commit("grade submission")
        self.db.refresh(submission)
        self._log_transition(submission_id, before, submission_state(submission), grader_id)
        return submission

    def cancel_grade(
        self, class_id: int, submission_id: int, teacher_id: int
    ) -> SubmissionModel:
        """Clear the grade and the submission timestamp.

        The submission returns to NO_SUBMISSION, not SUBMITTED.

        Raises:
            NotFoundError: If the submission does not exist in the classroom.
            InternalFailure: If the database fails.
        """
        submission = self.get_submission(class_id, submission_id)
        before = submission_state(submission)
        submission.grade = None
        submission.is_graded = False
        submission.graded_at = None
        submission.graded_by = None
        submission.submitted_at = None
        self._commit("cancel grade")
        self.db.refresh(submission)
        self._log_transition(submission_id, before, submission_state(submission), teacher_id)
        return submission

    # --- Files ---

    def delete_file(
        self,
        file: AssignmentFileModel,
        requester_id: int,
        requester_is_teacher: bool,
    ) -> None:
        """Remove a file row, then its blob.

        A failure to delete the blob is logged and otherwise ignored.

        Raises:
            InsufficientRoleError: If the requester neither uploaded the file
                nor teaches the classroom.
            InternalFailure: If the database fails.
        """
        if file.user_id != requester_id and not requester_is_teacher:
            raise InsufficientRoleError("Only the uploader or a teacher can delete this file")

        file_id = file.id
        path = file.file_path
        self.db.delete(file)
        self._commit("delete file")
        logger.info("User %s deleted file %s", requester_id, file_id)

        try:
            self.blob_store.delete(path)
        except BlobStoreError as e:
            logger.warning("File row %s removed but blob %s was not: %s", file_id, path, e)

    def read_file(self, file: AssignmentFileModel) -> bytes:
        """Read a file's contents from the blob store.

        Raises:
            InternalFailure: If the blob cannot be read.
        """
        try:
            return self.blob_store.read(file.file_path)
        except BlobStoreError as e:
            logger.error("Failed to read blob for file %s: %s", file.id, e)
            raise InternalFailure("Failed to read file") from e
