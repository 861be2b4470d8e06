"""Assignment management utilities."""

import logging
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from models.assignment import AssignmentModel
from models.assignment_file import AssignmentFileModel, AssignmentFileType

logger = logging.getLogger(__name__)

DUE_DATE_FORMAT = "%Y-%m-%dT%H:%M"


def parse_due_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a ``YYYY-MM-DDTHH:MM`` due date as a UTC timestamp.

    Args:
        value: Raw due date string, or None/empty for no due date.

    Returns:
        A UTC-aware datetime, or None.

    Raises:
        ValidationError: If the string does not match the format.
    """
    if value is None or not value.strip():
        return None
    try:
        parsed = datetime.strptime(value.strip(), DUE_DATE_FORMAT)
    except ValueError as e:
        raise ValidationError(
            f"Invalid due date '{value}', expected YYYY-MM-DDTHH:MM"
        ) from e
    return pytz.utc.localize(parsed)


class AssignmentManager:
    """Manages assignments and their attached file metadata."""

    def __init__(self, db: Session):
        self.db = db

    def create_assignment(
        self,
        class_id: int,
        creator_id: int,
        title: str,
        description: str,
        due_date: Optional[str],
        points: int,
    ) -> AssignmentModel:
        """Create an assignment in a classroom.

        The due date is parsed before anything is written, so a malformed value
        leaves storage untouched.

        Raises:
            ValidationError: If the title is empty or the due date is malformed.
        """
        parsed_due = parse_due_date(due_date)
        title = title.strip()
        if not title:
            raise ValidationError("Assignment title cannot be empty")

        model = AssignmentModel(
            classroom_id=class_id,
            title=title,
            description=description,
            due_date=parsed_due,
            points=points,
            created_by=creator_id,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        logger.info(
            "User %s created assignment %s in classroom %s",
            creator_id,
            model.id,
            class_id,
        )
        return model

    def get_assignment(self, class_id: int, assignment_id: int) -> AssignmentModel:
        """Get an assignment that belongs to the given classroom.

        Raises:
            NotFoundError: If the assignment does not exist in that classroom.
        """
        model = (
            self.db.query(AssignmentModel)
            .filter(
                AssignmentModel.id == assignment_id,
                AssignmentModel.classroom_id == class_id,
            )
            .first()
        )
        if not model:
            raise NotFoundError("Assignment", assignment_id)
        return model

    def list_materials(self, assignment_id: int) -> List[AssignmentFileModel]:
        return (
            self.db.query(AssignmentFileModel)
            .filter(
                AssignmentFileModel.assignment_id == assignment_id,
                AssignmentFileModel.file_type == AssignmentFileType.MATERIAL.value,
            )
            .order_by(AssignmentFileModel.id.asc())
            .all()
        )

    def list_submission_files(
        self, assignment_id: int, user_id: int
    ) -> List[AssignmentFileModel]:
        return (
            self.db.query(AssignmentFileModel)
            .filter(
                AssignmentFileModel.assignment_id == assignment_id,
                AssignmentFileModel.user_id == user_id,
                AssignmentFileModel.file_type == AssignmentFileType.SUBMISSION.value,
            )
            .order_by(AssignmentFileModel.id.asc())
            .all()
        )

    def get_class_file(
        self,
        class_id: int,
        file_id: int,
        file_type: Optional[AssignmentFileType] = None,
        assignment_id: Optional[int] = None,
    ) -> AssignmentFileModel:
        """Get a file attached to an assignment of the given classroom.

        Args:
            class_id: Owning classroom.
            file_id: File id.
            file_type: Restrict to materials or submission files.
            assignment_id: Restrict to one assignment.

        Raises:
            NotFoundError: If no matching file exists.
        """
        query = (
            self.db.query(AssignmentFileModel)
            .join(AssignmentModel, AssignmentModel.id == AssignmentFileModel.assignment_id)
            .filter(
                AssignmentFileModel.id == file_id,
                AssignmentModel.classroom_id == class_id,
            )
        )
        if file_type is not None:
            query = query.filter(AssignmentFileModel.file_type == file_type.value)
        if assignment_id is not None:
            query = query.filter(AssignmentFileModel.assignment_id == assignment_id)
        model = query.first()
        if not model:
            raise NotFoundError("File", file_id)
        return model
