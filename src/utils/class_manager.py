"""Classroom management utilities.

Classrooms, role-grants (membership) and the per-user classroom listings.
"""

import logging
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

import pytz
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.assignment import AssignmentModel
from models.class_model import ClassroomModel
from models.role_grant import ClassroomRole, RoleGrantModel
from models.user import UserModel
from utils.converters import ensure_utc

logger = logging.getLogger(__name__)

JOIN_CODE_BYTES = 8


def generate_join_code() -> str:
    return secrets.token_urlsafe(JOIN_CODE_BYTES)


class ClassManager:
    """Manages classroom and role-grant operations."""

    def __init__(self, db: Session):
        self.db = db

    def create_class(
        self, title: str, description: str, creator_id: int
    ) -> ClassroomModel:
        """Create a classroom and the creator's teacher grant in one transaction.

        Args:
            title: Classroom title.
            description: Free-form description.
            creator_id: Principal creating the classroom.

        Returns:
            The new ClassroomModel.

        Raises:
            ValidationError: If the title is empty.
        """
        title = title.strip()
        if not title:
            raise ValidationError("Class title cannot be empty")

        now = datetime.now(pytz.utc)
        class_model = ClassroomModel(
            name=title,
            description=description,
            join_code=generate_join_code(),
            creator_id=creator_id,
        )
        self.db.add(class_model)
        self.db.flush()

        grant = RoleGrantModel(
            user_id=creator_id,
            classroom_id=class_model.id,
            role=ClassroomRole.TEACHER.value,
            joined_at=now,
        )
        self.db.add(grant)
        self.db.commit()
        self.db.refresh(class_model)
        logger.info("User %s created classroom %s", creator_id, class_model.id)
        return class_model

    def get_class(self, class_id: int) -> ClassroomModel:
        model = (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.id == class_id)
            .first()
        )
        if not model:
            raise NotFoundError("Classroom", class_id)
        return model

    def get_class_by_join_code(self, join_code: str) -> ClassroomModel:
        model = (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.join_code == join_code)
            .first()
        )
        if not model:
            raise NotFoundError("Classroom")
        return model

    def add_member(
        self,
        class_id: int,
        user_id: int,
        role: ClassroomRole = ClassroomRole.STUDENT,
    ) -> RoleGrantModel:
        """Grant a role on a classroom.

        Raises:
            ConflictError: If the user already holds a grant on the classroom,
                including when a concurrent join wins the unique constraint.
        """
        grant = RoleGrantModel(
            user_id=user_id,
            classroom_id=class_id,
            role=role.value,
            joined_at=datetime.now(pytz.utc),
        )
        try:
            self.db.add(grant)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("User is already enrolled in this classroom") from e
        self.db.refresh(grant)
        logger.info("User %s joined classroom %s as %s", user_id, class_id, role.value)
        return grant

    def list_members(self, class_id: int) -> List[Tuple[UserModel, RoleGrantModel]]:
        return (
            self.db.query(UserModel, RoleGrantModel)
            .join(RoleGrantModel, RoleGrantModel.user_id == UserModel.id)
            .filter(RoleGrantModel.classroom_id == class_id)
            .order_by(RoleGrantModel.joined_at.asc(), RoleGrantModel.id.asc())
            .all()
        )

    def list_assignments(self, class_id: int) -> List[AssignmentModel]:
        return (
            self.db.query(AssignmentModel)
            .filter(AssignmentModel.classroom_id == class_id)
            .order_by(AssignmentModel.id.asc())
            .all()
        )

    def upcoming_assignment(self, class_id: int) -> Optional[AssignmentModel]:
        """Return the earliest assignment whose due date is still in the future."""
        now = datetime.now(pytz.utc)
        candidates = (
            self.db.query(AssignmentModel)
            .filter(
                AssignmentModel.classroom_id == class_id,
                AssignmentModel.due_date.isnot(None),
            )
            .order_by(AssignmentModel.due_date.asc())
            .all()
        )
        for assignment in candidates:
            if ensure_utc(assignment.due_date) > now:
                return assignment
        return None

    def list_enrolled_classes(self, user_id: int) -> List[ClassroomModel]:
        """Classrooms where the user holds a student grant."""
        return (
            self.db.query(ClassroomModel)
            .join(RoleGrantModel, RoleGrantModel.classroom_id == ClassroomModel.id)
            .filter(
                RoleGrantModel.user_id == user_id,
                RoleGrantModel.role == ClassroomRole.STUDENT.value,
            )
            .order_by(ClassroomModel.id.asc())
            .all()
        )

    def list_teaching_classes(self, user_id: int) -> List[ClassroomModel]:
        """Classrooms created by the user."""
        return (
            self.db.query(ClassroomModel)
            .filter(ClassroomModel.creator_id == user_id)
            .order_by(ClassroomModel.id.asc())
            .all()
        )
