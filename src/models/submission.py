from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import Base


class SubmissionModel(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint(
            "assignment_id",
            "user_id",
            name="uq_submissions_assignment_user",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer,
        ForeignKey("assignments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    # NULL means "no submission"
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    is_graded = Column(Boolean, nullable=False, default=False)
    grade = Column(Integer, nullable=True)
    graded_at = Column(DateTime(timezone=True), nullable=True)
    graded_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    assignment = relationship("AssignmentModel")
    student = relationship("UserModel", foreign_keys=[user_id])
    grader = relationship("UserModel", foreign_keys=[graded_by])
