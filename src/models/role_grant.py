import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base


class ClassroomRole(str, enum.Enum):
    # "creator" is stored as a teacher grant created together with the classroom
    CREATOR = "creator"
    TEACHER = "teacher"
    STUDENT = "student"


class RoleGrantModel(Base):
    __tablename__ = "role_grants"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "classroom_id",
            name="uq_role_grants_user_classroom",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    classroom_id = Column(
        Integer,
        ForeignKey("classrooms.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    role = Column(String, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=False)

    classroom = relationship("ClassroomModel", back_populates="role_grants")
    user = relationship("UserModel")
