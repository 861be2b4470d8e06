import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base


class AssignmentFileType(str, enum.Enum):
    MATERIAL = "material"
    SUBMISSION = "submission"


class AssignmentFileModel(Base):
    __tablename__ = "assignment_files"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer,
        ForeignKey("assignments.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    # Uploader: the teacher for materials, the student for submissions
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)  # Opaque blob store key
    content_type = Column(String, nullable=True)
    file_type = Column(String, nullable=False, index=True)
    upload_time = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("AssignmentModel")
