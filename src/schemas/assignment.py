"""Assignment and file schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    id: int
    file_name: str
    content_type: str
    file_type: str = Field(description="Either 'material' or 'submission'.")


class CreateAssignmentRequest(BaseModel):
    title: str
    description: str = ""
    due_date: Optional[str] = Field(
        default=None,
        description="Due date as YYYY-MM-DDTHH:MM, interpreted as UTC.",
    )
    points: int = 0


class CreateAssignmentResponse(BaseModel):
    id: int


class AssignmentDetail(BaseModel):
    id: int
    class_id: int
    title: str
    class_title: str
    description: str
    due_date: Optional[str] = None
    points: int
    materials: List[FileInfo]
    submission_files: List[FileInfo] = Field(
        description="Submission files uploaded by the caller only.",
    )
    is_submitted: bool
    grade: Optional[int] = None


class UploadResponse(BaseModel):
    message: str
    files: List[FileInfo]


class MessageResponse(BaseModel):
    message: str
