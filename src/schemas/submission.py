"""Submission schema definitions."""

from typing import List, Optional

from pydantic import BaseModel

from schemas.assignment import FileInfo


class SubmissionInfo(BaseModel):
    id: int
    assignment_id: int
    assignment_title: str
    student_name: str
    submitted_at: Optional[str] = None
    is_graded: bool
    grade: Optional[int] = None


class SubmissionDetail(BaseModel):
    id: int
    assignment_id: int
    assignment_title: str
    assignment_points: int
    student_name: str
    submitted_at: Optional[str] = None
    is_graded: bool
    grade: Optional[int] = None
    graded_at: Optional[str] = None
    grader_name: Optional[str] = None
    files: List[FileInfo]


class GradeSubmissionRequest(BaseModel):
    # None records a graded-with-no-score state
    grade: Optional[int] = None
