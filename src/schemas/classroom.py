"""Classroom schema definitions."""

from typing import List, Optional

from pydantic import BaseModel, Field


class CreateClassRequest(BaseModel):
    title: str = Field(description="Human readable classroom title.")
    description: str = Field(default="", description="Free-form description.")


class CreateClassResponse(BaseModel):
    id: int
    title: str
    join_code: str


class JoinClassRequest(BaseModel):
    join_code: str


class JoinClassResponse(BaseModel):
    id: int
    title: str
    role: str


class AssignmentSummary(BaseModel):
    id: int
    title: str
    due_date: Optional[str] = None


class ClassMember(BaseModel):
    name: str
    role: str


class ClassDetail(BaseModel):
    id: int
    title: str
    teacher: str
    description: str
    join_code: str
    assignments: List[AssignmentSummary]
    users: List[ClassMember]


class ClassRoleResponse(BaseModel):
    is_teacher: bool
