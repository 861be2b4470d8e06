"""User schema definitions.

Request and response bodies for registration, login and the profile endpoints.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    name: str = Field(description="Display name of the new user.")
    email: str = Field(description="Email address, unique across all users.")
    password: str = Field(description="Plain text password.")


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    """Returned by register and login; the credential itself travels in a cookie."""

    user_id: int
    email: str


class CurrentUserResponse(BaseModel):
    user_id: int


class UserProfile(BaseModel):
    id: int
    name: str
    email: str


class EditProfileRequest(BaseModel):
    name: str = Field(description="New display name.")


class ClassListItem(BaseModel):
    id: int
    title: str
    teacher: str = Field(description="Display name of the classroom creator.")
    upcoming_assignment: Optional[str] = Field(
        default=None,
        description="Title of the earliest assignment due in the future.",
    )


class UserClassesResponse(BaseModel):
    enrolled_classes: List[ClassListItem]
    teaching_classes: List[ClassListItem]
