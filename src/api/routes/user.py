"""Current-user routes: session check, profile and classroom listings."""

from typing import List

from fastapi import APIRouter

from core.dependencies import ClassManagerDep, PrincipalDep, UserManagerDep
from models.class_model import ClassroomModel
from schemas.user import (
    ClassListItem,
    CurrentUserResponse,
    EditProfileRequest,
    UserClassesResponse,
    UserProfile,
)
from utils.class_manager import ClassManager

router = APIRouter(prefix="/user", tags=["User"])


def _build_class_items(
    class_manager: ClassManager, classes: List[ClassroomModel]
) -> List[ClassListItem]:
    items = []
    for model in classes:
        upcoming = class_manager.upcoming_assignment(model.id)
        items.append(
            ClassListItem(
                id=model.id,
                title=model.name,
                teacher=model.creator.name,
                upcoming_assignment=upcoming.title if upcoming else None,
            )
        )
    return items


@router.get("", response_model=CurrentUserResponse, summary="Check session")
def current_user(
    principal: PrincipalDep, user_manager: UserManagerDep
) -> CurrentUserResponse:
    user = user_manager.get_user_by_id(principal.subject)
    return CurrentUserResponse(user_id=user.id)


@router.get("/profile", response_model=UserProfile, summary="Get profile")
def get_profile(principal: PrincipalDep, user_manager: UserManagerDep) -> UserProfile:
    user = user_manager.get_user_by_id(principal.subject)
    return UserProfile(id=user.id, name=user.name, email=user.email)


@router.post("/profile/edit", response_model=UserProfile, summary="Edit profile")
def edit_profile(
    req: EditProfileRequest,
    principal: PrincipalDep,
    user_manager: UserManagerDep,
) -> UserProfile:
    """Change the caller's display name.

    Raises:
        ValidationError: If the name is empty.
    """
    user = user_manager.update_name(principal.subject, req.name)
    return UserProfile(id=user.id, name=user.name, email=user.email)


@router.get("/classes", response_model=UserClassesResponse, summary="List my classes")
def list_classes(
    principal: PrincipalDep,
    user_manager: UserManagerDep,
    class_manager: ClassManagerDep,
) -> UserClassesResponse:
    """List classrooms the caller studies in and classrooms the caller created.

    Each item carries the title of the earliest assignment still due.
    """
    user = user_manager.get_user_by_id(principal.subject)
    return UserClassesResponse(
        enrolled_classes=_build_class_items(
            class_manager, class_manager.list_enrolled_classes(user.id)
        ),
        teaching_classes=_build_class_items(
            class_manager, class_manager.list_teaching_classes(user.id)
        ),
    )
