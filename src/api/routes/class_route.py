"""Classroom routes."""

from fastapi import APIRouter

from core.authorization import Action
from core.dependencies import AuthorizerDep, ClassManagerDep, PrincipalDep
from models.role_grant import ClassroomRole
from schemas.classroom import (
    AssignmentSummary,
    ClassDetail,
    ClassMember,
    ClassRoleResponse,
    CreateClassRequest,
    CreateClassResponse,
    JoinClassRequest,
    JoinClassResponse,
)
from utils.converters import to_utc_iso

router = APIRouter(prefix="/class", tags=["Class"])


@router.post("/create", response_model=CreateClassResponse, summary="Create classroom")
def create_class(
    req: CreateClassRequest,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    class_manager: ClassManagerDep,
) -> CreateClassResponse:
    """Create a classroom; the caller becomes its teacher.

    Args:
        req: Title and description of the classroom.
        principal: Verified caller.
        authorizer: Injected AuthorizationEvaluator.
        class_manager: Injected ClassManager instance.

    Returns:
        CreateClassResponse with the generated join code.
    """
    authorizer.require(principal.subject, None, Action.CREATE_CLASSROOM)
    model = class_manager.create_class(req.title, req.description, principal.subject)
    return CreateClassResponse(id=model.id, title=model.name, join_code=model.join_code)


@router.post("/join", response_model=JoinClassResponse, summary="Join classroom by code")
def join_class(
    req: JoinClassRequest,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    class_manager: ClassManagerDep,
) -> JoinClassResponse:
    """Join a classroom as a student using its join code.

    Raises:
        NotFoundError: If no classroom has this join code.
        ConflictError: If the caller is already enrolled.
    """
    model = class_manager.get_class_by_join_code(req.join_code.strip())
    authorizer.require(principal.subject, model.id, Action.JOIN_CLASSROOM)
    grant = class_manager.add_member(model.id, principal.subject, ClassroomRole.STUDENT)
    return JoinClassResponse(id=model.id, title=model.name, role=grant.role)


@router.get("/{class_id}", response_model=ClassDetail, summary="Get classroom")
def get_class(
    class_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
    class_manager: ClassManagerDep,
) -> ClassDetail:
    """Get classroom detail with its assignments and members.

    Any authenticated user may read a classroom; membership is not required.
    """
    authorizer.require(principal.subject, class_id, Action.READ_CLASSROOM)
    model = class_manager.get_class(class_id)
    return ClassDetail(
        id=model.id,
        title=model.name,
        teacher=model.creator.name,
        description=model.description or "",
        join_code=model.join_code,
        assignments=[
            AssignmentSummary(
                id=assignment.id,
                title=assignment.title,
                due_date=to_utc_iso(assignment.due_date),
            )
            for assignment in class_manager.list_assignments(class_id)
        ],
        users=[
            ClassMember(name=user.name, role=grant.role)
            for user, grant in class_manager.list_members(class_id)
        ],
    )


@router.get("/{class_id}/role", response_model=ClassRoleResponse, summary="Get my role")
def get_class_role(
    class_id: int,
    principal: PrincipalDep,
    authorizer: AuthorizerDep,
) -> ClassRoleResponse:
    """Report whether the caller teaches the classroom.

    Raises:
        NotMemberError: If the caller is not enrolled.
    """
    allow = authorizer.require(principal.subject, class_id, Action.READ_ROLE)
    return ClassRoleResponse(is_teacher=allow.is_teacher)
