"""Per-classroom authorization.

Every protected endpoint asks ``AuthorizationEvaluator.require`` whether the
verified principal may perform an action on a classroom. The decision is made
against the live ``role_grants`` rows fetched for the request, never against
anything embedded in the credential.

The policy matrix itself lives in ``evaluate``, a pure function of the action
and the facts looked up from storage, so it can be tested without a database.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from sqlalchemy.orm import Session

from core.exceptions import (
    ConflictError,
    InsufficientRoleError,
    NotFoundError,
    NotMemberError,
    SunClassError,
)
from models.class_model import ClassroomModel
from models.role_grant import ClassroomRole, RoleGrantModel
from models.user import UserModel

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    CREATE_CLASSROOM = "create_classroom"
    READ_CLASSROOM = "read_classroom"
    READ_ROLE = "read_role"
    JOIN_CLASSROOM = "join_classroom"
    CREATE_ASSIGNMENT = "create_assignment"
    READ_ASSIGNMENT = "read_assignment"
    SUBMIT = "submit"  # submit, resubmit and cancel submission
    DELETE_FILE = "delete_file"
    ADD_MATERIALS = "add_materials"
    DOWNLOAD_MATERIAL = "download_material"
    DOWNLOAD_SUBMISSION_FILE = "download_submission_file"
    MANAGE_SUBMISSIONS = "manage_submissions"  # list, read, grade, cancel grade


class Requirement(str, enum.Enum):
    AUTHENTICATED = "authenticated"
    NOT_MEMBER = "not_member"
    MEMBER = "member"
    TEACHER = "teacher"


POLICY: Dict[Action, Requirement] = {
    Action.CREATE_CLASSROOM: Requirement.AUTHENTICATED,
    # Classroom detail is readable without membership
    Action.READ_CLASSROOM: Requirement.AUTHENTICATED,
    Action.READ_ROLE: Requirement.MEMBER,
    Action.JOIN_CLASSROOM: Requirement.NOT_MEMBER,
    Action.CREATE_ASSIGNMENT: Requirement.TEACHER,
    Action.READ_ASSIGNMENT: Requirement.MEMBER,
    Action.SUBMIT: Requirement.MEMBER,
    Action.DELETE_FILE: Requirement.MEMBER,
    Action.ADD_MATERIALS: Requirement.TEACHER,
    Action.DOWNLOAD_MATERIAL: Requirement.MEMBER,
    Action.DOWNLOAD_SUBMISSION_FILE: Requirement.TEACHER,
    Action.MANAGE_SUBMISSIONS: Requirement.TEACHER,
}

# Roles that satisfy a TEACHER requirement
TEACHING_ROLES = (ClassroomRole.TEACHER.value, ClassroomRole.CREATOR.value)


class DenyReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    NOT_MEMBER = "not_member"
    INSUFFICIENT_ROLE = "insufficient_role"
    ALREADY_MEMBER = "already_member"


@dataclass(frozen=True)
class Allow:
    role: Optional[str] = None

    @property
    def is_teacher(self) -> bool:
        return self.role in TEACHING_ROLES


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    message: str
    resource: Optional[str] = None


Decision = Union[Allow, Deny]


def evaluate(
    action: Action,
    principal_exists: bool,
    classroom_exists: bool,
    role: Optional[str],
) -> Decision:
    """Apply the policy matrix to looked-up facts.

    Args:
        action: The requested action.
        principal_exists: Whether the principal row exists.
        classroom_exists: Whether the target classroom exists. Ignored for
            actions that do not target a classroom.
        role: The principal's live role on the classroom, or None.

    Returns:
        Allow or Deny.
    """
    if not principal_exists:
        return Deny(DenyReason.NOT_FOUND, "User not found", resource="User")

    requirement = POLICY[action]
    if action == Action.CREATE_CLASSROOM:
        return Allow()
    if not classroom_exists:
        return Deny(DenyReason.NOT_FOUND, "Classroom not found", resource="Classroom")

    if requirement == Requirement.AUTHENTICATED:
        return Allow(role)
    if requirement == Requirement.NOT_MEMBER:
        if role is not None:
            return Deny(
                DenyReason.ALREADY_MEMBER,
                "User is already enrolled in this classroom",
            )
        return Allow()

    if role is None:
        return Deny(DenyReason.NOT_MEMBER, "User is not enrolled in this classroom")
    if requirement == Requirement.TEACHER and role not in TEACHING_ROLES:
        return Deny(
            DenyReason.INSUFFICIENT_ROLE,
            "Only teachers of this classroom can do this",
        )
    return Allow(role)


_DENY_ERRORS = {
    DenyReason.NOT_MEMBER: NotMemberError,
    DenyReason.INSUFFICIENT_ROLE: InsufficientRoleError,
    DenyReason.ALREADY_MEMBER: ConflictError,
}


def deny_to_error(decision: Deny) -> SunClassError:
    if decision.reason == DenyReason.NOT_FOUND:
        return NotFoundError(decision.resource or "Resource")
    return _DENY_ERRORS[decision.reason](decision.message)


class AuthorizationEvaluator:
    """Looks up live grants and applies the policy matrix."""

    def __init__(self, db: Session):
        self.db = db

    def get_role(self, principal_id: int, classroom_id: int) -> Optional[str]:
        grant = (
            self.db.query(RoleGrantModel)
            .filter(
                RoleGrantModel.user_id == principal_id,
                RoleGrantModel.classroom_id == classroom_id,
            )
            .first()
        )
        return grant.role if grant else None

    def authorize(
        self,
        principal_id: int,
        classroom_id: Optional[int],
        action: Action,
    ) -> Decision:
        principal_exists = (
            self.db.query(UserModel.id).filter(UserModel.id == principal_id).first()
            is not None
        )
        classroom_exists = False
        role = None
        if classroom_id is not None:
            classroom_exists = (
                self.db.query(ClassroomModel.id)
                .filter(ClassroomModel.id == classroom_id)
                .first()
                is not None
            )
            if classroom_exists:
                role = self.get_role(principal_id, classroom_id)
        return evaluate(action, principal_exists, classroom_exists, role)

    def require(
        self,
        principal_id: int,
        classroom_id: Optional[int],
        action: Action,
    ) -> Allow:
        """Authorize or raise the matching error.

        Returns:
            The Allow decision, carrying the principal's role when known.

        Raises:
            NotFoundError, NotMemberError, InsufficientRoleError, ConflictError.
        """
        decision = self.authorize(principal_id, classroom_id, action)
        if isinstance(decision, Deny):
            logger.debug(
                "Denied %s for user %s on classroom %s: %s",
                action.value,
                principal_id,
                classroom_id,
                decision.reason.value,
            )
            raise deny_to_error(decision)
        return decision
