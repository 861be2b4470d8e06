"""ORM models; importing this package registers every table on ``Base.metadata``."""

from .base import Base
from .user import UserModel
from .class_model import ClassroomModel
from .role_grant import ClassroomRole, RoleGrantModel
from .assignment import AssignmentModel
from .assignment_file import AssignmentFileModel, AssignmentFileType
from .submission import SubmissionModel

__all__ = [
    "Base",
    "UserModel",
    "ClassroomModel",
    "ClassroomRole",
    "RoleGrantModel",
    "AssignmentModel",
    "AssignmentFileModel",
    "AssignmentFileType",
    "SubmissionModel",
]
