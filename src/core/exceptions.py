"""Custom exception classes for the Sun Class API.

This module defines the application error taxonomy. Each exception carries the
HTTP status code and a machine-readable error code used when it is rendered by
the exception handlers registered in ``app.py``.
"""


class SunClassError(Exception):
    """Base exception for all Sun Class API errors."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class InvalidCredentialError(SunClassError):
    """Raised when the session credential is missing, malformed or expired."""

    status_code = 401
    code = "invalid_credential"


class NotFoundError(SunClassError):
    """Raised when a principal, classroom, assignment, submission or file is absent."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, identifier=None):
        """Initialize the exception.

        Args:
            resource: Human readable resource name, e.g. "Classroom".
            identifier: Optional identifier of the missing resource.
        """
        self.resource = resource
        self.identifier = identifier
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message)


class NotMemberError(SunClassError):
    """Raised when the principal holds no role-grant on the classroom."""

    status_code = 403
    code = "not_member"


class InsufficientRoleError(SunClassError):
    """Raised when the principal is a member but lacks the required role."""

    status_code = 403
    code = "insufficient_role"


class ConflictError(SunClassError):
    """Raised on duplicate registration or duplicate classroom join."""

    status_code = 409
    code = "conflict"


class ValidationError(SunClassError):
    """Raised when request data validation fails."""

    status_code = 400
    code = "validation_error"


class InternalFailure(SunClassError):
    """Raised when storage or blob I/O fails."""

    status_code = 500
    code = "internal_failure"


class SigningError(InternalFailure):
    """Raised when credentials cannot be signed or checked due to misconfiguration."""

    code = "signing_error"
