"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes. The
settings, credential store and blob store are built once by ``create_app``
and read from ``app.state``; managers get a request-scoped DB session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import Settings
from core.authorization import AuthorizationEvaluator
from core.database import get_db
from core.security import Claims, CredentialStore
from utils import assignment_manager
from utils import class_manager
from utils import submission_manager
from utils import user_manager
from utils.blob_store import BlobStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


DbDep = Annotated[Session, Depends(get_db)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]


def get_current_principal(
    request: Request,
    settings: SettingsDep,
    credential_store: CredentialStoreDep,
) -> Claims:
    """Verify the session credential carried by the auth cookie.

    The cookie is looked up under ``settings.auth_cookie_name``, the same name
    the login and logout routes write; a missing cookie is reported by the
    credential store.

    Args:
        request: Incoming request.
        settings: Injected Settings.
        credential_store: Injected CredentialStore.

    Returns:
        Verified Claims.

    Raises:
        InvalidCredentialError: If the cookie is missing or the token is invalid.
    """
    return credential_store.verify(request.cookies.get(settings.auth_cookie_name))


def get_user_manager(db: DbDep) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_class_manager(db: DbDep) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db)


def get_assignment_manager(db: DbDep) -> assignment_manager.AssignmentManager:
    return assignment_manager.AssignmentManager(db)


def get_submission_manager(
    db: DbDep, blob_store: BlobStoreDep
) -> submission_manager.SubmissionManager:
    """Get SubmissionManager bound to the request session and the shared blob store."""
    return submission_manager.SubmissionManager(db, blob_store)


def get_authorizer(db: DbDep) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(db)


# Type aliases for dependency injection
PrincipalDep = Annotated[Claims, Depends(get_current_principal)]
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
AssignmentManagerDep = Annotated[
    assignment_manager.AssignmentManager, Depends(get_assignment_manager)
]
SubmissionManagerDep = Annotated[
    submission_manager.SubmissionManager, Depends(get_submission_manager)
]
AuthorizerDep = Annotated[AuthorizationEvaluator, Depends(get_authorizer)]
