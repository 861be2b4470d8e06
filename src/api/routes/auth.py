"""Authentication routes.

This module handles HTTP endpoints for registration, login and logout. A
successful register or login issues a fresh credential and overwrites the
auth cookie.
"""

import logging

from fastapi import APIRouter, Response

from core.dependencies import CredentialStoreDep, SettingsDep, UserManagerDep
from core.exceptions import InvalidCredentialError
from core.security import clear_auth_cookie, set_auth_cookie
from schemas.assignment import MessageResponse
from schemas.user import AuthResponse, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=AuthResponse, summary="Register")
def register(
    req: RegisterRequest,
    response: Response,
    user_manager: UserManagerDep,
    credential_store: CredentialStoreDep,
    settings: SettingsDep,
) -> AuthResponse:
    """Register a new user and start a session.

    Args:
        req: Registration request with name, email and password.
        response: Outgoing response, used to set the auth cookie.
        user_manager: Injected UserManager instance.
        credential_store: Injected CredentialStore.
        settings: Application settings.

    Returns:
        AuthResponse with the new user's id and email.

    Raises:
        ConflictError: If the email is already registered.
    """
    user = user_manager.create_user(req.name, req.email, req.password)
    set_auth_cookie(response, credential_store.issue(user.id), settings)
    return AuthResponse(user_id=user.id, email=user.email)


@router.post("/login", response_model=AuthResponse, summary="Login")
def login(
    req: LoginRequest,
    response: Response,
    user_manager: UserManagerDep,
    credential_store: CredentialStoreDep,
    settings: SettingsDep,
) -> AuthResponse:
    """Login with email and password.

    Raises:
        InvalidCredentialError: If the email is unknown or the password is wrong.
    """
    user = user_manager.authenticate(req.email, req.password)
    if user is None:
        logger.info("Failed login attempt for %s", req.email)
        raise InvalidCredentialError("Invalid email or password")
    set_auth_cookie(response, credential_store.issue(user.id), settings)
    logger.info("User %s logged in", user.id)
    return AuthResponse(user_id=user.id, email=user.email)


@router.post("/logout", response_model=MessageResponse, summary="Logout")
def logout(response: Response, settings: SettingsDep) -> MessageResponse:
    # Tokens stay valid until expiry; logout only drops the client's cookie
    clear_auth_cookie(response, settings)
    return MessageResponse(message="Logged out")
