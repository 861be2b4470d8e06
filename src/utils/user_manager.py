"""User management utilities.

This module provides principal storage, password hashing and credential
checks for registration and login.
"""

import logging
from typing import Optional

import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.user import UserModel

logger = logging.getLogger(__name__)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        logger.warning("Password exceeds %d bytes, truncating", BCRYPT_MAX_BYTES)
        password_bytes = password_bytes[:BCRYPT_MAX_BYTES]
    return password_bytes


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password.

    Returns:
        Hashed password (bcrypt hash string).
    """
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash.

    Args:
        plain_password: Plain text password to verify.
        hashed_password: Bcrypt hash string to verify against.

    Returns:
        True if password matches, False otherwise.
    """
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError as e:
        logger.error("Password verification error: %s", e)
        return False


class UserManager:
    """Manages principal persistence and authentication using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def create_user(self, name: str, email: str, password: str) -> UserModel:
        """Create a new principal.

        Args:
            name: Display name.
            email: Email address, unique across all principals.
            password: Plain text password.

        Returns:
            Created UserModel.

        Raises:
            ConflictError: If the email is already registered.
            ValidationError: If name or email is empty.
        """
        name = name.strip()
        email = email.strip()
        if not name or not email:
            raise ValidationError("Name and email are required")

        existing = self.db.query(UserModel).filter(UserModel.email == email).first()
        if existing:
            raise ConflictError(f"Email '{email}' is already registered")

        model = UserModel(
            name=name,
            email=email,
            password_hash=hash_password(password),
        )

        # Two concurrent registrations can both pass the check above;
        # the unique constraint on email decides the winner
        try:
            self.db.add(model)
            self.db.commit()
            self.db.refresh(model)
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"Email '{email}' is already registered") from e

        logger.info("Registered user %s (id=%s)", email, model.id)
        return model

    def authenticate(self, email: str, password: str) -> Optional[UserModel]:
        """Check an email/password pair.

        Returns:
            The matching UserModel, or None when the email is unknown or the
            password does not match.
        """
        model = self.get_user_by_email(email.strip())
        if model is None or not verify_password(password, model.password_hash):
            return None
        return model

    def get_user_by_email(self, email: str) -> Optional[UserModel]:
        return self.db.query(UserModel).filter(UserModel.email == email).first()

    def get_user_by_id(self, user_id: int) -> UserModel:
        """Get a principal by id.

        Raises:
            NotFoundError: If no such principal exists.
        """
        model = self.db.query(UserModel).filter(UserModel.id == user_id).first()
        if model is None:
            raise NotFoundError("User", user_id)
        return model

    def update_name(self, user_id: int, name: str) -> UserModel:
        """Change a principal's display name.

        Raises:
            NotFoundError: If no such principal exists.
            ValidationError: If the new name is empty.
        """
        name = name.strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        model = self.get_user_by_id(user_id)
        model.name = name
        self.db.commit()
        self.db.refresh(model)
        logger.info("Updated display name for user %s", user_id)
        return model
