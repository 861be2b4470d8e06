"""Credential store: issuing and verifying session tokens.

The session credential is a signed JWT carrying the principal id (``sub``),
the issuance time (``iat``) and the expiry (``exp``, issuance + 7 days). It is
never persisted server-side and cannot be revoked before it expires; logout
only clears the cookie on the client.

Role-grants are not embedded in the token. Authorization reads live grants
from the database (see ``core.authorization``).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import pytz
from fastapi import Response
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from config import Settings
from core.exceptions import InvalidCredentialError, SigningError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Claims:
    """Verified contents of a session credential."""

    subject: int
    issued_at: datetime
    expires_at: datetime


class CredentialStore:
    """Issues and verifies HMAC-signed session credentials."""

    def __init__(
        self,
        secret: Optional[str],
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=7),
    ):
        """Initialize CredentialStore.

        Args:
            secret: Signing secret. None means the store is misconfigured.
            algorithm: JWT signing algorithm.
            ttl: Lifetime of every issued credential.
        """
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialStore":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(days=settings.token_ttl_days),
        )

    def _require_secret(self) -> str:
        if not self._secret:
            logger.error("JWT_SECRET is not configured; cannot sign or verify credentials")
            raise SigningError("Credential signing secret is not configured")
        return self._secret

    def issue(self, principal_id: int, now: Optional[datetime] = None) -> str:
        """Create a signed credential for a principal.

        Args:
            principal_id: The authenticated user's id.
            now: Issuance time; defaults to the current UTC time.

        Returns:
            Encoded JWT string.

        Raises:
            SigningError: If the signing secret is missing.
        """
        secret = self._require_secret()
        issued_at = now or datetime.now(pytz.utc)
        expires_at = issued_at + self.ttl
        payload = {
            # JWT requires "sub" to be a string
            "sub": str(principal_id),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Claims:
        """Validate a credential's signature and expiry.

        Args:
            token: Encoded JWT string, usually read from the auth cookie.

        Returns:
            The verified Claims.

        Raises:
            InvalidCredentialError: If the token is missing, malformed, has a bad
                signature, or is past its expiry.
            SigningError: If the signing secret is missing.
        """
        secret = self._require_secret()
        if not token:
            raise InvalidCredentialError("Authentication required")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except ExpiredSignatureError:
            logger.info("Rejected expired credential")
            raise InvalidCredentialError("Credential expired")
        except JWTError as e:
            logger.info("Rejected invalid credential: %s", e)
            raise InvalidCredentialError("Invalid token")

        try:
            subject = int(payload["sub"])
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=pytz.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=pytz.utc)
        except (KeyError, TypeError, ValueError):
            raise InvalidCredentialError("Invalid token")

        return Claims(subject=subject, issued_at=issued_at, expires_at=expires_at)


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    """Attach the credential cookie, overwriting any existing one."""
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=int(timedelta(days=settings.token_ttl_days).total_seconds()),
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="strict",
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="strict",
    )
