"""
Identity tokens.

The assessment core never checks credentials. An upstream auth layer issues
signed JWTs; this module verifies the signature and expiry and turns the
claims into an ``Identity``:

    sub   candidate or admin email (the identity key)
    name  display name used on result records
    role  "candidate" or "admin"
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from core.config import settings
from core.utils.validators import validate_email
from database.models.users import UserRole

logger = logging.getLogger(__name__)


class TokenInvalidError(Exception):
    """Raised when a token is malformed, tampered with, or has bad claims."""


class TokenExpiredError(TokenInvalidError):
    """Raised when a token has expired."""


@dataclass(frozen=True)
class Identity:
    """A verified subject handed to the core."""

    email: str
    name: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(
    email: str,
    name: str = "Candidate",
    role: UserRole | str = UserRole.CANDIDATE,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign an identity token.

    Used by the auth layer and by tests; the assessment API never issues
    tokens itself.
    """
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": email,
        "name": name,
        "role": UserRole(role).value,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(
        payload,
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_jwt_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> dict[str, Any]:
    """
    Verify a token and return its payload.

    Raises:
        TokenExpiredError: If the token has expired
        TokenInvalidError: If the token cannot be verified
    """
    try:
        return jwt.decode(
            token,
            secret_key or settings.jwt_secret_key,
            algorithms=[algorithm or settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenInvalidError(f"Invalid token: {e}") from e


def identity_from_payload(payload: dict[str, Any]) -> Identity:
    """Build an Identity from verified claims."""
    is_valid, normalized = validate_email(str(payload.get("sub", "")))
    if not is_valid:
        raise TokenInvalidError("Token subject is not an email address")

    try:
        role = UserRole(payload.get("role", UserRole.CANDIDATE.value))
    except ValueError as e:
        raise TokenInvalidError("Unknown role claim") from e

    name = str(payload.get("name") or "Candidate").strip() or "Candidate"
    return Identity(email=normalized.lower(), name=name, role=role)
