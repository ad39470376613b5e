"""Caller identity tokens.

Token issuance belongs to the auth service; this module only needs to
decode the bearer token it hands out. ``create_access_token`` exists for
tooling and tests that need a token signed with the shared secret.
"""
from __future__ import annotations

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from goal_chat.core.settings import settings

__all__ = ["InvalidTokenError", "create_access_token", "decode_caller_id"]


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be trusted."""


def create_access_token(subject: str, expires_minutes: int = 60) -> str:
    """Return a signed JWT whose subject is the caller's user id."""
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    payload: dict[str, object] = {"sub": subject, "exp": expire}
    encoded: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return encoded


def decode_caller_id(token: str) -> str:
    """Decode a bearer token and return the user id it asserts.

    Raises:
        InvalidTokenError: If the signature, expiry or subject is invalid.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as err:
        raise InvalidTokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("Could not validate credentials")
    return subject
