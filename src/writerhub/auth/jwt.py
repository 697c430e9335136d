"""
JWT token management.

Two token types are issued:

- ``access``: staff (admin or writer) sessions, carrying the user id and role.
- ``client_member``: client portal sessions, carrying the member id and email.

HS256 with a shared secret is the default. Setting an ``RS*`` algorithm
switches to the PEM key pair configured in settings.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt

from writerhub.config import get_settings

ACCESS_TOKEN = "access"
MEMBER_TOKEN = "client_member"


class TokenTypeError(jwt.InvalidTokenError):
    """A valid token presented where a different token type is required."""


_private_key: str | None = None
_public_key: str | None = None


def _signing_keys() -> tuple[str, str]:
    """Return (signing key, verification key), loading RSA keys once if configured."""
    global _private_key, _public_key  # noqa: PLW0603
    settings = get_settings()
    if not settings.jwt_algorithm.upper().startswith("RS"):
        return settings.jwt_secret, settings.jwt_secret
    if _private_key is None or _public_key is None:
        _private_key = Path(settings.jwt_private_key_path).read_text()
        _public_key = Path(settings.jwt_public_key_path).read_text()
    return _private_key, _public_key


def reset_keys() -> None:
    """Reset cached keys (useful for testing)."""
    global _private_key, _public_key  # noqa: PLW0603
    _private_key = None
    _public_key = None


def _encode(payload: dict[str, Any], lifetime: timedelta) -> str:
    signing_key, _ = _signing_keys()
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload.update({"iat": now, "exp": now + lifetime, "iss": settings.jwt_issuer})
    return jwt.encode(payload, signing_key, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: str) -> str:
    """
    Create a staff session token.

    Args:
        user_id: The user's database ID.
        role: ``admin`` or ``writer`` at issue time. Authorization always
            re-reads the role from the database; this claim is informational.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    return _encode(
        {"sub": str(user_id), "role": role, "type": ACCESS_TOKEN},
        timedelta(minutes=settings.jwt_access_token_expire_minutes),
    )


def create_member_token(member_id: int, email: str) -> str:
    """Create a client-member session token."""
    settings = get_settings()
    return _encode(
        {"sub": str(member_id), "email": email, "type": MEMBER_TOKEN},
        timedelta(days=settings.jwt_member_token_expire_days),
    )


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        TokenTypeError: If the token is valid but of another type.
        jwt.InvalidTokenError: For any other verification failure.
    """
    _, verify_key = _signing_keys()
    settings = get_settings()
    payload: dict[str, Any] = jwt.decode(
        token,
        verify_key,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
    )

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise TokenTypeError(msg)

    return payload
