"""FastAPI authentication dependencies.

Every protected request re-reads the user from the database, so role and
status changes take effect immediately regardless of token age.
"""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.jwt import ACCESS_TOKEN, MEMBER_TOKEN, TokenTypeError, verify_token
from writerhub.auth.service import get_user_by_id
from writerhub.database import get_session
from writerhub.db.models import ClientMember, User

_bearer = HTTPBearer(auto_error=False)


def _require_credentials(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    return credentials.credentials


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the bearer token and return the current staff User.

    Raises 401 for missing/invalid tokens or unknown users, 403 for inactive accounts.
    """
    token = _require_credentials(credentials)
    try:
        payload = verify_token(token, expected_type=ACCESS_TOKEN)
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(status_code=401, detail="Token expired") from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail="Invalid token") from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.status != "active":
        raise HTTPException(status_code=403, detail="Account is inactive")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow admins only."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_admin_or_self(user: User, target_user_id: int) -> None:
    """Raise 403 unless the caller is an admin or the target user."""
    if not user.is_admin and user.id != target_user_id:
        raise HTTPException(status_code=403, detail="Access denied")


# ---------------------------------------------------------------------------
# Client members
# ---------------------------------------------------------------------------


async def _member_from_token(db: AsyncSession, token: str) -> ClientMember:
    try:
        payload = verify_token(token, expected_type=MEMBER_TOKEN)
    except TokenTypeError as e:
        raise HTTPException(status_code=403, detail="Invalid token type") from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e
    member = await db.get(ClientMember, int(payload["sub"]))
    if member is None:
        raise HTTPException(status_code=401, detail="Member not found")
    if member.status != "active":
        raise HTTPException(status_code=403, detail="Account is not active")
    return member


async def get_current_member(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> ClientMember:
    """Verify a client-member token and return the member."""
    token = _require_credentials(credentials)
    return await _member_from_token(db, token)


async def get_optional_member(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> ClientMember | None:
    """Like get_current_member, but guests and bad tokens yield None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return await _member_from_token(db, credentials.credentials)
    except HTTPException:
        return None
