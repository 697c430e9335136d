"""
Authentication business logic for staff accounts (admins and writers).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from writerhub.auth.password import (
    hash_password,
    validate_password_strength,
    verify_password,
)
from writerhub.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def list_admins(db: AsyncSession) -> list[User]:
    """Active admins, oldest first."""
    result = await db.execute(
        select(User).where(User.role == "admin", User.status == "active").order_by(User.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Login and password change
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str | None, password: str | None) -> User:
    """
    Authenticate a staff user with email + password.

    Raises:
        ValueError: If fields are missing.
        LookupError: If the credentials do not match.
        PermissionError: If the account is inactive.
    """
    if not email or not password:
        msg = "Email and password required"
        raise ValueError(msg)

    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed", email=email.lower())
        msg = "Invalid credentials"
        raise LookupError(msg)

    if user.status != "active":
        msg = "Account is inactive"
        raise PermissionError(msg)

    user.is_online = True
    user.last_seen = datetime.now(timezone.utc)
    await db.flush()
    logger.info("login_succeeded", user_id=user.id, role=user.role)
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str | None,
    new_password: str | None,
) -> None:
    """
    Change a user's password and clear the forced-change flag.

    Raises:
        ValueError: If fields are missing or the new password is too short.
        PermissionError: If the current password is wrong.
    """
    if not current_password or not new_password:
        msg = "Current and new password required"
        raise ValueError(msg)
    validate_password_strength(new_password)
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise PermissionError(msg)

    user.password_hash = hash_password(new_password)
    user.must_change_password = False
    user.password_changed_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


async def touch_presence(db: AsyncSession, user: User, online: bool = True) -> None:
    """Record a presence ping."""
    user.is_online = online
    user.last_seen = datetime.now(timezone.utc)
    await db.flush()
