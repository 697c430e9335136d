"""Authentication router: /api/auth/* endpoints for staff accounts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import get_current_user
from writerhub.auth.jwt import create_access_token
from writerhub.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    NotificationResponse,
    PresenceRequest,
    UserResponse,
)
from writerhub.auth.service import authenticate_user, change_password, touch_presence
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.notifications.service import (
    get_notifications,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> LoginResponse:
    """Email + password login. Returns a bearer token."""
    try:
        user = await authenticate_user(db, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LookupError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e
    await db.commit()

    return LoginResponse(
        token=create_access_token(user.id, user.role),
        user=UserResponse.from_user(user),
        must_change_password=user.must_change_password,
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(user)


@router.put("/password")
async def update_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change own password. Clears the forced-change flag."""
    try:
        await change_password(db, user, body.current_password, body.new_password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    await db.commit()
    return {"message": "Password updated successfully"}


@router.post("/presence")
async def presence(
    body: PresenceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    """Heartbeat from the frontend; ``online=false`` on tab close."""
    await touch_presence(db, user, body.online)
    await db.commit()
    return {"success": True}


# ---------------------------------------------------------------------------
# Notifications inbox
# ---------------------------------------------------------------------------


@router.get("/notifications")
async def list_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Latest 20 notifications plus the unread count."""
    notifications = await get_notifications(db, user.id, limit=20)
    unread = await get_unread_count(db, user.id)
    return {
        "notifications": [NotificationResponse.model_validate(n) for n in notifications],
        "unread_count": unread,
    }


@router.put("/notifications/read-all")
async def read_all_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, int]:
    updated = await mark_all_as_read(db, user.id)
    await db.commit()
    return {"updated": updated}


@router.put("/notifications/{notification_id}/read")
async def read_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    found = await mark_as_read(db, user.id, notification_id)
    if not found:
        raise HTTPException(status_code=404, detail="Notification not found")
    await db.commit()
    return {"success": True}
