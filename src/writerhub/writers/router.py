"""Writer management router: /api/writers/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.auth.dependencies import ensure_admin_or_self, get_current_user, require_admin
from writerhub.config import get_settings
from writerhub.database import get_session
from writerhub.db.models import User
from writerhub.email.service import EmailService, get_email_service
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from writerhub.writers.schemas import (
    PasswordResetResponse,
    WriterCreate,
    WriterCreatedResponse,
    WriterResponse,
    WriterStatsResponse,
    WriterUpdate,
)
from writerhub.writers.service import (
    WriterStats,
    create_writer,
    delete_writer,
    get_writer_with_stats,
    list_writers_with_stats,
    reset_writer_password,
    update_writer,
)

router = APIRouter(prefix="/api/writers", tags=["Writers"])


def _stats_response(stats: WriterStats) -> WriterStatsResponse:
    base = WriterResponse.model_validate(stats.writer).model_dump()
    return WriterStatsResponse(
        **base,
        assignment_count=stats.assignment_count,
        total_earned=float(stats.total_earned),
        total_paid=float(stats.total_paid),
        total_owed=float(stats.total_owed),
    )


@router.get("", response_model=list[WriterStatsResponse])
async def list_writers(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[WriterStatsResponse]:
    """All writers with assignment counts and balance owed."""
    return [_stats_response(s) for s in await list_writers_with_stats(db)]


@router.get("/{writer_id}", response_model=WriterStatsResponse)
async def get_writer(
    writer_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WriterStatsResponse:
    ensure_admin_or_self(user, writer_id)
    try:
        stats = await get_writer_with_stats(db, writer_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _stats_response(stats)


@router.post("", response_model=WriterCreatedResponse, status_code=201)
async def create(
    body: WriterCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    email: EmailService = Depends(get_email_service),
) -> WriterCreatedResponse:
    """Create a writer. The temporary password is returned once."""
    try:
        writer, temp_password = await create_writer(db, body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()

    await email.send_template(
        writer.email,
        "welcome_writer",
        writer_name=writer.name,
        email=writer.email,
        temp_password=temp_password,
        app_url=get_settings().base_url,
    )
    return WriterCreatedResponse(
        **WriterResponse.model_validate(writer).model_dump(),
        generated_password=temp_password,
        message="Writer created. Share the login credentials below with them.",
    )


@router.put("/{writer_id}", response_model=WriterResponse)
async def update(
    writer_id: int,
    body: WriterUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> WriterResponse:
    try:
        writer = await update_writer(db, writer_id, body)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return WriterResponse.model_validate(writer)


@router.delete("/{writer_id}")
async def delete(
    writer_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Delete a writer; their assignments are unassigned, not deleted."""
    try:
        await delete_writer(db, writer_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return {"message": "Writer deleted successfully"}


@router.post("/{writer_id}/reset-password", response_model=PasswordResetResponse)
async def reset_password(
    writer_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> PasswordResetResponse:
    try:
        writer, temp_password = await reset_writer_password(db, writer_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()

    await dispatcher.notify_user(
        db,
        writer.id,
        "Password Reset",
        "Your password has been reset by admin. Please change it after logging in.",
        "info",
    )
    await db.commit()
    return PasswordResetResponse(
        message="Password reset successfully.",
        new_password=temp_password,
        email=writer.email,
        name=writer.name,
    )
