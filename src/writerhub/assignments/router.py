"""Assignment router: /api/assignments/* endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.assignments import service
from writerhub.assignments.schemas import (
    WRITER_FIELDS,
    AdminUpdate,
    AssignmentCreate,
    AssignmentResponse,
    ExtensionCreate,
    ExtensionRespond,
    ExtensionResponse,
    OverdueSweepResponse,
    OverrideDeadline,
    PickRequest,
    WriterUpdate,
)
from writerhub.auth.dependencies import get_current_user, require_admin
from writerhub.database import get_session
from writerhub.db.models import Assignment, User
from writerhub.notifications.dispatcher import NotificationDispatcher, get_dispatcher

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _response(assignment: Assignment, **extra: Any) -> AssignmentResponse:  # noqa: ANN401
    return AssignmentResponse.model_validate(assignment).model_copy(update=extra)


def _with_writer(assignment: Assignment, writer: User | None, *, last_seen: bool = False) -> AssignmentResponse:
    if writer is None:
        return _response(assignment)
    extra: dict[str, Any] = {
        "writer_name": writer.name,
        "writer_email": writer.email,
        "writer_online": writer.is_online,
    }
    if last_seen:
        extra["writer_last_seen"] = writer.last_seen
    return _response(assignment, **extra)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


@router.get("", response_model=list[AssignmentResponse])
async def list_assignments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[AssignmentResponse]:
    """All assignments for admins; own assignments for writers."""
    rows = await service.list_assignments(db, user)
    return [_with_writer(a, w) for a, w in rows]


@router.get("/job-board", response_model=list[AssignmentResponse])
async def job_board(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[AssignmentResponse]:
    """Open jobs the writer can pick."""
    if user.role != "writer":
        raise HTTPException(status_code=403, detail="Only writers can access job board")
    rows = await service.list_job_board(db, user)
    return [_response(a, has_instructions=count) for a, count in rows]


@router.get("/extensions/pending", response_model=list[ExtensionResponse])
async def pending_extensions(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[ExtensionResponse]:
    rows = await service.list_pending_extensions(db)
    return [
        ExtensionResponse.model_validate(ext).model_copy(update={"assignment_title": title, "writer_name": name})
        for ext, title, name in rows
    ]


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


@router.post("/check-overdue", response_model=OverdueSweepResponse)
async def check_overdue(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OverdueSweepResponse:
    """Reopen jobs whose writer missed the delivery deadline."""
    reopened = await service.check_overdue(db, dispatcher)
    return OverdueSweepResponse(reopened_count=len(reopened), reopened_ids=reopened)


@router.post("/extension/{extension_id}/respond")
async def respond_extension(
    extension_id: int,
    body: ExtensionRespond,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> dict[str, str]:
    try:
        extension = await service.respond_to_extension(
            db, dispatcher, extension_id, body.status, body.admin_response
        )
    except (LookupError, ValueError) as e:
        raise _http_error(e) from e
    return {"message": f"Extension {extension.status}"}


@router.post("/{assignment_id}/pick", response_model=AssignmentResponse)
async def pick_assignment(
    assignment_id: int,
    body: PickRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentResponse:
    """Claim a job from the board with a delivery deadline."""
    if user.role != "writer":
        raise HTTPException(status_code=403, detail="Only writers can pick jobs")
    try:
        assignment = await service.pick_assignment(db, dispatcher, user, assignment_id, body.writer_deadline)
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e
    return _response(assignment)


@router.post("/{assignment_id}/extension", response_model=ExtensionResponse)
async def request_extension(
    assignment_id: int,
    body: ExtensionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ExtensionResponse:
    if user.role != "writer":
        raise HTTPException(status_code=403, detail="Only writers can request extensions")
    try:
        extension = await service.request_extension(
            db, dispatcher, user, assignment_id, body.requested_deadline, body.reason
        )
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e
    return ExtensionResponse.model_validate(extension)


@router.post("/{assignment_id}/override-deadline", response_model=AssignmentResponse)
async def override_deadline(
    assignment_id: int,
    body: OverrideDeadline,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentResponse:
    try:
        assignment = await service.override_deadline(db, dispatcher, assignment_id, body.new_deadline)
    except (LookupError, ValueError) as e:
        raise _http_error(e) from e
    return _response(assignment)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AssignmentResponse:
    try:
        assignment, writer = await service.get_assignment_for_user(db, user, assignment_id)
    except (LookupError, PermissionError) as e:
        raise _http_error(e) from e
    return _with_writer(assignment, writer, last_seen=True)


@router.post("", response_model=AssignmentResponse, status_code=201)
async def create_assignment(
    body: AssignmentCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentResponse:
    """Post a new job to the board."""
    try:
        assignment = await service.create_assignment(db, dispatcher, body)
    except ValueError as e:
        raise _http_error(e) from e
    return _response(assignment)


@router.put("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: int,
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> AssignmentResponse:
    """
    Update an assignment.

    Writers may only send ``status`` and ``submitted_amount``; any other
    field is refused before anything is read or written.
    """
    try:
        if user.is_admin:
            admin_body = AdminUpdate.model_validate(payload)
            assignment = await service.admin_update(db, dispatcher, assignment_id, admin_body)
        else:
            if any(value is not None and key not in WRITER_FIELDS for key, value in payload.items()):
                raise HTTPException(
                    status_code=403, detail="Writers can only update status and submit proposed amount"
                )
            writer_body = WriterUpdate.model_validate({k: v for k, v in payload.items() if k in WRITER_FIELDS})
            assignment = await service.writer_update(db, dispatcher, user, assignment_id, writer_body)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e
    except (LookupError, PermissionError, ValueError) as e:
        raise _http_error(e) from e
    return _response(assignment)


@router.delete("/{assignment_id}")
async def delete_assignment(
    assignment_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    try:
        await service.delete_assignment(db, assignment_id)
    except LookupError as e:
        raise _http_error(e) from e
    return {"message": "Assignment deleted successfully"}
