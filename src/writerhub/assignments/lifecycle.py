"""Assignment lifecycle: status state machine, guard predicates and the claim primitive.

Main path: pending -> in_progress -> completed -> paid.
Side branches: revision (rework requested) and cancelled.

Admins move assignments along ``VALID_TRANSITIONS``. Writers may only use
the narrower ``WRITER_TRANSITIONS``. Moving a job off the board (pending
with no writer) into in_progress happens only through :func:`claim`, the
single compare-and-swap on ``writer_id``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import Assignment


class AssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAID = "paid"
    REVISION = "revision"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["in_progress", "cancelled"],
    "in_progress": ["completed", "revision", "cancelled", "pending"],
    "completed": ["paid", "revision", "in_progress"],
    "revision": ["in_progress", "completed", "cancelled"],
    "paid": ["revision"],
    "cancelled": ["pending"],
}

WRITER_TRANSITIONS: dict[str, list[str]] = {
    "in_progress": ["completed"],
    "revision": ["in_progress", "completed"],
}

# Statuses whose amount counts as earned by the writer
EARNED_STATUSES: tuple[str, ...] = ("completed", "paid")
# Statuses an overdue writer can be removed from
REOPENABLE_STATUSES: tuple[str, ...] = ("pending", "in_progress")

DEFAULT_DEADLINE_BUFFER = timedelta(minutes=30)


class AssignmentNotFoundError(LookupError):
    """No assignment with the requested id."""


class PickConflictError(ValueError):
    """The job was no longer available when the claim executed."""


def validate_transition(current_status: str, target_status: str, *, writer: bool = False) -> None:
    """Validate a status change. Raises ValueError if invalid.

    Re-submitting the current status is accepted as a no-op.
    """
    if current_status == target_status:
        return
    if target_status not in VALID_TRANSITIONS:
        raise ValueError(f"Unknown status: {target_status}")
    table = WRITER_TRANSITIONS if writer else VALID_TRANSITIONS
    valid = table.get(current_status, [])
    if target_status not in valid:
        raise ValueError(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


# ---------------------------------------------------------------------------
# Guard predicates
# ---------------------------------------------------------------------------


def is_on_job_board(assignment: Assignment) -> bool:
    return assignment.writer_id is None and assignment.status == AssignmentStatus.PENDING.value


def is_ineligible(assignment: Assignment, writer_id: int) -> bool:
    return writer_id in (assignment.ineligible_writers or [])


def matches_domains(assignment: Assignment, writer_domains: list[str]) -> bool:
    """Unscoped jobs match everyone; scoped jobs match a declared domain (case-insensitive)."""
    if not assignment.domain or not assignment.domain.strip():
        return True
    wanted = assignment.domain.strip().lower()
    return any(d.lower() == wanted for d in writer_domains)


def latest_writer_deadline(client_deadline: datetime, buffer: timedelta = DEFAULT_DEADLINE_BUFFER) -> datetime:
    return client_deadline - buffer


def respects_buffer(
    writer_deadline: datetime,
    client_deadline: datetime,
    buffer: timedelta = DEFAULT_DEADLINE_BUFFER,
) -> bool:
    """True when the writer deadline is at least ``buffer`` before the client deadline."""
    return writer_deadline <= latest_writer_deadline(client_deadline, buffer)


def is_overdue(assignment: Assignment, now: datetime) -> bool:
    """Writer missed their deadline while the client deadline is still ahead."""
    return (
        assignment.writer_id is not None
        and assignment.writer_deadline is not None
        and assignment.writer_deadline < now
        and assignment.status in REOPENABLE_STATUSES
        and assignment.deadline > now
    )


def compute_amount(word_count: int | None, rate: Decimal | None) -> Decimal:
    """Payout for a job: word count times per-word rate, rounded to cents."""
    total = Decimal(word_count or 0) * Decimal(rate or 0)
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Transitions that touch several fields
# ---------------------------------------------------------------------------


def reopen(assignment: Assignment) -> int | None:
    """Return an assignment to the job board and bar its writer from it.

    Returns the displaced writer id.
    """
    writer_id = assignment.writer_id
    if writer_id is not None and writer_id not in (assignment.ineligible_writers or []):
        # Reassign (not append) so the JSON column is flagged dirty
        assignment.ineligible_writers = [*(assignment.ineligible_writers or []), writer_id]
    assignment.writer_id = None
    assignment.picked_at = None
    assignment.writer_deadline = None
    assignment.status = AssignmentStatus.PENDING.value
    assignment.extension_requested = False
    assignment.extension_reason = None
    return writer_id


@dataclass(frozen=True)
class Claimed:
    assignment: Assignment


@dataclass(frozen=True)
class Conflict:
    reason: str


ClaimResult = Claimed | Conflict


async def claim(
    db: AsyncSession,
    assignment_id: int,
    writer_id: int,
    writer_deadline: datetime,
    rate: Decimal,
    amount: Decimal,
) -> ClaimResult:
    """Atomically assign a job-board assignment to a writer.

    The UPDATE only matches while the row is still unassigned and pending, so
    of two concurrent claims exactly one sees a matched row.
    """
    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Assignment)
        .where(
            Assignment.id == assignment_id,
            Assignment.writer_id.is_(None),
            Assignment.status == AssignmentStatus.PENDING.value,
        )
        .values(
            writer_id=writer_id,
            picked_at=now,
            writer_deadline=writer_deadline,
            status=AssignmentStatus.IN_PROGRESS.value,
            rate=rate,
            amount=amount,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return Conflict("Job was picked by another writer")

    assignment = await db.get(Assignment, assignment_id, populate_existing=True)
    if assignment is None:
        return Conflict("Job was picked by another writer")
    return Claimed(assignment)
