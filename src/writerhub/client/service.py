"""Public client intake: assignments submitted through the client portal."""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import Assignment, AssignmentFile
from writerhub.files.storage import StoredFile
from writerhub.notifications.dispatcher import NotificationDispatcher
from writerhub.referrals.service import track_referral

logger = structlog.get_logger()

CLIENT_SOURCE = "client_portal"


@dataclass
class ClientSubmission:
    title: str | None
    domain: str | None
    description: str | None
    deadline: str | None
    client_name: str | None
    client_email: str | None
    client_phone: str | None = None
    links: str | None = None
    word_count_min: int | None = None
    word_count_max: int | None = None
    referral_code: str | None = None

    def validate(self) -> datetime:
        """Check required fields and return the parsed UTC deadline."""
        required = (self.title, self.domain, self.description, self.deadline, self.client_name, self.client_email)
        if not all(v and str(v).strip() for v in required):
            raise ValueError("Missing required fields")
        try:
            deadline = datetime.fromisoformat(self.deadline.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError("Invalid deadline") from e
        return deadline if deadline.tzinfo else deadline.replace(tzinfo=timezone.utc)

    def full_description(self) -> str:
        """The brief followed by reference links and the client's contact block."""
        text = self.description.strip()
        if self.links and self.links.strip():
            text += f"\n\n--- REFERENCE LINKS ---\n{self.links.strip()}"
        text += f"\n\n--- CLIENT INFO ---\nName: {self.client_name}\nEmail: {self.client_email}"
        if self.client_phone:
            text += f"\nPhone: {self.client_phone}"
        return text


async def submit_client_assignment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    submission: ClientSubmission,
    attachments: list[StoredFile],
) -> Assignment:
    """Create a pending assignment from the portal and alert admins.

    Raises:
        ValueError: Missing fields or an unparseable deadline.
    """
    deadline = submission.validate()
    word_min = submission.word_count_min or 0
    word_max = submission.word_count_max or word_min
    assignment = Assignment(
        title=submission.title.strip(),
        description=submission.full_description(),
        domain=submission.domain.strip(),
        word_count=word_max,
        word_count_min=word_min,
        word_count_max=word_max,
        deadline=deadline,
        status="pending",
        client_source=CLIENT_SOURCE,
        referral_code=submission.referral_code.upper().strip() if submission.referral_code else None,
    )
    db.add(assignment)
    await db.flush()

    for stored in attachments:
        db.add(
            AssignmentFile(
                assignment_id=assignment.id,
                uploaded_by=None,
                filename=stored.filename,
                original_name=stored.original_name,
                file_type=stored.content_type,
                file_size=stored.size,
                file_path=stored.path,
                upload_type="instructions",
            )
        )

    if assignment.referral_code:
        tracked = await track_referral(
            db, assignment.referral_code, submission.client_email, submission.client_name, assignment.id
        )
        if not tracked.tracked:
            logger.info("client_referral_not_tracked", code=assignment.referral_code, reason=tracked.reason)
    await db.commit()
    logger.info("client_assignment_submitted", assignment_id=assignment.id, files=len(attachments))

    await dispatcher.notify_admins(
        db,
        "New Client Assignment",
        f"{assignment.title} from {submission.client_name}",
        "client_assignment",
        "/assignments",
        telegram_html=(
            f"📋 <b>New Client Assignment!</b>\n\nTitle: {html.escape(assignment.title)}\n"
            f"Domain: {html.escape(assignment.domain)}\nClient: {html.escape(submission.client_name)}\n"
            f"Email: {html.escape(submission.client_email)}\n\nID: #{assignment.id}"
        ),
    )
    await db.commit()
    return assignment
