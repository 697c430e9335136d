"""Integration tests: notification fan-out."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from writerhub.db.models import Notification, User
from writerhub.notifications.dispatcher import NotificationChannel, NotificationDispatcher, OutboundMessage


class BrokenChannel(NotificationChannel):
    name = "broken"

    def __init__(self) -> None:
        self.attempts = 0

    async def deliver(self, db: AsyncSession, user: User, message: OutboundMessage) -> None:
        self.attempts += 1
        raise RuntimeError("channel down")


async def _titles_for(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(select(Notification.title).where(Notification.user_id == user_id))
    return list(result.scalars().all())


class TestDispatcher:
    async def test_channel_failure_is_contained(self, db_session, writer, channel):
        broken = BrokenChannel()
        dispatcher = NotificationDispatcher(channels=[broken, channel])

        sent = await dispatcher.notify_user(db_session, writer.id, "Deadline Updated", "New deadline", "warning")
        await db_session.commit()

        assert sent == 1
        assert broken.attempts == 1
        assert channel.titles() == ["Deadline Updated"]
        assert await _titles_for(db_session, writer.id) == ["Deadline Updated"]

    async def test_unknown_user_is_skipped(self, db_session, channel):
        dispatcher = NotificationDispatcher(channels=[channel])
        assert await dispatcher.notify_user(db_session, 9999, "Hello", "body") == 0
        assert channel.deliveries == []

    async def test_admins_only(self, db_session, admin, writer, channel):
        dispatcher = NotificationDispatcher(channels=[channel])
        await dispatcher.notify_admins(db_session, "Work Submitted", "done", "success")
        await db_session.commit()
        assert channel.recipients("Work Submitted") == {admin.id}

    async def test_writers_filtered_by_domain(self, db_session, writer, other_writer, channel):
        dispatcher = NotificationDispatcher(channels=[channel])
        await dispatcher.notify_writers(db_session, "nursing", "New Job Available", "New job")
        await db_session.commit()
        assert channel.recipients("New Job Available") == {writer.id}

    async def test_unscoped_job_reaches_every_writer(self, db_session, writer, other_writer, channel):
        dispatcher = NotificationDispatcher(channels=[channel])
        await dispatcher.notify_writers(db_session, "", "New Job Available", "New job")
        await db_session.commit()
        assert channel.recipients("New Job Available") == {writer.id, other_writer.id}

    async def test_inactive_writers_are_not_notified(self, db_session, staff_factory, channel):
        inactive = await staff_factory("gone@example.com", domains="Nursing", status="inactive")
        dispatcher = NotificationDispatcher(channels=[channel])
        await dispatcher.notify_writers(db_session, "Nursing", "New Job Available", "New job")
        assert inactive.id not in channel.recipients("New Job Available")
