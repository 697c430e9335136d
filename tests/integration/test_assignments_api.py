"""Integration tests: job board, picking, extensions, overdue sweep and updates."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import update

from writerhub.assignments import service as assignment_service
from writerhub.assignments.lifecycle import Claimed, Conflict, claim
from writerhub.db.models import Assignment, ExtensionRequest
from writerhub.db.types import utcnow


def _iso(delta: timedelta) -> str:
    return (utcnow() + delta).isoformat()


class TestCreate:
    async def test_admin_posts_job_and_domain_writers_hear_about_it(
        self, admin_client: AsyncClient, writer, other_writer, channel
    ):
        response = await admin_client.post(
            "/api/assignments",
            json={
                "title": "Care plan essay",
                "domain": "Nursing",
                "word_count": 1200,
                "deadline": _iso(timedelta(days=2)),
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["writer_id"] is None
        assert data["word_count_min"] == 1200
        assert data["word_count_max"] == 1200
        assert channel.recipients("New Job Available") == {writer.id}

    async def test_title_and_deadline_required(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/assignments", json={"title": "  "})
        assert response.status_code == 400
        assert response.json() == {"error": "Title and deadline are required"}

    async def test_writers_cannot_post_jobs(self, writer_client: AsyncClient):
        response = await writer_client.post(
            "/api/assignments", json={"title": "x", "deadline": _iso(timedelta(days=1))}
        )
        assert response.status_code == 403

    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/assignments")
        assert response.status_code == 401


class TestJobBoard:
    async def test_board_is_filtered_by_domain(
        self, writer_client: AsyncClient, other_writer_client: AsyncClient, make_assignment
    ):
        nursing = await make_assignment(title="Care plan", domain="Nursing")
        code = await make_assignment(title="Flask API", domain="Programming")
        open_to_all = await make_assignment(title="Reflection", domain="")

        mine = {row["id"] for row in (await writer_client.get("/api/assignments/job-board")).json()}
        theirs = {row["id"] for row in (await other_writer_client.get("/api/assignments/job-board")).json()}

        assert mine == {nursing.id, open_to_all.id}
        assert theirs == {code.id, open_to_all.id}

    async def test_barred_writer_does_not_see_job(self, writer_client: AsyncClient, writer, make_assignment):
        await make_assignment(ineligible_writers=[writer.id])
        response = await writer_client.get("/api/assignments/job-board")
        assert response.json() == []

    async def test_admins_have_no_job_board(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/assignments/job-board")
        assert response.status_code == 403
        assert response.json() == {"error": "Only writers can access job board"}


class TestPick:
    async def test_pick_assigns_writer_and_prices_job(
        self, writer_client: AsyncClient, writer, admin, make_assignment, channel
    ):
        job = await make_assignment(word_count=1000)
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick", json={"writer_deadline": _iso(timedelta(days=2))}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["writer_id"] == writer.id
        assert data["status"] == "in_progress"
        assert data["amount"] == 10.0
        assert data["picked_at"] is not None
        assert channel.recipients("Job Picked") == {admin.id}

    async def test_delivery_deadline_required(self, writer_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await writer_client.post(f"/api/assignments/{job.id}/pick", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "You must set a delivery deadline"

    async def test_deadline_inside_buffer_rejected(self, writer_client: AsyncClient, make_assignment):
        job = await make_assignment(deadline=utcnow() + timedelta(hours=5))
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick",
            json={"writer_deadline": (job.deadline - timedelta(minutes=10)).isoformat()},
        )
        assert response.status_code == 400
        assert response.json()["error"] == (
            "Your delivery deadline must be at least 30 minutes before the client deadline"
        )

    async def test_deadline_in_past_rejected(self, writer_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick", json={"writer_deadline": _iso(-timedelta(hours=1))}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Delivery deadline must be in the future"

    async def test_second_writer_is_refused(
        self, writer_client: AsyncClient, other_writer_client: AsyncClient, make_assignment
    ):
        job = await make_assignment(domain="")
        body = {"writer_deadline": _iso(timedelta(days=1))}
        assert (await writer_client.post(f"/api/assignments/{job.id}/pick", json=body)).status_code == 200

        response = await other_writer_client.post(f"/api/assignments/{job.id}/pick", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "This job has already been picked by another writer"

    async def test_barred_writer_cannot_pick(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(ineligible_writers=[writer.id])
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick", json={"writer_deadline": _iso(timedelta(days=1))}
        )
        assert response.status_code == 403
        assert response.json()["error"] == "You are ineligible to pick this job"

    async def test_unknown_job(self, writer_client: AsyncClient):
        response = await writer_client.post(
            "/api/assignments/999/pick", json={"writer_deadline": _iso(timedelta(days=1))}
        )
        assert response.status_code == 404

    async def test_claim_is_compare_and_swap(self, db_session, writer, other_writer, make_assignment):
        job = await make_assignment()
        deadline = utcnow() + timedelta(days=1)

        first = await claim(db_session, job.id, writer.id, deadline, Decimal("0.01"), Decimal("10"))
        await db_session.commit()
        second = await claim(db_session, job.id, other_writer.id, deadline, Decimal("0.01"), Decimal("10"))
        await db_session.commit()

        assert isinstance(first, Claimed)
        assert first.assignment.writer_id == writer.id
        assert isinstance(second, Conflict)
        await db_session.refresh(job)
        assert job.writer_id == writer.id


    async def test_pick_lost_between_check_and_claim(
        self, writer_client: AsyncClient, writer, other_writer, make_assignment, db_session, monkeypatch
    ):
        job = await make_assignment()

        async def claim_after_rival_commits(db, assignment_id, *args):
            await db.execute(
                update(Assignment)
                .where(Assignment.id == assignment_id)
                .values(writer_id=other_writer.id, status="in_progress")
            )
            await db.commit()
            return await claim(db, assignment_id, *args)

        monkeypatch.setattr(assignment_service, "claim", claim_after_rival_commits)
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick", json={"writer_deadline": _iso(timedelta(days=1))}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Job was picked by another writer"}
        await db_session.refresh(job)
        assert job.writer_id == other_writer.id

    async def test_zero_writer_rate_falls_back_to_job_rate(
        self, writer_client: AsyncClient, writer, make_assignment, db_session
    ):
        writer.rate_per_word = Decimal("0")
        await db_session.commit()
        job = await make_assignment(word_count=1000, rate=Decimal("0.02"))
        response = await writer_client.post(
            f"/api/assignments/{job.id}/pick", json={"writer_deadline": _iso(timedelta(days=1))}
        )
        assert response.status_code == 200
        assert response.json()["amount"] == 20.0


class TestWriterUpdate:
    async def test_writer_completes_work(
        self, writer_client: AsyncClient, writer, admin, make_assignment, channel
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await writer_client.put(f"/api/assignments/{job.id}", json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["completed_at"] is not None
        assert channel.recipients("Work Submitted") == {admin.id}

    async def test_writer_cannot_touch_other_fields(
        self, writer_client: AsyncClient, writer, make_assignment, db_session
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await writer_client.put(f"/api/assignments/{job.id}", json={"status": "completed", "amount": 500})
        assert response.status_code == 403
        assert response.json()["error"] == "Writers can only update status and submit proposed amount"
        await db_session.refresh(job)
        assert job.status == "in_progress"
        assert job.amount == Decimal("0")

    async def test_writer_cannot_mark_paid(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="completed")
        response = await writer_client.put(f"/api/assignments/{job.id}", json={"status": "paid"})
        assert response.status_code == 400
        assert "Invalid transition" in response.json()["error"]

    async def test_writer_cannot_update_someone_elses_job(
        self, other_writer_client: AsyncClient, writer, make_assignment
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await other_writer_client.put(f"/api/assignments/{job.id}", json={"status": "completed"})
        assert response.status_code == 403

    async def test_price_proposal_and_approval(
        self, writer_client: AsyncClient, admin_client: AsyncClient, writer, admin, make_assignment, channel
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress", amount=Decimal("10"))

        proposed = await writer_client.put(f"/api/assignments/{job.id}", json={"submitted_amount": 45})
        assert proposed.status_code == 200
        assert proposed.json()["submitted_amount"] == 45.0
        assert proposed.json()["amount_approved"] is False
        assert channel.recipients("Price Approval Needed") == {admin.id}

        approved = await admin_client.put(f"/api/assignments/{job.id}", json={"amount_approved": True})
        assert approved.status_code == 200
        assert approved.json()["amount"] == 45.0
        assert approved.json()["submitted_amount"] is None
        assert channel.recipients("Amount Approved") == {writer.id}


class TestAdminUpdate:
    async def test_invalid_transition(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await admin_client.put(f"/api/assignments/{job.id}", json={"status": "paid"})
        assert response.status_code == 400

    async def test_payment_marks_completed_job_paid(self, admin_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="completed")
        response = await admin_client.put(f"/api/assignments/{job.id}", json={"payment_status": "paid"})
        assert response.json()["status"] == "paid"
        assert response.json()["payment_status"] == "paid"

    async def test_unknown_status_value_is_a_validation_error(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await admin_client.put(f"/api/assignments/{job.id}", json={"status": "archived"})
        assert response.status_code == 400

    async def test_delete(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await admin_client.delete(f"/api/assignments/{job.id}")
        assert response.json() == {"message": "Assignment deleted successfully"}
        assert (await admin_client.get(f"/api/assignments/{job.id}")).status_code == 404


class TestVisibility:
    async def test_writer_lists_only_own_work(self, writer_client: AsyncClient, writer, other_writer, make_assignment):
        mine = await make_assignment(writer_id=writer.id, status="in_progress")
        await make_assignment(writer_id=other_writer.id, status="in_progress")
        rows = (await writer_client.get("/api/assignments")).json()
        assert [row["id"] for row in rows] == [mine.id]

    async def test_admin_sees_writer_details(self, admin_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        data = (await admin_client.get(f"/api/assignments/{job.id}")).json()
        assert data["writer_name"] == "Wendy Writer"
        assert data["writer_email"] == "writer@example.com"

    async def test_writer_cannot_view_others_job(self, other_writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await other_writer_client.get(f"/api/assignments/{job.id}")
        assert response.status_code == 403


class TestExtensions:
    async def test_request_and_approve(
        self, writer_client: AsyncClient, admin_client: AsyncClient, writer, make_assignment, channel
    ):
        job = await make_assignment(
            writer_id=writer.id,
            status="in_progress",
            writer_deadline=utcnow() + timedelta(hours=10),
            deadline=utcnow() + timedelta(days=2),
        )
        new_deadline = utcnow() + timedelta(days=1)
        requested = await writer_client.post(
            f"/api/assignments/{job.id}/extension",
            json={"requested_deadline": new_deadline.isoformat(), "reason": "Sources arrive late"},
        )
        assert requested.status_code == 200
        extension_id = requested.json()["id"]

        pending = (await admin_client.get("/api/assignments/extensions/pending")).json()
        assert [(row["id"], row["assignment_title"], row["writer_name"]) for row in pending] == [
            (extension_id, "Care plan essay", "Wendy Writer")
        ]

        response = await admin_client.post(
            f"/api/assignments/extension/{extension_id}/respond", json={"status": "approved"}
        )
        assert response.json() == {"message": "Extension approved"}
        assert channel.recipients("Extension Approved") == {writer.id}

        data = (await admin_client.get(f"/api/assignments/{job.id}")).json()
        assert data["extension_requested"] is False
        assert data["writer_deadline"].startswith(new_deadline.strftime("%Y-%m-%dT%H:%M"))

    async def test_extension_must_respect_buffer(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress", deadline=utcnow() + timedelta(hours=3))
        response = await writer_client.post(
            f"/api/assignments/{job.id}/extension",
            json={"requested_deadline": (job.deadline - timedelta(minutes=5)).isoformat(), "reason": "More time"},
        )
        assert response.status_code == 400

    async def test_reason_required(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await writer_client.post(
            f"/api/assignments/{job.id}/extension", json={"requested_deadline": _iso(timedelta(days=1))}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Please provide new deadline and reason"

    async def test_rejection_keeps_deadline(
        self, admin_client: AsyncClient, db_session, writer, make_assignment, channel
    ):
        original = utcnow() + timedelta(hours=6)
        job = await make_assignment(writer_id=writer.id, status="in_progress", writer_deadline=original)
        extension = ExtensionRequest(
            assignment_id=job.id,
            writer_id=writer.id,
            requested_deadline=utcnow() + timedelta(days=1),
            reason="More time",
            status="pending",
        )
        db_session.add(extension)
        await db_session.commit()

        response = await admin_client.post(
            f"/api/assignments/extension/{extension.id}/respond",
            json={"status": "rejected", "admin_response": "Client is firm"},
        )
        assert response.json() == {"message": "Extension rejected"}
        assert channel.recipients("Extension Rejected") == {writer.id}

        again = await admin_client.post(
            f"/api/assignments/extension/{extension.id}/respond", json={"status": "approved"}
        )
        assert again.status_code == 404

    async def test_override_deadline(self, admin_client: AsyncClient, writer, make_assignment, channel):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await admin_client.post(
            f"/api/assignments/{job.id}/override-deadline", json={"new_deadline": _iso(timedelta(hours=1))}
        )
        assert response.status_code == 200
        assert channel.recipients("Deadline Updated") == {writer.id}


class TestOverdueSweep:
    async def test_missed_deadline_reopens_job(
        self, admin_client: AsyncClient, writer_client: AsyncClient, db_session, writer, make_assignment, channel
    ):
        late = await make_assignment(
            writer_id=writer.id,
            status="in_progress",
            writer_deadline=utcnow() - timedelta(minutes=5),
            deadline=utcnow() + timedelta(days=1),
        )
        on_time = await make_assignment(
            writer_id=writer.id, status="in_progress", writer_deadline=utcnow() + timedelta(hours=3)
        )
        client_passed = await make_assignment(
            writer_id=writer.id,
            status="in_progress",
            writer_deadline=utcnow() - timedelta(hours=2),
            deadline=utcnow() - timedelta(hours=1),
        )

        response = await admin_client.post("/api/assignments/check-overdue")
        assert response.status_code == 200
        assert response.json() == {"reopened_count": 1, "reopened_ids": [late.id]}
        assert channel.recipients("Job Auto-Reopened") == {writer.id}

        for job in (late, on_time, client_passed):
            await db_session.refresh(job)
        assert late.writer_id is None
        assert late.status == "pending"
        assert late.ineligible_writers == [writer.id]
        assert on_time.writer_id == writer.id
        assert client_passed.writer_id == writer.id

        retry = await writer_client.post(
            f"/api/assignments/{late.id}/pick", json={"writer_deadline": _iso(timedelta(hours=12))}
        )
        assert retry.status_code == 403

    async def test_sweep_is_admin_only(self, writer_client: AsyncClient):
        response = await writer_client.post("/api/assignments/check-overdue")
        assert response.status_code == 403

    async def test_nothing_to_reopen(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/assignments/check-overdue")
        assert response.json() == {"reopened_count": 0, "reopened_ids": []}
