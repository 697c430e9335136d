"""Integration tests: writer management and the writer payment ledger."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient

from writerhub.auth.password import verify_password


class TestWriters:
    async def test_create_sends_welcome_email(self, admin_client: AsyncClient, email_provider):
        response = await admin_client.post(
            "/api/writers", json={"email": "New.Writer@Example.com", "name": " Nell ", "domains": "Law"}
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new.writer@example.com"
        assert data["name"] == "Nell"
        assert data["rate_per_word"] == 0.01
        assert len(data["generated_password"]) >= 8

        assert [e.to for e in email_provider.sent] == ["new.writer@example.com"]
        assert data["generated_password"] in email_provider.sent[0].text_body

    async def test_duplicate_email(self, admin_client: AsyncClient, writer):
        response = await admin_client.post("/api/writers", json={"email": "writer@example.com", "name": "Again"})
        assert response.status_code == 400
        assert response.json() == {"error": "Email already exists"}

    async def test_list_with_balances(self, admin_client: AsyncClient, writer, other_writer, make_assignment):
        await make_assignment(writer_id=writer.id, status="completed", amount=Decimal("30"))
        await make_assignment(writer_id=writer.id, status="in_progress", amount=Decimal("99"))

        rows = (await admin_client.get("/api/writers")).json()
        assert [r["name"] for r in rows] == ["Oscar Other", "Wendy Writer"]
        wendy = rows[1]
        assert wendy["assignment_count"] == 2
        assert wendy["total_earned"] == 30.0
        assert wendy["total_owed"] == 30.0

    async def test_writer_sees_only_self(self, writer_client: AsyncClient, writer, other_writer):
        assert (await writer_client.get(f"/api/writers/{writer.id}")).status_code == 200
        denied = await writer_client.get(f"/api/writers/{other_writer.id}")
        assert denied.status_code == 403
        assert denied.json() == {"error": "Access denied"}
        assert (await writer_client.get("/api/writers")).status_code == 403

    async def test_update(self, admin_client: AsyncClient, writer):
        response = await admin_client.put(f"/api/writers/{writer.id}", json={"status": "inactive", "domains": "Law"})
        assert response.json()["status"] == "inactive"
        assert response.json()["domains"] == "Law"

    async def test_update_rejects_unknown_status(self, admin_client: AsyncClient, writer):
        response = await admin_client.put(f"/api/writers/{writer.id}", json={"status": "banned"})
        assert response.status_code == 400

    async def test_delete_unassigns_work(self, admin_client: AsyncClient, writer, make_assignment, db_session):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await admin_client.delete(f"/api/writers/{writer.id}")
        assert response.json() == {"message": "Writer deleted successfully"}
        await db_session.refresh(job)
        assert job.writer_id is None
        assert (await admin_client.get(f"/api/writers/{writer.id}")).status_code == 404

    async def test_reset_password(self, admin_client: AsyncClient, writer, db_session, channel):
        data = (await admin_client.post(f"/api/writers/{writer.id}/reset-password")).json()
        assert data["email"] == "writer@example.com"

        await db_session.refresh(writer)
        assert writer.must_change_password is True
        assert verify_password(data["new_password"], writer.password_hash)
        assert channel.recipients("Password Reset") == {writer.id}

    async def test_admin_is_not_a_writer(self, admin_client: AsyncClient, admin):
        assert (await admin_client.post(f"/api/writers/{admin.id}/reset-password")).status_code == 404


class TestPayments:
    async def test_record_payment_settles_completed_work(
        self, admin_client: AsyncClient, writer, make_assignment, db_session, channel
    ):
        done = await make_assignment(writer_id=writer.id, status="completed", amount=Decimal("40"))
        active = await make_assignment(writer_id=writer.id, status="in_progress", amount=Decimal("10"))

        response = await admin_client.post(
            "/api/payments",
            json={
                "writer_id": writer.id,
                "amount": "40",
                "payment_date": "2026-03-01T12:00:00Z",
                "reference": "BANK-1",
            },
        )
        assert response.status_code == 201
        assert response.json()["writer_name"] == "Wendy Writer"
        assert response.json()["method"] == "bank-transfer"

        await db_session.refresh(done)
        await db_session.refresh(active)
        assert (done.status, done.payment_status) == ("paid", "paid")
        assert active.status == "in_progress"

        [delivery] = [d for d in channel.deliveries if d.message.title == "Payment Received"]
        assert delivery.user_id == writer.id
        assert delivery.message.email is not None

    async def test_required_fields(self, admin_client: AsyncClient, writer):
        response = await admin_client.post("/api/payments", json={"writer_id": writer.id})
        assert response.status_code == 400
        assert response.json() == {"error": "Writer, amount, and payment date are required"}

    async def test_summary_and_totals(
        self, admin_client: AsyncClient, writer_client: AsyncClient, writer, other_writer, make_assignment
    ):
        await make_assignment(writer_id=writer.id, status="completed", amount=Decimal("40"))
        await make_assignment(writer_id=other_writer.id, status="paid", amount=Decimal("20"))
        await admin_client.post(
            "/api/payments",
            json={"writer_id": other_writer.id, "amount": "20", "payment_date": "2026-03-01T12:00:00Z"},
        )

        summary = (await admin_client.get("/api/payments/summary")).json()
        assert {r["email"]: r["balance_owed"] for r in summary} == {
            "other@example.com": 0.0,
            "writer@example.com": 40.0,
        }

        own = (await writer_client.get("/api/payments/summary")).json()
        assert [r["email"] for r in own] == ["writer@example.com"]

        totals = (await admin_client.get("/api/payments/totals")).json()
        assert totals == {"total_paid": 20.0, "total_pending": 40.0}

    async def test_history_is_scoped_to_writer(
        self, admin_client: AsyncClient, writer_client: AsyncClient, writer, other_writer
    ):
        for target in (writer, other_writer):
            await admin_client.post(
                "/api/payments",
                json={"writer_id": target.id, "amount": "5", "payment_date": "2026-03-01T12:00:00Z"},
            )
        assert len((await admin_client.get("/api/payments/history")).json()) == 2
        own = (await writer_client.get("/api/payments/history")).json()
        assert [p["writer_email"] for p in own] == ["writer@example.com"]

    async def test_totals_are_admin_only(self, writer_client: AsyncClient):
        assert (await writer_client.get("/api/payments/totals")).status_code == 403

