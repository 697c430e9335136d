"""Integration tests: order quotes, creation, receipts and manual settlement."""

from __future__ import annotations

from httpx import AsyncClient
from sqlalchemy import select

from writerhub.db.models import ClientOrder

QUOTE = {"packageType": "silver", "pages": 3, "deadlineHours": 72}


class TestQuote:
    async def test_guest_pays_full_price(self, client: AsyncClient):
        response = await client.post("/api/orders/calculate", json=QUOTE)
        assert response.status_code == 200
        breakdown = response.json()["breakdown"]
        assert breakdown["basePrice"] == "37.47"
        assert breakdown["pricePerPage"] == "12.49"
        assert breakdown["discountAmount"] == "0.00"
        assert breakdown["finalPrice"] == "37.47"
        assert breakdown["memberSavingsNote"] == "Join membership to save up to 20% on every order!"

    async def test_verified_member_gets_tier_discount(self, member_client: AsyncClient):
        breakdown = (await member_client.post("/api/orders/calculate", json=QUOTE)).json()["breakdown"]
        assert breakdown["memberTier"] == "silver"
        assert breakdown["discountPercent"] == 10
        assert breakdown["discountAmount"] == "3.75"
        assert breakdown["finalPrice"] == "33.72"
        assert breakdown["memberSavingsNote"] == "You're saving 10% with your membership!"

    async def test_bad_token_is_treated_as_guest(self, client: AsyncClient):
        response = await client.post(
            "/api/orders/calculate", json=QUOTE, headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.json()["breakdown"]["finalPrice"] == "37.47"

    async def test_staff_token_is_not_a_member(self, client: AsyncClient, writer, headers_for):
        response = await client.post("/api/orders/calculate", json=QUOTE, headers=headers_for(writer))
        assert response.json()["breakdown"]["discountAmount"] == "0.00"

    async def test_invalid_package(self, client: AsyncClient):
        response = await client.post("/api/orders/calculate", json={**QUOTE, "packageType": "platinum"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid package type"}

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post("/api/orders/calculate", json={"packageType": "silver"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}


class TestCreate:
    async def test_guest_order_needs_email(self, client: AsyncClient):
        response = await client.post("/api/orders/create", json=QUOTE)
        assert response.status_code == 400
        assert response.json() == {"error": "Client email is required"}

    async def test_guest_order(self, client: AsyncClient, db_session):
        response = await client.post(
            "/api/orders/create",
            json={**QUOTE, "clientEmail": " Guest@Example.com ", "clientName": "Gus", "title": "Lab report"},
        )
        assert response.status_code == 200
        order = response.json()["order"]
        assert order["finalPrice"] == "37.47"

        row = (
            await db_session.execute(select(ClientOrder).where(ClientOrder.order_number == order["orderNumber"]))
        ).scalar_one()
        assert row.member_id is None
        assert row.guest_email == "guest@example.com"
        assert row.payment_status == "pending"

    async def test_member_order_is_linked(self, member_client: AsyncClient, member, db_session):
        order = (await member_client.post("/api/orders/create", json=QUOTE)).json()["order"]
        assert order["finalPrice"] == "33.72"
        assert order["breakdown"]["discountPercent"] == 10

        row = (
            await db_session.execute(select(ClientOrder).where(ClientOrder.order_number == order["orderNumber"]))
        ).scalar_one()
        assert row.member_id == member.id
        assert row.guest_email is None


class TestReceiptAndSettlement:
    async def _place(self, member_client: AsyncClient) -> str:
        return (await member_client.post("/api/orders/create", json=QUOTE)).json()["order"]["orderNumber"]

    async def test_receipt(self, member_client: AsyncClient, client: AsyncClient):
        number = await self._place(member_client)
        data = (await client.get(f"/api/orders/{number}/receipt")).json()
        assert data["orderNumber"] == number
        assert data["customerName"] == "Casey Client"
        assert data["customerEmail"] == "client@example.com"
        assert data["packageName"] == "Silver"
        assert data["approxWords"] == 825
        assert data["paymentStatus"] == "pending"

    async def test_unknown_receipt(self, client: AsyncClient):
        response = await client.get("/api/orders/HP0000-XXXXXX/receipt")
        assert response.status_code == 404

    async def test_admin_marks_paid_once(
        self, member_client: AsyncClient, admin_client: AsyncClient, member, db_session, email_provider
    ):
        number = await self._place(member_client)
        body = {"paymentMethod": "bank-transfer", "paymentReference": "TX-1"}

        first = await admin_client.post(f"/api/orders/{number}/paid", json=body)
        second = await admin_client.post(f"/api/orders/{number}/paid", json=body)

        assert first.json() == {"success": True, "message": "Payment recorded and receipt sent"}
        assert second.status_code == 200
        assert [(e.to, e.subject) for e in email_provider.sent] == [
            ("client@example.com", f"Payment Receipt - Order {number}")
        ]

        await db_session.refresh(member)
        assert member.total_orders == 1
        assert float(member.total_spent) == 33.72

        receipt = (await admin_client.get(f"/api/orders/{number}/receipt")).json()
        assert receipt["paymentStatus"] == "paid"
        assert receipt["paymentMethod"] == "bank-transfer"

    async def test_marking_paid_is_admin_only(self, member_client: AsyncClient, client: AsyncClient):
        number = await self._place(member_client)
        response = await client.post(f"/api/orders/{number}/paid", json={})
        assert response.status_code == 401
