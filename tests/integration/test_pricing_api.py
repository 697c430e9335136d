"""Integration tests: the pricing calculator endpoints."""

from __future__ import annotations

from httpx import AsyncClient


class TestCalculate:
    async def test_standard_pages_without_ai(self, client: AsyncClient, estimator):
        response = await client.post(
            "/api/ai-pricing/calculate", json={"type": "standard", "packageType": "silver", "pages": "3"}
        )
        assert response.status_code == 200
        breakdown = response.json()["breakdown"]
        assert breakdown["basePrice"] == "37.47"
        assert breakdown["finalPrice"] == "37.47"
        assert breakdown["pages"] == 3
        assert breakdown["pricePerPage"] == "12.49"
        assert breakdown["itemizedBreakdown"] == [{"item": "3 page(s) @ $12.49/page", "amount": 37.47}]
        assert estimator.requests == []

    async def test_out_of_band_ai_price_is_ignored(self, client: AsyncClient, estimator):
        estimator.price = "500"
        breakdown = (
            await client.post(
                "/api/ai-pricing/calculate", json={"type": "programming", "complexity": "moderate", "useAI": True}
            )
        ).json()["breakdown"]
        assert breakdown["basePrice"] == "75.00"
        assert breakdown["aiReasoning"] is None
        assert len(estimator.requests) == 1

    async def test_in_band_ai_price_is_used(self, client: AsyncClient, estimator):
        estimator.price = "100"
        breakdown = (
            await client.post(
                "/api/ai-pricing/calculate", json={"type": "programming", "complexity": "moderate", "useAI": True}
            )
        ).json()["breakdown"]
        assert breakdown["basePrice"] == "100.00"
        assert breakdown["estimatedHours"] == 4
        assert breakdown["aiReasoning"] == "test estimate"

    async def test_custom_work_trusts_ai(self, client: AsyncClient, estimator):
        estimator.price = "250"
        breakdown = (
            await client.post("/api/ai-pricing/calculate", json={"type": "custom", "description": "Thesis review"})
        ).json()["breakdown"]
        assert breakdown["basePrice"] == "250.00"
        assert estimator.requests[0].description == "Thesis review"

    async def test_custom_work_falls_back_to_minimum(self, client: AsyncClient, estimator):
        breakdown = (await client.post("/api/ai-pricing/calculate", json={"type": "custom"})).json()["breakdown"]
        assert breakdown["basePrice"] == "15.00"
        assert len(estimator.requests) == 1

    async def test_verified_member_discount(self, member_client: AsyncClient):
        breakdown = (
            await member_client.post(
                "/api/ai-pricing/calculate", json={"type": "programming", "complexity": "moderate"}
            )
        ).json()["breakdown"]
        assert breakdown["memberTier"] == "silver"
        assert breakdown["discountPercent"] == 10
        assert breakdown["discountAmount"] == "7.50"
        assert breakdown["finalPrice"] == "67.50"

    async def test_presentation_defaults_to_ten_slides(self, client: AsyncClient):
        breakdown = (await client.post("/api/ai-pricing/calculate", json={"type": "presentation"})).json()["breakdown"]
        assert breakdown["slides"] == 10
        assert breakdown["basePrice"] == "80.00"


async def test_pricing_guide(client: AsyncClient):
    data = (await client.get("/api/ai-pricing/pricing-guide")).json()
    assert data["success"] is True
    assert data["pricing"]["standard"]["tiers"]["gold"] == "$17.99/page"
