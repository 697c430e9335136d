"""Integration tests: Web Push subscriptions and delivery."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest
from httpx import AsyncClient
from pywebpush import WebPushException
from sqlalchemy import select

from writerhub.config import get_settings
from writerhub.db.models import PushSubscription
from writerhub.notifications.dispatcher import OutboundMessage
from writerhub.push import sender
from writerhub.push.sender import WebPushChannel, build_payload, send_push_to_user

SUBSCRIPTION = {
    "endpoint": "https://push.example.com/send/abcdefghijklmnopqrstuvwxyz0123456789abcdefghijklmnop",
    "keys": {"p256dh": "BPublicKey", "auth": "authsecret"},
}


@pytest.fixture
def vapid(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "vapid_public_key", "BVapidPublic")
    monkeypatch.setattr(settings, "vapid_private_key", "vapid-private")


@pytest.fixture
def pushes(monkeypatch):
    """Replace the blocking webpush call; endpoints listed in ``gone`` answer 410."""
    calls = SimpleNamespace(sent=[], gone=set())

    def fake_send(subscription, payload, private_key, subject):
        if subscription.endpoint in calls.gone:
            raise WebPushException("gone", response=SimpleNamespace(status_code=410))
        calls.sent.append((subscription.endpoint, json.loads(payload)))

    monkeypatch.setattr(sender, "_send_blocking", fake_send)
    return calls


class TestSubscriptions:
    async def test_vapid_key(self, client: AsyncClient, vapid):
        assert (await client.get("/api/push/vapid-key")).json() == {"publicKey": "BVapidPublic"}

    async def test_vapid_key_unconfigured(self, client: AsyncClient):
        assert (await client.get("/api/push/vapid-key")).json() == {"publicKey": None}

    async def test_subscribe_is_idempotent_per_endpoint(self, writer_client: AsyncClient, db_session):
        await writer_client.post("/api/push/subscribe", json={"subscription": SUBSCRIPTION})
        refreshed = {**SUBSCRIPTION, "keys": {"p256dh": "BRotated", "auth": "authsecret"}}
        await writer_client.post("/api/push/subscribe", json={"subscription": refreshed})

        rows = (await db_session.execute(select(PushSubscription))).scalars().all()
        assert [r.p256dh for r in rows] == ["BRotated"]

        status = (await writer_client.get("/api/push/status")).json()
        assert status["subscribed"] is True
        assert status["subscriptions"] == 1
        assert status["devices"][0]["endpoint"] == SUBSCRIPTION["endpoint"][:50] + "..."

    async def test_invalid_subscription(self, writer_client: AsyncClient):
        response = await writer_client.post("/api/push/subscribe", json={"subscription": {"endpoint": "x"}})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid subscription"}

    async def test_unsubscribe(self, writer_client: AsyncClient):
        await writer_client.post("/api/push/subscribe", json={"subscription": SUBSCRIPTION})
        await writer_client.post("/api/push/unsubscribe", json={"endpoint": SUBSCRIPTION["endpoint"]})
        assert (await writer_client.get("/api/push/status")).json()["subscribed"] is False


class TestDelivery:
    async def test_test_push(self, writer_client: AsyncClient, vapid, pushes):
        await writer_client.post("/api/push/subscribe", json={"subscription": SUBSCRIPTION})
        data = (await writer_client.post("/api/push/test")).json()
        assert data["sent"] == 1
        [(endpoint, payload)] = pushes.sent
        assert endpoint == SUBSCRIPTION["endpoint"]
        assert payload["title"] == "Test Notification"

    async def test_gone_subscriptions_are_pruned(self, db_session, writer, vapid, pushes):
        db_session.add_all(
            [
                PushSubscription(user_id=writer.id, endpoint="https://push.example.com/live", p256dh="k", auth="a"),
                PushSubscription(user_id=writer.id, endpoint="https://push.example.com/dead", p256dh="k", auth="a"),
            ]
        )
        await db_session.commit()
        pushes.gone.add("https://push.example.com/dead")

        assert await send_push_to_user(db_session, writer.id, "Hi", "there") == 1
        await db_session.commit()
        rows = (await db_session.execute(select(PushSubscription.endpoint))).scalars().all()
        assert rows == ["https://push.example.com/live"]

    async def test_disabled_without_vapid_keys(self, db_session, writer, pushes):
        db_session.add(PushSubscription(user_id=writer.id, endpoint="https://push.example.com/a", p256dh="k", auth="a"))
        await db_session.commit()
        assert await send_push_to_user(db_session, writer.id, "Hi", "there") == 0
        assert pushes.sent == []

    async def test_channel_uses_message_link(self, db_session, writer, vapid, pushes):
        db_session.add(PushSubscription(user_id=writer.id, endpoint="https://push.example.com/a", p256dh="k", auth="a"))
        await db_session.commit()
        await WebPushChannel().deliver(db_session, writer, OutboundMessage("New Job", "Essay", link="/jobs/4"))
        assert pushes.sent[0][1]["url"] == "/jobs/4"


def test_payload_defaults_url():
    payload = json.loads(build_payload("T", "B"))
    assert payload["url"] == "/"
    assert payload["icon"] == "/icons/icon.svg"
