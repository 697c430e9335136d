"""Integration tests: assignment chat, direct messages and attachments."""

from __future__ import annotations

from httpx import AsyncClient


class TestAssignmentChat:
    async def test_admin_and_writer_exchange(
        self, admin_client: AsyncClient, writer_client: AsyncClient, admin, writer, make_assignment, channel
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")

        sent = await admin_client.post(f"/api/messages/assignment/{job.id}", json={"message": " Please cite APA "})
        assert sent.status_code == 200
        assert sent.json()["message"] == "Please cite APA"
        assert sent.json()["receiver_id"] == writer.id
        assert channel.recipients("New Message") == {writer.id}

        reply = await writer_client.post(f"/api/messages/assignment/{job.id}", json={"message": "Will do"})
        assert reply.json()["receiver_id"] == admin.id
        assert reply.json()["sender_role"] == "writer"

        assert (await writer_client.get("/api/messages/unread-count")).json() == {"count": 1}
        thread = (await writer_client.get(f"/api/messages/assignment/{job.id}")).json()
        assert [m["message"] for m in thread] == ["Please cite APA", "Will do"]
        assert (await writer_client.get("/api/messages/unread-count")).json() == {"count": 0}

    async def test_outsider_is_refused(self, other_writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await other_writer_client.post(f"/api/messages/assignment/{job.id}", json={"message": "hi"})
        assert response.status_code == 403
        assert (await other_writer_client.get(f"/api/messages/assignment/{job.id}")).status_code == 403

    async def test_empty_message(self, admin_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await admin_client.post(f"/api/messages/assignment/{job.id}", json={"message": "   "})
        assert response.status_code == 400
        assert response.json() == {"error": "Message cannot be empty"}

    async def test_threads(self, admin_client: AsyncClient, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        await make_assignment(title="Unclaimed")
        await writer_client.post(f"/api/messages/assignment/{job.id}", json={"message": "Question"})

        admin_view = (await admin_client.get("/api/messages/threads")).json()
        assert [(t["assignment_id"], t["unread_count"]) for t in admin_view] == [(job.id, 1)]
        assert admin_view[0]["writer_name"] == "Wendy Writer"

        writer_view = (await writer_client.get("/api/messages/threads")).json()
        assert [a["name"] for a in writer_view["admins"]] == ["Ada Admin"]
        assert [t["assignment_id"] for t in writer_view["assignments"]] == [job.id]


class TestDirectMessages:
    async def test_writer_to_admin(
        self, writer_client: AsyncClient, admin_client: AsyncClient, admin, writer, channel
    ):
        response = await writer_client.post(f"/api/messages/direct/{admin.id}", json={"message": "Hello"})
        assert response.status_code == 200
        assert channel.recipients("New Message") == {admin.id}

        thread = (await admin_client.get(f"/api/messages/direct/{writer.id}")).json()
        assert [m["sender_name"] for m in thread] == ["Wendy Writer"]
        assert thread[0]["assignment_id"] is None

    async def test_writers_cannot_message_each_other(self, writer_client: AsyncClient, other_writer):
        response = await writer_client.post(f"/api/messages/direct/{other_writer.id}", json={"message": "psst"})
        assert response.status_code == 403
        assert response.json() == {"error": "Writers can only message admins"}

    async def test_unknown_receiver(self, admin_client: AsyncClient):
        response = await admin_client.post("/api/messages/direct/999", json={"message": "hello?"})
        assert response.status_code == 404


class TestAttachments:
    async def test_file_is_served_through_the_api(
        self, admin_client: AsyncClient, writer_client: AsyncClient, other_writer_client, writer, make_assignment
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        sent = await admin_client.post(
            f"/api/messages/assignment/{job.id}/file",
            files={"file": ("notes.txt", b"outline", "text/plain")},
        )
        assert sent.status_code == 200
        data = sent.json()
        assert data["file_url"] == f"/api/messages/file/{data['id']}"
        assert data["file_name"] == "notes.txt"

        download = await writer_client.get(data["file_url"])
        assert download.status_code == 200
        assert download.content == b"outline"
        assert (await other_writer_client.get(data["file_url"])).status_code == 403

    async def test_file_required(self, admin_client: AsyncClient, admin):
        response = await admin_client.post(f"/api/messages/direct/{admin.id}/file", data={"message": "x"})
        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded"}

    async def test_text_message_has_no_file(self, admin_client: AsyncClient, writer):
        sent = (await admin_client.post(f"/api/messages/direct/{writer.id}", json={"message": "hi"})).json()
        assert (await admin_client.get(f"/api/messages/file/{sent['id']}")).status_code == 404


async def test_user_status(writer_client: AsyncClient, admin):
    data = (await writer_client.get(f"/api/messages/status/{admin.id}")).json()
    assert data["name"] == "Ada Admin"
    assert data["is_online"] is False
