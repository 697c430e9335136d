"""Integration tests: assignment file uploads, downloads and link submissions."""

from __future__ import annotations

from pathlib import Path

from httpx import AsyncClient

from writerhub.config import get_settings

PDF = ("brief.pdf", b"%PDF-1.4 test", "application/pdf")


async def _upload(http: AsyncClient, assignment_id: int, upload_type: str, file=PDF):
    return await http.post(
        f"/api/files/{assignment_id}/upload", files={"file": file}, data={"upload_type": upload_type}
    )


class TestUpload:
    async def test_admin_instructions_notify_writer(
        self, admin_client: AsyncClient, writer, make_assignment, channel
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await _upload(admin_client, job.id, "instructions")
        assert response.status_code == 200
        data = response.json()
        assert data["original_name"] == "brief.pdf"
        assert data["file_size"] == len(PDF[1])
        assert data["uploader_name"] == "Ada Admin"
        assert channel.recipients("New Instructions Added") == {writer.id}

    async def test_writer_submission_notifies_admins(
        self, writer_client: AsyncClient, writer, admin, make_assignment, channel
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await _upload(writer_client, job.id, "submission")
        assert response.status_code == 200
        assert channel.recipients("Work Submitted") == {admin.id}

    async def test_writer_cannot_upload_instructions(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await _upload(writer_client, job.id, "instructions")
        assert response.status_code == 403
        assert response.json() == {"error": "Only admin can upload instructions"}

    async def test_submission_for_someone_elses_job(self, other_writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        assert (await _upload(other_writer_client, job.id, "submission")).status_code == 403

    async def test_rejected_content_type(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await _upload(admin_client, job.id, "instructions", ("run.exe", b"MZ", "application/x-msdownload"))
        assert response.status_code == 400

    async def test_oversized_upload(self, admin_client: AsyncClient, make_assignment, monkeypatch):
        monkeypatch.setattr(get_settings(), "upload_max_bytes", 4)
        job = await make_assignment()
        response = await _upload(admin_client, job.id, "instructions")
        assert response.status_code == 413
        assert response.json() == {"error": "File 'brief.pdf' exceeds max size of 4 bytes"}

    async def test_unknown_assignment(self, admin_client: AsyncClient):
        assert (await _upload(admin_client, 999, "instructions")).status_code == 404

    async def test_invalid_upload_type(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        response = await _upload(admin_client, job.id, "draft")
        assert response.json() == {"error": "Invalid upload type"}


class TestAccess:
    async def test_download_and_listing(
        self, admin_client: AsyncClient, writer_client: AsyncClient, other_writer_client, writer, make_assignment
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        file_id = (await _upload(admin_client, job.id, "instructions")).json()["id"]

        download = await writer_client.get(f"/api/files/download/{file_id}")
        assert download.status_code == 200
        assert download.content == PDF[1]

        assert (await other_writer_client.get(f"/api/files/download/{file_id}")).status_code == 403
        assert (await other_writer_client.get(f"/api/files/{job.id}")).status_code == 403
        assert [f["id"] for f in (await writer_client.get(f"/api/files/{job.id}")).json()] == [file_id]

    async def test_missing_bytes(self, admin_client: AsyncClient, make_assignment):
        job = await make_assignment()
        stored = (await _upload(admin_client, job.id, "instructions")).json()
        path = Path(get_settings().upload_dir) / "instructions" / stored["filename"]
        path.unlink()
        response = await admin_client.get(f"/api/files/download/{stored['id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "File not found on server"}

    async def test_only_uploader_or_admin_deletes(
        self, writer_client: AsyncClient, other_writer_client, admin_client: AsyncClient, writer, make_assignment
    ):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        file_id = (await _upload(writer_client, job.id, "submission")).json()["id"]
        assert (await other_writer_client.delete(f"/api/files/{file_id}")).status_code == 403
        assert (await writer_client.delete(f"/api/files/{file_id}")).json() == {"message": "File deleted successfully"}
        assert (await admin_client.delete(f"/api/files/{file_id}")).status_code == 404


class TestLinks:
    async def test_submit_links(self, writer_client: AsyncClient, writer, admin, make_assignment, channel, db_session):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await writer_client.post(
            f"/api/files/{job.id}/submit-links", json={"links": "https://docs.example.com/d/1", "notes": "Final"}
        )
        assert response.json() == {"message": "Links submitted successfully"}
        await db_session.refresh(job)
        assert job.submission_links == "https://docs.example.com/d/1"
        assert job.submitted_at is not None
        assert channel.recipients("Links Submitted") == {admin.id}

    async def test_links_required(self, writer_client: AsyncClient, writer, make_assignment):
        job = await make_assignment(writer_id=writer.id, status="in_progress")
        response = await writer_client.post(f"/api/files/{job.id}/submit-links", json={"links": "  "})
        assert response.status_code == 400
        assert response.json() == {"error": "Links are required"}
