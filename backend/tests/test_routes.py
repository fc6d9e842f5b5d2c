"""
NoteSync Backend — API Route Tests
====================================

What:  End-to-end tests of the HTTP surface (notes, files, session, health).
How:   HTTPX AsyncClient over ASGITransport. The app is built by create_app()
       with the in-memory record fake and a LocalStorageGateway in a temp dir,
       so uploaded images really land on disk and /api/files really serves
       them. MIME sniffing is patched out.

What we test:
    ✅ Identity header is required (401)
    ✅ Create → list → fetch image through its temporary URL
    ✅ Validation errors are 400 and write nothing
    ✅ Delete keeps the image file on disk
    ✅ Remote failures are 502 with the structured error body
    ✅ Tampered image URLs are 403
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from fakes import IDENTITY
from notesync.exceptions import RemoteReadError, RemoteWriteError
from notesync.services.file_service import file_service

AUTH = {"X-Identity-Id": IDENTITY}
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture(autouse=True)
def accept_any_image():
    with patch.object(file_service, "validate_mime_type", return_value="image/png"):
        yield


async def _create(client, name="Groceries", description="milk, eggs", image=None):
    files = {"image": image} if image else None
    return await client.post(
        "/api/notes",
        data={"name": name, "description": description},
        files=files,
        headers=AUTH,
    )


class TestAuthentication:

    @pytest.mark.asyncio
    async def test_missing_identity_is_401(self, test_client):
        response = await test_client.get("/api/notes")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthenticated"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_identity_with_delimiter_is_401(self, test_client):
        response = await test_client.get("/api/notes", headers={"X-Identity-Id": "a/b"})

        assert response.status_code == 401


class TestNotesRoutes:

    @pytest.mark.asyncio
    async def test_list_empty(self, test_client):
        response = await test_client.get("/api/notes", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"notes": [], "total_count": 0}
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test_create_with_image_then_fetch_it(self, test_client, temp_storage):
        response = await _create(test_client, image=("list.png", PNG, "image/png"))

        assert response.status_code == 201
        note = response.json()
        assert note["name"] == "Groceries"
        assert note["image"]["kind"] == "resolved"
        assert note["image"]["path"] == f"media/{IDENTITY}/{note['id']}/list.png"
        assert (Path(temp_storage) / note["image"]["path"]).read_bytes() == PNG

        image = await test_client.get(note["image_url"])
        assert image.status_code == 200
        assert image.content == PNG
        assert image.headers["content-type"] == "image/png"

    @pytest.mark.asyncio
    async def test_create_without_image(self, test_client):
        response = await _create(test_client, name="Todo", description="call mom")

        assert response.status_code == 201
        assert response.json()["image"] is None
        assert response.json()["image_url"] is None

        listed = await test_client.get("/api/notes", headers=AUTH)
        assert [n["name"] for n in listed.json()["notes"]] == ["Todo"]

    @pytest.mark.asyncio
    async def test_missing_name_is_400_and_writes_nothing(self, test_client, records):
        response = await _create(test_client, name="", image=("list.png", PNG, "image/png"))

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "name"
        assert records.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_image_is_400_and_writes_nothing(self, test_client, records):
        response = await _create(test_client, image=("anim.gif", b"GIF89a", "image/gif"))

        assert response.status_code == 400
        assert response.json()["details"]["field"] == "image"
        assert records.calls == []

    @pytest.mark.asyncio
    async def test_delete_keeps_image_file(self, test_client, temp_storage):
        created = (await _create(test_client, image=("list.png", PNG, "image/png"))).json()

        response = await test_client.delete(f"/api/notes/{created['id']}", headers=AUTH)

        assert response.status_code == 204
        listed = await test_client.get("/api/notes", headers=AUTH)
        assert listed.json()["total_count"] == 0
        assert (Path(temp_storage) / created["image"]["path"]).is_file()

    @pytest.mark.asyncio
    async def test_delete_note_not_yet_listed(self, test_client, records):
        """A fresh session looks the id up with one refresh before deleting."""
        records.seed(IDENTITY, "abc", "Old", "gone soon")

        response = await test_client.delete("/api/notes/abc", headers=AUTH)

        assert response.status_code == 204
        assert records.ids(IDENTITY) == []

    @pytest.mark.asyncio
    async def test_delete_unknown_note_is_404(self, test_client):
        response = await test_client.delete("/api/notes/does-not-exist", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_upload_failure_is_502_with_rollback_flag(self, test_client, api_app, records):
        failing = AsyncMock(side_effect=RemoteWriteError())
        with patch.object(api_app.state.storage, "upload", failing):
            response = await _create(test_client, image=("list.png", PNG, "image/png"))

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "upload_failed"
        assert body["details"]["record_rolled_back"] is True
        assert records.ids(IDENTITY) == []

    @pytest.mark.asyncio
    async def test_list_failure_is_502(self, test_client, records):
        records.failures["list_notes"] = RemoteReadError()

        response = await test_client.get("/api/notes", headers=AUTH)

        assert response.status_code == 502
        assert response.json()["error"] == "remote_read_error"


class TestFilesRoute:

    @pytest.mark.asyncio
    async def test_tampered_signature_is_403(self, test_client):
        note = (await _create(test_client, image=("list.png", PNG, "image/png"))).json()
        url = note["image_url"].rsplit("signature=", 1)[0] + "signature=" + "0" * 64

        response = await test_client.get(url)

        assert response.status_code == 403
        assert response.json()["details"]["reason"] == "signature"

    @pytest.mark.asyncio
    async def test_missing_query_is_422(self, test_client):
        response = await test_client.get(f"/api/files/media/{IDENTITY}/n1/list.png")

        assert response.status_code == 422


class TestSessionAndHealth:

    @pytest.mark.asyncio
    async def test_sign_out_discards_session(self, test_client, api_app):
        await test_client.get("/api/notes", headers=AUTH)
        assert len(api_app.state.registry) == 1

        response = await test_client.post("/api/session/sign-out", headers=AUTH)

        assert response.status_code == 204
        assert len(api_app.state.registry) == 0

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["storage"] == "available"
