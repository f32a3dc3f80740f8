"""
Media upload tests: the approval-based upload gate, direct uploads,
chunked uploads and authenticated file serving.
"""
import pytest

from conftest import insert
from models.auth import User
from models.work_request import WorkRequest
from controllers.media_controller import upload_decision

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 32


def _request(geo, creator, approval_status="pending"):
    request = WorkRequest(
        request_no=1, contact_number="0300", address="Site", description="Leak",
        town_id=geo["town"]["id"], complaint_type_id=geo["water"]["id"],
        creator_id=creator["id"], creator_type=creator["user_type"], approval_status=approval_status,
    )
    return insert("work_requests", **request.model_dump())


def _user(role, user_type="user", id="u1"):
    return User(id=id, email="someone@worksportal.gov.pk", name="Someone", role=role, user_type=user_type)


class TestUploadDecision:

    def test_before_content_always_allowed(self):
        for status in ("pending", "approved", "rejected", "weird"):
            assert upload_decision({"approval_status": status}, _user("assistant"), "before_content")["allowed"]

    def test_pending_only_social_media_agents(self):
        request = {"approval_status": "pending"}
        assert upload_decision(request, _user("sm_agent", "socialmedia"), "image")["allowed"]
        assert not upload_decision(request, _user("admin"), "image")["allowed"]

    def test_rejected_only_ceo_and_admins(self):
        request = {"approval_status": "rejected"}
        assert upload_decision(request, _user("ceo"), "video")["allowed"]
        assert upload_decision(request, _user("manager"), "video")["allowed"]
        assert not upload_decision(request, _user("sm_agent", "socialmedia"), "video")["allowed"]

    def test_approved_creator_and_privileged(self):
        request = {"approval_status": "approved", "creator_id": "u1"}
        assert upload_decision(request, _user("assistant", id="u1"), "final_video")["allowed"]
        assert not upload_decision(request, _user("assistant", id="u2"), "final_video")["allowed"]
        assert upload_decision(request, _user("sm_agent", "socialmedia", id="u2"), "final_video")["allowed"]

    def test_unknown_status_denied(self):
        decision = upload_decision({"approval_status": None}, _user("admin"), "image")
        assert not decision["allowed"]
        assert "Unknown approval status" in decision["reason"]


class TestUploadPermissionEndpoint:

    def test_pending_request_for_admin(self, client, admin, geo):
        request = _request(geo, admin)
        body = client.get(f"/api/requests/{request['id']}/upload-permission?type=image", headers=admin["headers"]).json()
        assert body["can_upload"] is False
        assert body["allowed_media_types"] == ["before_content"]
        assert body["approval_status"] == "pending"

    def test_invalid_type(self, client, admin, geo):
        request = _request(geo, admin)
        res = client.get(f"/api/requests/{request['id']}/upload-permission?type=audio", headers=admin["headers"])
        assert res.status_code == 400


class TestUploads:

    def _upload(self, client, user, request_id, media_type="image", names=("front.png",), descriptions=("Front view",)):
        files = [("files", (name, PNG, "image/png")) for name in names]
        data = {"work_request_id": request_id, "media_type": media_type, "descriptions": list(descriptions)}
        return client.post("/api/media/upload", data=data, files=files, headers=user["headers"])

    def test_sm_agent_uploads_to_pending_request(self, client, admin, make_user, geo):
        request = _request(geo, admin)
        agent = make_user("sm_agent", user_type="socialmedia")
        res = self._upload(client, agent, request["id"], names=("a.png", "b.png"), descriptions=("one", "two"))
        assert res.status_code == 201, res.text
        created = res.json()
        assert len(created) == 2
        assert created[0]["link"].startswith("/uploads/images/a-")

        listing = client.get(f"/api/media?work_request_id={request['id']}", headers=admin["headers"]).json()
        assert listing["total"] == 2
        assert listing["data"][0]["request_no"] == 1

        notes = client.get("/api/notifications", headers=admin["headers"]).json()["notifications"]
        assert notes[0]["message"].startswith("New 2 image files uploaded for request #1")

    def test_gate_blocks_admin_on_pending_request(self, client, admin, geo):
        request = _request(geo, admin)
        res = self._upload(client, admin, request["id"])
        assert res.status_code == 403

    def test_descriptions_are_required(self, client, admin, geo):
        request = _request(geo, admin, approval_status="approved")
        res = self._upload(client, admin, request["id"], descriptions=(" ",))
        assert res.status_code == 400

    def test_wrong_content_type(self, client, admin, geo):
        request = _request(geo, admin, approval_status="approved")
        res = self._upload(client, admin, request["id"], media_type="video")
        assert res.status_code == 400

    def test_update_and_delete(self, client, admin, geo):
        request = _request(geo, admin, approval_status="approved")
        media_id = self._upload(client, admin, request["id"]).json()[0]["id"]
        res = client.put(f"/api/media/{media_id}", json={"description": "Updated"}, headers=admin["headers"])
        assert res.json()["description"] == "Updated"
        res = client.delete(f"/api/media/{media_id}", headers=admin["headers"])
        assert res.json()["file_removed"] is True
        assert client.get(f"/api/media/{media_id}", headers=admin["headers"]).status_code == 404

    def test_served_file_requires_auth(self, client, admin, geo):
        request = _request(geo, admin, approval_status="approved")
        link = self._upload(client, admin, request["id"]).json()[0]["link"]
        assert client.get(link).status_code in (401, 403)
        res = client.get(link, headers=admin["headers"])
        assert res.status_code == 200
        assert res.content == PNG


class TestChunkedUploads:

    def _chunk(self, client, user, index, total, data, **extra):
        form = {
            "upload_id": "clip-1", "chunk_index": str(index), "total_chunks": str(total),
            "file_name": "site clip.mp4", "file_type": "video/mp4", **extra,
        }
        return client.post("/api/media/chunks", data=form, files={"chunk": ("blob", data, "application/octet-stream")}, headers=user["headers"])

    def test_last_chunk_assembles_and_registers_media(self, client, admin, geo):
        request = _request(geo, admin, approval_status="approved")
        first = self._chunk(client, admin, 0, 2, b"abc", work_request_id=request["id"]).json()
        assert first["completed"] is False
        assert first["message"] == "Chunk 1 of 2 uploaded successfully"
        done = self._chunk(client, admin, 1, 2, b"def", work_request_id=request["id"]).json()
        assert done["completed"] is True
        assert done["media"]["media_type"] == "final_video"
        assert done["file_size"] == 6

    def test_finalize_reports_missing_chunks(self, client, admin):
        self._chunk(client, admin, 1, 3, b"x")
        res = client.post("/api/media/chunks/finalize", json={"upload_id": "clip-1", "file_name": "a.mp4", "total_chunks": 3}, headers=admin["headers"])
        assert res.status_code == 400
        assert "Missing chunk 0" in res.json()["detail"]

    def test_invalid_chunk_index(self, client, admin):
        assert self._chunk(client, admin, 3, 2, b"x").status_code == 400

    @pytest.mark.parametrize("file_type", ["image/png", "application/pdf"])
    def test_final_video_must_be_video(self, client, admin, file_type):
        res = self._chunk(client, admin, 0, 1, b"x", file_type=file_type)
        assert res.status_code == 400

    def test_cancel(self, client, admin):
        self._chunk(client, admin, 0, 2, b"x")
        assert client.delete("/api/media/chunks/clip-1", headers=admin["headers"]).status_code == 200
        assert client.delete("/api/media/chunks/clip-1", headers=admin["headers"]).status_code == 404

    def test_assembled_size_must_match_declared_size(self, client, admin):
        self._chunk(client, admin, 0, 2, b"a" * 5000, file_size="10")
        res = self._chunk(client, admin, 1, 2, b"b" * 5000, file_size="10")
        assert res.status_code == 400
        assert res.json()["detail"] == "File size mismatch. Expected 10, got 10000"

    def test_session_is_tied_to_its_uploader(self, client, admin, make_user):
        other = make_user("admin", name="Other Admin")
        self._chunk(client, admin, 0, 2, b"x")
        assert self._chunk(client, other, 1, 2, b"y").status_code == 403
        res = client.post("/api/media/chunks/finalize", json={"upload_id": "clip-1", "file_name": "a.mp4", "total_chunks": 1}, headers=other["headers"])
        assert res.status_code == 403
        assert client.delete("/api/media/chunks/clip-1", headers=other["headers"]).status_code == 403
        # the owner's session is untouched
        done = self._chunk(client, admin, 1, 2, b"y").json()
        assert done["completed"] is True
        assert done["file_size"] == 2
