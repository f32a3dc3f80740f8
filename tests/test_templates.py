"""
Document template and signature library tests.
"""
import base64

from conftest import insert

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_DATA = "data:image/png;base64," + base64.b64encode(PNG).decode()


class TestTemplates:

    def test_admin_templates_are_system_templates(self, client, admin):
        res = client.post("/api/efiling/templates", json={"name": "Notesheet", "title": "Note"}, headers=admin["headers"])
        assert res.status_code == 201
        assert res.json()["is_system_template"] is True

    def test_name_and_content_required(self, client, admin):
        res = client.post("/api/efiling/templates", json={"name": "Empty"}, headers=admin["headers"])
        assert res.status_code == 400

    def test_non_admin_needs_profile(self, client, make_user):
        assistant = make_user("assistant")
        res = client.post("/api/efiling/templates", json={"name": "Mine", "subject": "x"}, headers=assistant["headers"])
        assert res.status_code == 403

    def test_user_template_is_bound_to_department_and_role(self, client, make_profile, efiling):
        author = make_profile("XEN")
        res = client.post("/api/efiling/templates", json={
            "name": "Mine", "subject": "x", "department_ids": [], "role_ids": ["someone-else"],
        }, headers=author["headers"])
        body = res.json()
        assert body["is_system_template"] is False
        assert body["department_ids"] == [efiling["dept"]["id"]]
        assert body["role_ids"] == [efiling["roles"]["XEN"]["id"]]
        assert body["created_by"] == author["profile"]["id"]

    def test_audience_filtering(self, client, admin, make_profile, efiling):
        xen = make_profile("XEN")
        se = make_profile("SE")
        insert("efiling_templates", name="Open", template_type="letter", department_ids=[], role_ids=[], is_active=True)
        insert("efiling_templates", name="For XEN", template_type="letter", department_ids=[], role_ids=[efiling["roles"]["XEN"]["id"]], is_active=True)
        insert("efiling_templates", name="Other dept", template_type="letter", department_ids=["elsewhere"], role_ids=[], is_active=True)
        insert("efiling_templates", name="Retired", template_type="letter", department_ids=[], role_ids=[], is_active=False)

        def names(user):
            return [t["name"] for t in client.get("/api/efiling/templates", headers=user["headers"]).json()["templates"]]

        assert names(xen) == ["For XEN", "Open"]
        assert names(se) == ["Open"]
        assert names(admin) == ["For XEN", "Open", "Other dept"]

    def test_only_author_edits(self, client, make_profile):
        author = make_profile("XEN")
        other = make_profile("XEN")
        template = client.post("/api/efiling/templates", json={"name": "Mine", "subject": "x"}, headers=author["headers"]).json()
        assert client.put(f"/api/efiling/templates/{template['id']}", json={"subject": "y"}, headers=other["headers"]).status_code == 403
        res = client.put(f"/api/efiling/templates/{template['id']}", json={"subject": "y"}, headers=author["headers"])
        assert res.json()["subject"] == "y"
        assert client.put(f"/api/efiling/templates/{template['id']}", json={}, headers=author["headers"]).status_code == 400

    def test_use_counts_and_delete(self, client, admin, make_user):
        template = client.post("/api/efiling/templates", json={"name": "Letter", "main_content": "<p>Dear</p>"}, headers=admin["headers"]).json()
        client.post(f"/api/efiling/templates/{template['id']}/use", headers=admin["headers"])
        used = client.post(f"/api/efiling/templates/{template['id']}/use", headers=admin["headers"]).json()
        assert used["usage_count"] == 2
        assert used["last_used_at"] is not None

        assistant = make_user("assistant")
        assert client.delete(f"/api/efiling/templates/{template['id']}", headers=assistant["headers"]).status_code == 403
        assert client.delete(f"/api/efiling/templates/{template['id']}", headers=admin["headers"]).status_code == 200
        assert client.get(f"/api/efiling/templates/{template['id']}", headers=admin["headers"]).status_code == 404


class TestSignatureLibrary:

    def _save(self, client, user, signature_type="drawn", data=PNG_DATA):
        return client.post("/api/efiling/signatures", json={"signature_data": data, "signature_type": signature_type}, headers=user["headers"])

    def test_save_and_list(self, client, make_user):
        user = make_user("assistant", name="Ali Raza")
        res = self._save(client, user)
        assert res.status_code == 201
        signature = res.json()["signature"]
        assert signature["file_url"].startswith("/uploads/signatures/ali_raza/drawn_")
        assert signature["is_active"] is True
        assert len(client.get("/api/efiling/signatures", headers=user["headers"]).json()) == 1

    def test_same_type_replaces(self, client, make_user):
        user = make_user("assistant")
        first = self._save(client, user).json()["signature"]
        second = self._save(client, user).json()["signature"]
        assert second["id"] == first["id"]
        assert len(client.get("/api/efiling/signatures", headers=user["headers"]).json()) == 1

    def test_newest_is_active_and_limit_of_three(self, client, make_user):
        user = make_user("assistant")
        for kind in ("drawn", "typed", "uploaded"):
            assert self._save(client, user, kind).status_code == 201
        rows = client.get("/api/efiling/signatures", headers=user["headers"]).json()
        assert [r["signature_type"] for r in rows if r["is_active"]] == ["uploaded"]
        res = self._save(client, user, "stamp")
        assert res.status_code == 400
        assert res.json()["detail"].startswith("Maximum 3 signatures")

    def test_rejects_non_png(self, client, make_user):
        user = make_user("assistant")
        fake = "data:image/png;base64," + base64.b64encode(b"GIF89a").decode()
        assert self._save(client, user, data=fake).status_code == 400
        assert self._save(client, user, data="not base64!").status_code == 400

    def test_delete_reactivates_latest(self, client, make_user):
        user = make_user("assistant")
        self._save(client, user, "drawn")
        latest = self._save(client, user, "typed").json()["signature"]
        assert client.delete(f"/api/efiling/signatures/{latest['id']}", headers=user["headers"]).status_code == 200
        rows = client.get("/api/efiling/signatures", headers=user["headers"]).json()
        assert [(r["signature_type"], r["is_active"]) for r in rows] == [("drawn", True)]

    def test_cannot_delete_someone_elses(self, client, make_user):
        owner = make_user("assistant")
        other = make_user("assistant")
        signature = self._save(client, owner).json()["signature"]
        assert client.delete(f"/api/efiling/signatures/{signature['id']}", headers=other["headers"]).status_code == 404
