"""
Administration tests: users, roles, geography lookups, notifications,
dashboards, reports and the audit trail.
"""
import io

from openpyxl import load_workbook

from conftest import insert
from models.work_request import WorkRequest


def _request(geo, creator, no=1, **fields):
    request = WorkRequest(
        request_no=no, contact_number="0300", address=f"Site {no}", description="Leak",
        town_id=geo["town"]["id"], district_id=geo["district"]["id"], complaint_type_id=geo["water"]["id"],
        creator_id=creator["id"], creator_type=creator["user_type"], **fields,
    )
    return insert("work_requests", **request.model_dump())


class TestUsers:

    def test_create_user(self, client, admin):
        res = client.post("/api/users", json={
            "email": "agent@worksportal.gov.pk", "name": "Agent", "password": "secret1",
            "user_type": "agent", "role": "contractor",
        }, headers=admin["headers"])
        assert res.status_code == 201
        assert "password" not in res.json()

    def test_unknown_role_or_type(self, client, admin):
        base = {"email": "x@worksportal.gov.pk", "name": "X", "password": "secret1"}
        assert client.post("/api/users", json={**base, "role": "wizard"}, headers=admin["headers"]).status_code == 400
        assert client.post("/api/users", json={**base, "user_type": "robot"}, headers=admin["headers"]).status_code == 400

    def test_duplicate_email(self, client, admin, make_user):
        make_user("assistant", email="dup@worksportal.gov.pk")
        res = client.post("/api/users", json={"email": "dup@worksportal.gov.pk", "name": "X", "password": "secret1"}, headers=admin["headers"])
        assert res.status_code == 400

    def test_cannot_deactivate_self(self, client, admin):
        assert client.delete(f"/api/users/{admin['id']}", headers=admin["headers"]).status_code == 400

    def test_ce_scope_only_for_ce(self, client, admin, make_user, geo):
        ce = make_user("ce")
        assistant = make_user("assistant")
        scope = {"complaint_type_ids": [geo["water"]["id"]], "district_ids": [geo["district"]["id"]]}
        assert client.put(f"/api/users/{assistant['id']}/ce-scope", json=scope, headers=admin["headers"]).status_code == 400
        res = client.put(f"/api/users/{ce['id']}/ce-scope", json=scope, headers=admin["headers"])
        assert res.status_code == 200
        stored = client.get(f"/api/users/{ce['id']}/ce-scope", headers=admin["headers"]).json()
        assert stored["district_ids"] == [geo["district"]["id"]]

    def test_ce_scope_checks_complaint_types(self, client, admin, make_user):
        ce = make_user("ce")
        res = client.put(f"/api/users/{ce['id']}/ce-scope", json={"complaint_type_ids": ["nope"]}, headers=admin["headers"])
        assert res.status_code == 400


class TestRoles:

    def test_create_role_fills_missing_modules(self, client, admin):
        res = client.post("/api/roles", json={"name": "auditor", "permissions": {"requests": {"view": True}}}, headers=admin["headers"])
        assert res.status_code == 200
        perms = res.json()["permissions"]
        assert perms["requests"]["view"] is True
        assert perms["efiling"] == {"view": False, "create": False, "edit": False, "delete": False}

    def test_invalid_module(self, client, admin):
        res = client.post("/api/roles", json={"name": "odd", "permissions": {"payroll": {"view": True}}}, headers=admin["headers"])
        assert res.status_code == 400

    def test_system_roles_are_protected(self, client, admin):
        roles = {r["name"]: r for r in client.get("/api/roles", headers=admin["headers"]).json()}
        assert client.delete(f"/api/roles/{roles['ceo']['id']}", headers=admin["headers"]).status_code == 400
        assert client.put(f"/api/roles/{roles['admin']['id']}", json={"label": "Boss"}, headers=admin["headers"]).status_code == 400


class TestGeography:

    def test_town_requires_existing_district(self, client, admin):
        res = client.post("/api/towns", json={"name": "Nowhere", "district_id": "missing"}, headers=admin["headers"])
        assert res.status_code == 400

    def test_names_unique_within_parent(self, client, admin, geo):
        body = {"name": "Saddar Town", "district_id": geo["district"]["id"]}
        assert client.post("/api/towns", json=body, headers=admin["headers"]).status_code == 400
        body["district_id"] = geo["other_district"]["id"]
        assert client.post("/api/towns", json=body, headers=admin["headers"]).status_code == 201

    def test_delete_blocked_by_children(self, client, admin, geo):
        res = client.delete(f"/api/districts/{geo['district']['id']}", headers=admin["headers"])
        assert res.status_code == 400
        assert res.json()["detail"] == "Cannot delete: 1 town(s) still linked"

    def test_complaint_type_in_use(self, client, admin, geo):
        _request(geo, admin)
        res = client.delete(f"/api/complaint-types/{geo['water']['id']}", headers=admin["headers"])
        assert res.status_code == 400
        assert client.delete(f"/api/complaint-types/{geo['sewerage']['id']}", headers=admin["headers"]).status_code == 200

    def test_complaint_types_count_subtypes(self, client, admin, geo):
        insert("complaint_subtypes", subtype_name="Leak", complaint_type_id=geo["water"]["id"])
        types = {t["type_name"]: t for t in client.get("/api/complaint-types", headers=admin["headers"]).json()}
        assert types["Water Supply"]["subtype_count"] == 1
        assert types["Sewerage"]["subtype_count"] == 0


class TestNotifications:

    def test_mark_read_and_read_all(self, client, make_user):
        user = make_user("assistant")
        first = insert("notifications", user_id=user["id"], type="request", message="One", read=False, created_at="2026-01-01")
        insert("notifications", user_id=user["id"], type="request", message="Two", read=False, created_at="2026-01-02")
        insert("notifications", user_id=user["id"], type="request", message="", read=False, created_at="2026-01-03")

        body = client.get("/api/notifications", headers=user["headers"]).json()
        assert [n["message"] for n in body["notifications"]] == ["Two", "One"]
        assert body["unread_count"] == 2

        res = client.post("/api/notifications", json={"notification_ids": [first["id"]], "action": "mark_read"}, headers=user["headers"])
        assert res.json()["updated"] == 1
        assert client.get("/api/notifications?unread_only=true", headers=user["headers"]).json()["unread_count"] == 1

        client.post("/api/notifications/read-all", headers=user["headers"])
        assert client.get("/api/notifications", headers=user["headers"]).json()["unread_count"] == 0

    def test_blank_and_placeholder_messages_are_hidden(self, client, make_user):
        user = make_user("assistant")
        insert("notifications", user_id=user["id"], type="request", message="Real", read=False, created_at="2026-01-01")
        insert("notifications", user_id=user["id"], type="request", message="No message", read=False, created_at="2026-01-02")
        insert("notifications", user_id=user["id"], type="request", message=None, read=False, created_at="2026-01-03")
        insert("notifications", user_id=user["id"], type="request", read=False, created_at="2026-01-04")

        body = client.get("/api/notifications", headers=user["headers"]).json()
        assert [n["message"] for n in body["notifications"]] == ["Real"]
        assert body["unread_count"] == 1

    def test_invalid_action(self, client, make_user):
        user = make_user("assistant")
        res = client.post("/api/notifications", json={"notification_ids": ["x"], "action": "delete"}, headers=user["headers"])
        assert res.status_code == 400


class TestDashboardAndReports:

    def test_dashboard_stats(self, client, admin, geo):
        _request(geo, admin, 1)
        _request(geo, admin, 2, approval_status="approved")
        stats = client.get("/api/dashboard/stats", headers=admin["headers"]).json()
        assert stats["requests"]["total"] == 2
        assert stats["requests"]["by_approval_status"] == {"pending": 1, "approved": 1, "rejected": 0}
        assert stats["by_complaint_type"][0] == {"complaint_type_id": geo["water"]["id"], "type_name": "Water Supply", "count": 2}
        assert len(stats["recent_requests"]) == 2

    def test_request_report(self, client, admin, geo):
        _request(geo, admin, 1)
        report = client.get("/api/reports/requests", headers=admin["headers"]).json()
        assert report["summary"]["total_requests"] == 1
        assert report["summary"]["top_department"] == "Water Supply"
        assert report["by_district"] == [{"district": "Central District", "count": 1}]

    def test_reports_are_admin_only(self, client, make_user):
        ceo = make_user("ceo")
        assert client.get("/api/reports/requests", headers=ceo["headers"]).status_code == 403

    def test_excel_export(self, client, admin, geo):
        _request(geo, admin, 1)
        res = client.get("/api/reports/export/requests", headers=admin["headers"])
        assert res.status_code == 200
        ws = load_workbook(io.BytesIO(res.content)).active
        assert ws.title == "Work Requests"
        assert ws.cell(row=1, column=1).value == "Request No"
        assert ws.cell(row=2, column=1).value == 1
        assert ws.cell(row=2, column=3).value == "Water Supply"

    def test_export_rejects_unknown_type_and_format(self, client, admin):
        assert client.get("/api/reports/export/payroll", headers=admin["headers"]).status_code == 400
        assert client.get("/api/reports/export/requests?format=pdf", headers=admin["headers"]).status_code == 400

    def test_malformed_dates_are_rejected(self, client, admin, geo):
        _request(geo, admin, 1)
        for url in ("/api/reports/requests", "/api/reports/export/requests", "/api/audit-logs", "/api/media"):
            assert client.get(f"{url}?date_to=31/12/2026", headers=admin["headers"]).status_code == 422, url
            assert client.get(f"{url}?date_from=2026-01-01&date_to=2099-12-31", headers=admin["headers"]).status_code == 200, url
        report = client.get("/api/reports/requests?date_to=2000-01-01", headers=admin["headers"]).json()
        assert report["summary"]["total_requests"] == 0

    def test_department_performance(self, client, admin, efiling):
        report = client.get("/api/reports/department-performance", headers=admin["headers"]).json()
        names = [d["department_name"] for d in report["departments"]]
        assert names == ["Executive Office", "Water & Sewerage"]
        assert report["departments"][0]["completion_rate"] == 0


class TestAuditTrail:

    def test_mutations_are_logged_and_admin_only(self, client, admin, make_user, geo):
        client.post("/api/districts", json={"name": "West District"}, headers=admin["headers"])
        logs = client.get("/api/audit-logs?module=geography", headers=admin["headers"]).json()
        assert logs["total"] >= 1
        assert logs["data"][0]["action"] == "CREATE"

        assistant = make_user("assistant")
        assert client.get("/api/audit-logs", headers=assistant["headers"]).status_code == 403
