"""
Work request API tests: creation, listing, updates, deletion and scoping.
"""
from datetime import datetime, timezone

from conftest import run, insert


def _payload(geo, **overrides):
    body = {
        "town_id": geo["town"]["id"],
        "complaint_type_id": geo["water"]["id"],
        "contact_number": "03001234567",
        "address": "Plot 12, Saddar",
        "description": "Burst main on the corner",
    }
    body.update(overrides)
    return body


def _create(client, user, geo, **overrides):
    res = client.post("/api/requests", json=_payload(geo, **overrides), headers=user["headers"])
    assert res.status_code == 201, res.text
    return res.json()["request"]


class TestCreateRequest:

    def test_request_numbers_increment(self, client, admin, geo):
        first = _create(client, admin, geo)
        second = _create(client, admin, geo)
        assert first["request_no"] == 1
        assert second["request_no"] == 2
        assert first["approval_status"] == "pending"
        assert first["district_id"] == geo["district"]["id"]

    def test_pending_status_assigned(self, client, admin, geo):
        from database import db
        created = _create(client, admin, geo)
        pending = run(db.statuses.find_one({"name": "Pending"}, {"_id": 0}))
        assert created["status_id"] == pending["id"]

    def test_town_or_division_required(self, client, admin, geo):
        res = client.post("/api/requests", json=_payload(geo, town_id=None), headers=admin["headers"])
        assert res.status_code == 400
        assert res.json()["detail"] == "Either town_id or division_id is required"

    def test_invalid_complaint_type(self, client, admin, geo):
        res = client.post("/api/requests", json=_payload(geo, complaint_type_id="nope"), headers=admin["headers"])
        assert res.status_code == 400

    def test_division_request_drops_town(self, client, admin, geo):
        created = _create(
            client, admin, geo,
            town_id=geo["town"]["id"], subtown_id=geo["subtown"]["id"], division_id=geo["division"]["id"],
        )
        assert created["town_id"] is None
        assert created["subtown_id"] is None
        assert created["zone_id"] == geo["zone"]["id"]

    def test_additional_locations_need_coordinates(self, client, admin, geo):
        created = _create(client, admin, geo, additional_locations=[
            {"latitude": 24.8, "longitude": 67.0, "description": "valve"},
            {"latitude": 24.9, "description": "no longitude"},
        ])
        assert len(created["additional_locations"]) == 1

    def test_contractor_is_recorded_and_admins_notified(self, client, admin, make_user, geo):
        contractor = make_user("contractor", user_type="agent", name="Builder")
        created = _create(client, contractor, geo)
        assert created["contractor_id"] == contractor["id"]
        assert created["creator_type"] == "agent"
        notes = client.get("/api/notifications", headers=admin["headers"]).json()
        assert notes["unread_count"] == 1
        assert notes["notifications"][0]["message"] == "New work request from Builder (Agent)."


class TestListRequests:

    def test_pagination(self, client, admin, geo):
        for _ in range(3):
            _create(client, admin, geo)
        body = client.get("/api/requests?page=2&limit=2", headers=admin["headers"]).json()
        assert body["total"] == 3
        assert body["pages"] == 2
        assert len(body["data"]) == 1

    def test_unlimited_by_default(self, client, admin, geo):
        for _ in range(3):
            _create(client, admin, geo)
        body = client.get("/api/requests", headers=admin["headers"]).json()
        assert len(body["data"]) == 3
        assert body["pages"] == 1

    def test_text_filter_matches_address_and_number(self, client, admin, geo):
        _create(client, admin, geo, address="Block A")
        _create(client, admin, geo, address="Block B")
        body = client.get("/api/requests?filter=block b", headers=admin["headers"]).json()
        assert [r["address"] for r in body["data"]] == ["Block B"]
        body = client.get("/api/requests?filter=1", headers=admin["headers"]).json()
        assert [r["request_no"] for r in body["data"]] == [1]

    def test_rows_are_enriched(self, client, admin, geo):
        _create(client, admin, geo)
        row = client.get("/api/requests", headers=admin["headers"]).json()["data"][0]
        assert row["town_name"] == "Saddar Town"
        assert row["complaint_type"] == "Water Supply"
        assert row["status_name"] == "Pending"
        assert row["creator_name"] == "Admin"

    def test_sort_by_joined_column(self, client, admin, geo):
        _create(client, admin, geo, complaint_type_id=geo["water"]["id"])
        _create(client, admin, geo, complaint_type_id=geo["sewerage"]["id"])
        body = client.get("/api/requests?sortBy=complaint_type&sortOrder=asc", headers=admin["headers"]).json()
        assert [r["complaint_type"] for r in body["data"]] == ["Sewerage", "Water Supply"]

    def test_efiling_scope_requires_profile(self, client, admin, geo):
        res = client.get("/api/requests?scope=efiling", headers=admin["headers"])
        assert res.status_code == 403

    def test_efiling_scope_without_geography(self, client, admin, make_user, efiling):
        staff = make_user("assistant")
        insert(
            "efiling_users", user_id=staff["id"], efiling_role_id=efiling["roles"]["XEN"]["id"],
            department_id=efiling["dept"]["id"], district_id=None, town_id=None, division_id=None, is_active=True,
        )
        res = client.get("/api/requests?scope=efiling", headers=staff["headers"])
        assert res.status_code == 403
        assert res.json()["detail"] == "No geographic assignment found for current user"

    def test_date_filters_are_validated(self, client, admin, geo):
        _create(client, admin, geo)
        today = datetime.now(timezone.utc).date().isoformat()
        assert client.get("/api/requests?date_to=yesterday", headers=admin["headers"]).status_code == 422
        assert client.get("/api/requests?date_from=2024-13-40", headers=admin["headers"]).status_code == 422
        assert len(client.get(f"/api/requests?date_to={today}", headers=admin["headers"]).json()["data"]) == 1
        assert client.get("/api/requests?date_to=2000-01-01", headers=admin["headers"]).json()["data"] == []

    def test_efiling_scope_restricts_to_town(self, client, admin, make_profile, geo):
        _create(client, admin, geo)
        _create(client, admin, geo, town_id=geo["other_town"]["id"])
        staff = make_profile("XEN")
        body = client.get("/api/requests?scope=efiling", headers=staff["headers"]).json()
        assert [r["town_id"] for r in body["data"]] == [geo["town"]["id"]]


class TestRequestDetail:

    def test_lookup_by_number(self, client, admin, geo):
        created = _create(client, admin, geo)
        res = client.get("/api/requests/1", headers=admin["headers"])
        assert res.json()["id"] == created["id"]

    def test_missing_request(self, client, admin):
        assert client.get("/api/requests/unknown", headers=admin["headers"]).status_code == 404

    def test_update_skips_placeholder_ids(self, client, admin, make_user, geo):
        created = _create(client, admin, geo)
        engineer = make_user("executive_engineer", user_type="agent")
        res = client.put(f"/api/requests/{created['id']}", json={
            "executive_engineer_id": engineer["id"], "contractor_id": "undefined", "address": "New address",
        }, headers=admin["headers"])
        assert res.status_code == 200
        updated = res.json()["request"]
        assert updated["executive_engineer_id"] == engineer["id"]
        assert updated["contractor_id"] is None
        assert updated["address"] == "New address"

    def test_moving_division_request_to_town(self, client, admin, geo):
        created = _create(client, admin, geo, town_id=None, division_id=geo["division"]["id"])
        assert created["zone_id"] == geo["zone"]["id"]
        res = client.put(f"/api/requests/{created['id']}", json={"town_id": geo["town"]["id"]}, headers=admin["headers"])
        updated = res.json()["request"]
        assert updated["town_id"] == geo["town"]["id"]
        assert updated["district_id"] == geo["district"]["id"]
        assert updated["division_id"] is None
        assert updated["zone_id"] is None

    def test_assigning_sm_agents_notifies_them(self, client, admin, make_user, geo):
        created = _create(client, admin, geo)
        agent = make_user("sm_agent", user_type="socialmedia")
        client.put(f"/api/requests/{created['id']}", json={
            "assigned_sm_agents": [{"sm_agent_id": agent["id"]}],
        }, headers=admin["headers"])
        notes = client.get("/api/notifications", headers=agent["headers"]).json()["notifications"]
        assert notes[0]["type"] == "assignment"

    def test_only_admin_level_can_delete(self, client, admin, make_user, geo):
        created = _create(client, admin, geo)
        assistant = make_user("assistant")
        assert client.delete(f"/api/requests/{created['id']}", headers=assistant["headers"]).status_code == 403
        res = client.delete(f"/api/requests/{created['id']}", headers=admin["headers"])
        assert res.status_code == 200
        assert client.get(f"/api/requests/{created['id']}", headers=admin["headers"]).status_code == 404

    def test_delete_removes_media_records(self, client, admin, geo):
        created = _create(client, admin, geo)
        insert("media", work_request_id=created["id"], media_type="image", file_name="a.png",
               file_path="images/a.png", link="/uploads/images/a.png", creator_id=admin["id"], creator_type="user")
        res = client.delete(f"/api/requests/{created['id']}", headers=admin["headers"])
        assert res.json()["media_removed"] == 1
