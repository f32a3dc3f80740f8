"""
Tests for login, token handling and the signed-in user's profile.
"""
from conftest import PASSWORD, run


class TestLogin:

    def test_login_returns_token_and_user(self, client, make_user):
        user = make_user("assistant", email="clerk@worksportal.gov.pk")
        res = client.post("/api/auth/login", json={"email": "clerk@worksportal.gov.pk", "password": PASSWORD})
        assert res.status_code == 200
        body = res.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["id"] == user["id"]
        assert "password" not in body["user"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json()["email"] == "clerk@worksportal.gov.pk"

    def test_wrong_password(self, client, make_user):
        make_user("assistant", email="clerk@worksportal.gov.pk")
        res = client.post("/api/auth/login", json={"email": "clerk@worksportal.gov.pk", "password": "nope"})
        assert res.status_code == 401
        assert res.json()["detail"] == "Invalid credentials"

    def test_unknown_email(self, client):
        res = client.post("/api/auth/login", json={"email": "ghost@worksportal.gov.pk", "password": PASSWORD})
        assert res.status_code == 401

    def test_inactive_account(self, client, make_user):
        make_user("assistant", email="gone@worksportal.gov.pk", is_active=False)
        res = client.post("/api/auth/login", json={"email": "gone@worksportal.gov.pk", "password": PASSWORD})
        assert res.status_code == 401
        assert res.json()["detail"] == "Account is inactive"

    def test_login_is_audited(self, client, make_user):
        from database import db
        make_user("assistant", email="clerk@worksportal.gov.pk")
        client.post("/api/auth/login", json={"email": "clerk@worksportal.gov.pk", "password": PASSWORD})
        entry = run(db.audit_logs.find_one({"action": "LOGIN"}, {"_id": 0}))
        assert entry["module"] == "auth"


class TestProfile:

    def test_refresh_issues_new_token(self, client, make_user):
        user = make_user("assistant")
        res = client.post("/api/auth/refresh", headers=user["headers"])
        assert res.status_code == 200
        assert res.json()["user"]["id"] == user["id"]

    def test_update_profile(self, client, make_user):
        user = make_user("assistant")
        res = client.patch("/api/auth/profile", json={"name": "Renamed"}, headers=user["headers"])
        assert res.status_code == 200
        assert res.json()["name"] == "Renamed"

    def test_update_profile_requires_fields(self, client, make_user):
        user = make_user("assistant")
        assert client.patch("/api/auth/profile", json={}, headers=user["headers"]).status_code == 400

    def test_duplicate_email_rejected(self, client, make_user):
        make_user("assistant", email="taken@worksportal.gov.pk")
        user = make_user("assistant")
        res = client.patch("/api/auth/profile", json={"email": "taken@worksportal.gov.pk"}, headers=user["headers"])
        assert res.status_code == 400

    def test_change_password(self, client, make_user):
        user = make_user("assistant", email="clerk@worksportal.gov.pk")
        res = client.post("/api/auth/change-password", json={"current_password": PASSWORD, "new_password": "newsecret"}, headers=user["headers"])
        assert res.status_code == 200
        login = client.post("/api/auth/login", json={"email": "clerk@worksportal.gov.pk", "password": "newsecret"})
        assert login.status_code == 200

    def test_change_password_checks_current(self, client, make_user):
        user = make_user("assistant")
        res = client.post("/api/auth/change-password", json={"current_password": "wrong", "new_password": "newsecret"}, headers=user["headers"])
        assert res.status_code == 400

    def test_short_new_password(self, client, make_user):
        user = make_user("assistant")
        res = client.post("/api/auth/change-password", json={"current_password": PASSWORD, "new_password": "abc"}, headers=user["headers"])
        assert res.status_code == 400

    def test_permissions_for_admin_level(self, client, make_user):
        manager = make_user("manager")
        perms = client.get("/api/auth/permissions", headers=manager["headers"]).json()["permissions"]
        assert perms["efiling_admin"]["delete"] is True

    def test_permissions_from_role(self, client, make_user):
        contractor = make_user("contractor", user_type="agent")
        body = client.get("/api/auth/permissions", headers=contractor["headers"]).json()
        assert body["role"] == "contractor"
        assert body["permissions"]["requests"]["create"] is True
        assert "efiling" not in body["permissions"]
