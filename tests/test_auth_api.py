"""Tests for login, refresh, logout and the grant snapshot."""

from routeguard.core.security import decode_token
from routeguard.models.employee import Employee
from tests.conftest import PASSWORD, auth_headers, grant


def login(client, username, password=PASSWORD):
    return client.post("/api/auth/login", json={"username": username, "password": password})


class TestLogin:
    """Credentials in, tokens and a grant snapshot out."""

    def test_standard_role_snapshot(self, client, seeded):
        resp = login(client, "clerk")
        assert resp.status_code == 200
        user = resp.json()["user"]
        assert user["role"] == "Order Clerk"
        assert user["role_class"] == "standard"
        assert user["landing_page"] == "/operations/create-order"
        assert user["grants"] == {"orders": ["view", "modify"], "roles": ["view"]}

    def test_bypass_role_snapshot_has_no_grants(self, client, seeded):
        user = login(client, "superadmin").json()["user"]
        assert user["role_class"] == "bypass"
        assert user["grants"] == {}

    def test_role_class_carried_in_token(self, client, seeded):
        body = login(client, "admin").json()
        claims = decode_token(body["access_token"])
        assert claims["role_class"] == "bypass"
        assert claims["role"] == "Admin"

    def test_sets_auth_cookie(self, client, seeded):
        resp = login(client, "clerk")
        assert resp.cookies.get("auth_token") == resp.json()["access_token"]

    def test_wrong_password(self, client, seeded):
        resp = login(client, "clerk", "wrong-password")
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "message": "Invalid credentials"}

    def test_unknown_user(self, client, seeded):
        assert login(client, "ghost").status_code == 401

    def test_inactive_employee(self, client, seeded, db):
        employee = db.query(Employee).filter(Employee.username == "trainee").one()
        employee.is_active = False
        db.commit()
        resp = login(client, "trainee")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Account is inactive"

    def test_default_landing_page(self, client, seeded):
        assert login(client, "trainee").json()["user"]["landing_page"] == "/dashboard"


class TestSession:
    """Refresh re-materializes grants; logout revokes refresh tokens."""

    def test_me(self, client, seeded):
        resp = client.get("/api/auth/me", headers=auth_headers(seeded.employees["clerk"]))
        assert resp.status_code == 200
        assert resp.json()["data"]["username"] == "clerk"

    def test_me_requires_token(self, client, seeded):
        assert client.get("/api/auth/me").status_code == 401

    def test_refresh_picks_up_new_grants(self, client, seeded, db):
        body = login(client, "trainee").json()
        assert body["user"]["grants"] == {}

        grant(db, seeded.roles["Trainee"], seeded.permissions["reports"], ["view"])
        resp = client.post("/api/auth/refresh", json={"refresh_token": body["refresh_token"]})

        assert resp.status_code == 200
        assert resp.json()["user"]["grants"] == {"reports": ["view"]}
        assert decode_token(resp.json()["access_token"])["username"] == "trainee"

    def test_access_token_cannot_refresh(self, client, seeded):
        body = login(client, "clerk").json()
        resp = client.post("/api/auth/refresh", json={"refresh_token": body["access_token"]})
        assert resp.status_code == 401

    def test_logout_revokes_refresh(self, client, seeded):
        body = login(client, "clerk").json()
        headers = {"Authorization": f"Bearer {body['access_token']}"}

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        resp = client.post("/api/auth/refresh", json={"refresh_token": body["refresh_token"]})

        assert resp.status_code == 401
