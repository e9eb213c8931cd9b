"""
Authentication route tests.

Verifies:
- Login issues a bearer token; bad credentials return 401
- Protected endpoints return 401 without a valid token
- Logout revokes the token
"""

import pytest


TEST_PASSWORD = "Password123!"


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/vendors"),
            ("POST", "/api/vendors"),
            ("GET", "/api/vendors/trash"),
            ("DELETE", "/api/vendors/1"),
            ("GET", "/api/purchase-orders"),
            ("POST", "/api/purchase-orders"),
            ("PUT", "/api/purchase-orders/1/status"),
            ("POST", "/api/purchase-orders/1/payments"),
            ("DELETE", "/api/purchase-orders/1/permanent"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_token(self, client, db_session):
        resp = client.get("/api/vendors", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


class TestLogin:

    def test_login_and_me(self, client, user):
        resp = client.post("/api/auth/login", json={"email": "ADMIN@bizzflow.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["email"] == user.email
        assert len(body["token"]) == 64

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == user.id

    def test_wrong_password(self, client, user):
        resp = client.post("/api/auth/login", json={"email": user.email, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "someone@bizzflow.test"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, user):
        user.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
        assert resp.status_code == 401


class TestLogout:

    def test_logout_revokes_token(self, client, auth_headers):
        resp = client.post("/api/auth/logout", headers=auth_headers)
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers)
        assert resp.status_code == 401


class TestSystemEndpoints:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    def test_version(self, client):
        resp = client.get("/version")
        assert resp.status_code == 200
        assert "api_version" in resp.get_json()

    def test_request_id_is_echoed(self, client):
        resp = client.get("/version", headers={"X-Request-ID": "abc123"})
        assert resp.headers["X-Request-ID"] == "abc123"

    def test_cors_for_allowed_origin(self, client):
        resp = client.get("/version", headers={"Origin": "http://localhost:3000"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"

        resp = client.get("/version", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers
