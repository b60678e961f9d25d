"""
Auth API tests — login, /me, and the access-control states
(no token, bad token, authenticated, role check).
"""

from datetime import timedelta

from httpx import AsyncClient

from app.core import security
from app.schemas.auth import TokenClaims, claims_for
from app.services import user_service
from tests.conftest import TEST_USER, bearer, make_user


class TestLogin:
    """POST /api/v1/auth/login"""

    async def test_login_with_username(self, app_client: AsyncClient, registered_user, token_service):
        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": TEST_USER["username"],
            "password": TEST_USER["password"],
        })
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["user"]["username"] == "testuser"
        assert data["user"]["lastLogin"] is not None
        assert token_service.verify(data["token"]).claims.username == "testuser"

    async def test_login_with_email_any_case(self, app_client: AsyncClient, registered_user):
        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": "TEST@example.com",
            "password": TEST_USER["password"],
        })
        assert resp.status_code == 200

    async def test_login_wrong_password(self, app_client: AsyncClient, registered_user):
        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": "testuser",
            "password": "wrongpassword",
        })
        assert resp.status_code == 401
        body = resp.json()
        assert body == {"success": False, "error": "Unauthenticated", "message": "Invalid credentials"}

    async def test_login_nonexistent_user(self, app_client: AsyncClient):
        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": "ghost",
            "password": "doesntmatter",
        })
        assert resp.status_code == 401

    async def test_unknown_identity_still_checks_a_hash(self, app_client: AsyncClient, monkeypatch):
        calls = []
        real_checkpw = security.bcrypt.checkpw

        def counting_checkpw(password, hashed):
            calls.append(password)
            return real_checkpw(password, hashed)

        monkeypatch.setattr(security.bcrypt, "checkpw", counting_checkpw)
        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": "ghost",
            "password": "doesntmatter",
        })
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials"
        assert calls == [b"doesntmatter"]

    async def test_login_inactive_user(self, app_client: AsyncClient, db_session):
        await make_user(db_session, username="sleepy", email="s@x.com", password="secret1")
        user = await user_service.find_by_email_or_username(db_session, "sleepy")
        await user_service.update_user(db_session, user.id, {"isActive": False})

        resp = await app_client.post("/api/v1/auth/login", json={
            "identifier": "sleepy",
            "password": "secret1",
        })
        assert resp.status_code == 403
        assert resp.json()["error"] == "Forbidden"


class TestMe:
    """GET /api/v1/auth/me"""

    async def test_me_authenticated(self, app_client: AsyncClient, auth_headers):
        resp = await app_client.get("/api/v1/auth/me", headers=auth_headers)
        assert resp.status_code == 200
        user = resp.json()["data"]["user"]
        assert user["username"] == "testuser"
        assert user["email"] == "test@example.com"
        assert user["isActive"] is True
        assert "password" not in user and "hashedPassword" not in user

    async def test_me_after_user_deleted(self, app_client: AsyncClient, registered_user, admin_headers):
        user_id = registered_user["user"]["id"]
        resp = await app_client.delete(f"/api/v1/users/{user_id}", headers=admin_headers)
        assert resp.status_code == 200

        resp = await app_client.get("/api/v1/auth/me", headers=bearer(registered_user["token"]))
        assert resp.status_code == 403
        assert resp.json()["error"] == "InvalidToken"


class TestAccessControl:
    """Token states on protected and role-gated routes."""

    async def test_no_token_is_unauthenticated(self, app_client: AsyncClient):
        resp = await app_client.get("/api/v1/users")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"
        assert resp.json() == {
            "success": False,
            "error": "Unauthenticated",
            "message": "No token provided",
        }

    async def test_non_bearer_scheme_is_unauthenticated(self, app_client: AsyncClient):
        resp = await app_client.get("/api/v1/users", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401

    async def test_invalid_token(self, app_client: AsyncClient):
        resp = await app_client.get("/api/v1/users", headers=bearer("invalid.token.here"))
        assert resp.status_code == 403
        assert resp.json()["error"] == "InvalidToken"

    async def test_expired_token(self, app_client: AsyncClient, registered_user, token_service):
        claims = TokenClaims(**{k: registered_user["user"][k] for k in ("id", "username", "email", "role")})
        token = token_service.issue(claims, ttl=timedelta(seconds=-1))
        resp = await app_client.get("/api/v1/users", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["error"] == "InvalidToken"

    async def test_valid_token_reaches_handler(self, app_client: AsyncClient, auth_headers):
        resp = await app_client.get("/api/v1/users", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["success"] is True

    async def test_role_outside_allowed_set_is_forbidden(self, app_client: AsyncClient, auth_headers):
        resp = await app_client.get("/api/v1/users/stats", headers=auth_headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == "Forbidden"

    async def test_matching_role_runs_handler(self, app_client: AsyncClient, db_session, token_service):
        mod = await make_user(
            db_session, username="mod", email="mod@x.com", password="secret1", role="moderator"
        )
        resp = await app_client.get(
            "/api/v1/users/stats", headers=bearer(token_service.issue(claims_for(mod)))
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["stats"]["total"] == 1

    async def test_role_check_is_case_sensitive(self, app_client: AsyncClient, admin_user, token_service):
        claims = claims_for(admin_user).model_copy(update={"role": "Admin"})
        resp = await app_client.get(
            "/api/v1/users/stats", headers=bearer(token_service.issue(claims))
        )
        assert resp.status_code == 403

    async def test_optional_auth_ignores_bad_token(self, app_client: AsyncClient):
        """Registration accepts a garbage token and treats the caller as anonymous."""
        resp = await app_client.post(
            "/api/v1/users",
            json={"username": "anon", "email": "anon@x.com", "password": "secret1"},
            headers=bearer("garbage"),
        )
        assert resp.status_code == 201
