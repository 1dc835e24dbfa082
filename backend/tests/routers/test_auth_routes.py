from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import func, select

from models.refresh_token import RefreshToken
from models.user import User, UserRole
from core.security.dependencies import require_admin
from services.oauth.google import decode_state, encode_state
from services.user.auth import Authentication, AuthState

ACCESS_TTL = 15 * 60


async def login(client, email="a@example.com", password="pw123456", redirect_to="/"):
    return await client.post("/login", data={"email": email, "password": password, "redirectTo": redirect_to})


async def count_rows(database, model) -> int:
    async with database.session() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestLoginRoute:
    @pytest.mark.asyncio
    async def test_login_sets_session_and_redirects(self, client, make_user):
        await make_user()

        response = await login(client, redirect_to="/blog/new")

        assert response.status_code == 303
        assert response.headers["location"] == "/blog/new"
        assert "__session" in client.cookies

        me = await client.get("/users/me")
        assert me.status_code == 200
        assert me.json()["email"] == "a@example.com"
        assert me.json()["is_social"] is False

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, client, make_user):
        await make_user()

        wrong_password = await login(client, password="nope-nope")
        unknown_email = await login(client, email="nobody@example.com")

        assert wrong_password.status_code == 400
        assert wrong_password.json() == unknown_email.json() == {
            "errors": {"email": "Invalid credentials", "password": None}
        }

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        response = await client.post("/login", data={"password": "pw123456"})
        assert response.status_code == 400
        assert response.json()["errors"]["email"] == "Email is required"

        response = await client.post("/login", data={"email": "a@example.com"})
        assert response.json()["errors"]["password"] == "Password is required"

    @pytest.mark.asyncio
    async def test_external_redirect_is_not_followed(self, client, make_user):
        await make_user()
        response = await login(client, redirect_to="https://evil.example.com")
        assert response.headers["location"] == "/"

    @pytest.mark.asyncio
    async def test_login_page_redirects_authenticated_user(self, client, make_user):
        await make_user()
        await login(client)

        response = await client.get("/login")
        assert response.status_code == 303
        assert response.headers["location"] == "/"

    @pytest.mark.asyncio
    async def test_login_page_for_anonymous(self, client):
        response = await client.get("/login", params={"redirectTo": "/account", "error": "google_auth_failed"})
        assert response.status_code == 200
        assert response.json() == {"redirectTo": "/account", "error": "google_auth_failed"}


class TestRegisterRoute:
    @pytest.mark.asyncio
    async def test_register_logs_in(self, client, database):
        response = await client.post(
            "/register",
            data={"email": "a@example.com", "password": "pw123456", "name": "A", "redirectTo": "/blog"},
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/blog"
        me = await client.get("/users/me")
        assert me.json()["email"] == "a@example.com"
        assert me.json()["role"] == "USER"
        assert await count_rows(database, RefreshToken) == 1

    @pytest.mark.asyncio
    async def test_required_fields(self, client):
        response = await client.post("/register", data={"email": "a@example.com"})

        assert response.status_code == 400
        assert response.json()["errors"] == {
            "email": None,
            "password": "비밀번호를 입력해주세요",
            "name": "이름을 입력해주세요",
        }

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post("/register", data={"email": "a@example.com", "password": "12345", "name": "A"})
        assert response.status_code == 400
        assert response.json()["errors"]["password"] == "비밀번호는 최소 6자 이상이어야 합니다"

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client, make_user, database):
        await make_user()
        response = await client.post("/register", data={"email": "a@example.com", "password": "pw123456", "name": "A"})

        assert response.status_code == 400
        assert response.json()["errors"]["email"] == "이미 사용 중인 이메일입니다"
        assert await count_rows(database, User) == 1


class TestProtectedRoutes:
    @pytest.mark.asyncio
    async def test_api_route_returns_401_json(self, client):
        response = await client.get("/users/me")
        assert response.status_code == 401
        assert response.json() == {"detail": "Could not validate credentials"}

    @pytest.mark.asyncio
    async def test_page_route_redirects_to_login(self, client):
        response = await client.get("/account")

        assert response.status_code == 303
        location = urlparse(response.headers["location"])
        assert location.path == "/login"
        assert parse_qs(location.query) == {"redirectTo": ["/account"]}

    @pytest.mark.asyncio
    async def test_silent_refresh_reissues_cookie(self, client, make_user, clock):
        """access token 만료 후 요청 → 같은 사용자 + 새 세션 쿠키"""
        await make_user()
        await login(client)
        old_cookie = client.cookies["__session"]

        clock.advance(ACCESS_TTL + 1)
        response = await client.get("/account")

        assert response.status_code == 200
        assert response.json()["email"] == "a@example.com"
        assert "__session=" in response.headers["set-cookie"]
        assert client.cookies["__session"] != old_cookie

        # 갱신된 쿠키로는 추가 갱신 없이 통과
        again = await client.get("/users/me")
        assert again.status_code == 200
        assert "set-cookie" not in again.headers

    @pytest.mark.asyncio
    async def test_home_reports_current_user(self, client, make_user):
        anonymous = await client.get("/")
        assert anonymous.json()["user"] is None

        await make_user()
        await login(client)
        response = await client.get("/")
        assert response.json()["user"]["email"] == "a@example.com"


class TestLogoutRoute:
    @pytest.mark.asyncio
    async def test_logout_clears_session(self, client, make_user, database):
        await make_user()
        await login(client)

        response = await client.post("/logout")

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        assert "__session" not in client.cookies
        assert await count_rows(database, RefreshToken) == 0
        assert (await client.get("/users/me")).status_code == 401


class TestGoogleRoutes:
    @pytest.mark.asyncio
    async def test_google_login_redirects_to_consent(self, client):
        response = await client.get("/auth/google", params={"redirectTo": "/blog"})

        assert response.status_code == 307
        location = urlparse(response.headers["location"])
        assert location.netloc == "accounts.google.com"
        assert decode_state(parse_qs(location.query)["state"][0]) == "/blog"

    @pytest.mark.asyncio
    async def test_callback_success(self, client, database):
        response = await client.get(
            "/auth/google/callback",
            params={"code": "auth-code", "state": encode_state("/blog/new")},
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/blog/new"
        me = await client.get("/users/me")
        assert me.json()["email"] == "google-user@example.com"
        assert me.json()["is_social"] is True

    @pytest.mark.asyncio
    async def test_callback_with_malformed_state(self, client):
        response = await client.get("/auth/google/callback", params={"code": "auth-code", "state": "@@@"})
        assert response.headers["location"] == "/"

    @pytest.mark.asyncio
    async def test_callback_error_param(self, client):
        response = await client.get("/auth/google/callback", params={"error": "access_denied"})

        assert response.status_code == 303
        assert response.headers["location"] == "/login?error=access_denied"

    @pytest.mark.asyncio
    async def test_callback_without_code(self, client):
        response = await client.get("/auth/google/callback")
        assert response.headers["location"] == "/login?error=missing_code"

    @pytest.mark.asyncio
    async def test_callback_exchange_failure(self, client, google_stub, database):
        google_stub.token_json = {}

        response = await client.get("/auth/google/callback", params={"code": "auth-code"})

        assert response.status_code == 303
        assert response.headers["location"] == "/login?error=google_auth_failed"
        assert "set-cookie" not in response.headers
        assert await count_rows(database, User) == 0

    @pytest.mark.asyncio
    async def test_google_token_api(self, client):
        response = await client.post("/api/auth/google-token", json={"token": "id-token", "redirectTo": "/blog"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "id-token-user@example.com"
        assert body["redirectTo"] == "/blog"
        assert (await client.get("/users/me")).status_code == 200

    @pytest.mark.asyncio
    async def test_google_token_api_invalid_token(self, client, google_stub):
        google_stub.tokeninfo_status = 400

        response = await client.post("/api/auth/google-token", json={"token": "bad"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid token"}


class TestRequireAdmin:
    @pytest.mark.asyncio
    async def test_admin_passes(self):
        admin = User(email="admin@example.com", name="Admin", role=UserRole.ADMIN)
        authentication = Authentication(state=AuthState.VALID_ACCESS, user=admin)

        assert await require_admin(authentication) is authentication

    @pytest.mark.asyncio
    async def test_regular_user_is_forbidden(self):
        from fastapi import HTTPException

        user = User(email="user@example.com", name="User", role=UserRole.USER)
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(Authentication(state=AuthState.VALID_ACCESS, user=user))
        assert exc_info.value.status_code == 403
