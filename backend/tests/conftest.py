"""
공통 테스트 fixture

- 인메모리 SQLite (aiosqlite) Database
- 시간을 직접 움직일 수 있는 FakeClock
- httpx.MockTransport 기반 구글 OAuth 스텁
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-google-client-secret")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import time

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.database import Database
from core.security.hashing import hash_password
from main import create_app
from models.user import User, UserRole
from services.user.auth import AuthService

import models  # noqa: F401  (테이블 메타데이터 등록)


class FakeClock:
    """epoch seconds를 돌려주는 조작 가능한 시계"""

    def __init__(self, start: float | None = None):
        self.now = float(int(start if start is not None else time.time()))

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class GoogleStub:
    """구글 token / userinfo / tokeninfo 엔드포인트 흉내"""

    def __init__(self):
        self.token_status = 200
        self.token_json: dict = {"access_token": "google-access-token", "token_type": "Bearer"}
        self.userinfo_status = 200
        self.userinfo_json: dict = {
            "sub": "1234567890",
            "email": "google-user@example.com",
            "name": "Google User",
            "picture": "https://lh3.googleusercontent.com/a/picture-1",
        }
        self.tokeninfo_status = 200
        self.tokeninfo_json: dict = {
            "aud": "test-google-client-id",
            "email": "id-token-user@example.com",
            "name": "ID Token User",
            "picture": "https://lh3.googleusercontent.com/a/id-token-picture",
        }
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com" and request.url.path == "/token":
            return httpx.Response(self.token_status, json=self.token_json)
        if request.url.host == "www.googleapis.com" and request.url.path == "/oauth2/v3/userinfo":
            return httpx.Response(self.userinfo_status, json=self.userinfo_json)
        if request.url.host == "oauth2.googleapis.com" and request.url.path == "/tokeninfo":
            return httpx.Response(self.tokeninfo_status, json=self.tokeninfo_json)
        return httpx.Response(404, json={"error": "not_found"})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def google_stub() -> GoogleStub:
    return GoogleStub()


@pytest.fixture
def auth_service(clock: FakeClock, google_stub: GoogleStub) -> AuthService:
    return AuthService.from_settings(
        settings,
        clock=clock,
        google_transport=httpx.MockTransport(google_stub),
    )


@pytest_asyncio.fixture
async def database():
    database = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await database.connect()
    await database.init_db()
    yield database
    await database.disconnect()


@pytest_asyncio.fixture
async def db(database: Database):
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(database: Database):
    """비밀번호 사용자 생성 헬퍼"""

    async def _make_user(
        email: str = "a@example.com",
        password: str = "pw123456",
        name: str = "Tester",
        role: UserRole = UserRole.USER,
    ) -> User:
        async with database.session() as session:
            user = User(email=email, name=name, hashed_password=hash_password(password), role=role)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make_user


@pytest.fixture
def app(database: Database, auth_service: AuthService):
    return create_app(database=database, auth_service=auth_service)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
