import enum
import logging
import time
import httpx
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from core.exceptions import InvalidCredentialsError, PersistenceError, PersistenceErrorKind, classify_db_error
from core.security.session import CookieUpdate, SessionCookieCarrier, SessionData, safe_redirect_path
from core.security.token import TokenCodec
from models.user import User
from schemas.token import TokenPayload
from schemas.user import LoginResult, UserPublic
from services.oauth.google import GoogleOAuthClient
from services.user.general import UserGeneralService, user_general_service
from services.user.social import UserSocialService, user_social_service
from services.user.token import RefreshTokenStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 오류 종류별 재시도 여부. 새 종류가 추가되면 여기에도 추가해야 함 (KeyError)
RETRY_ON_DB_ERROR: dict[PersistenceErrorKind, bool] = {
    PersistenceErrorKind.CONNECTION_RESET: True,
    PersistenceErrorKind.UNAVAILABLE: False,
    PersistenceErrorKind.INTEGRITY: False,
    PersistenceErrorKind.UNKNOWN: False,
}
MAX_DB_ATTEMPTS = 2

class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    VALID_ACCESS = "valid_access"
    EXPIRED_ACCESS_VALID_REFRESH = "expired_access_valid_refresh"
    EXPIRED_ACCESS_INVALID_REFRESH = "expired_access_invalid_refresh"

@dataclass(frozen=True)
class Authentication:
    """
    요청 인증 결과
    cookie가 있으면 (토큰 자동 갱신) 호출자가 응답에 반드시 apply 해야 함
    """
    state: AuthState
    user: User | None = None
    cookie: CookieUpdate | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def apply(self, response: Response) -> Response:
        if self.cookie is not None:
            self.cookie.apply(response)
        return response

class AuthService:
    def __init__(
        self,
        codec: TokenCodec,
        refresh_tokens: RefreshTokenStore,
        sessions: SessionCookieCarrier,
        google: GoogleOAuthClient,
        users: UserGeneralService = user_general_service,
        social: UserSocialService = user_social_service,
    ):
        self.codec = codec
        self.refresh_tokens = refresh_tokens
        self.sessions = sessions
        self.google = google
        self.users = users
        self.social = social

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        google_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AuthService":
        codec = TokenCodec.from_settings(settings, clock=clock)
        return cls(
            codec=codec,
            refresh_tokens=RefreshTokenStore.from_settings(settings, codec, clock=clock),
            sessions=SessionCookieCarrier.from_settings(settings),
            google=GoogleOAuthClient.from_settings(settings, transport=google_transport),
        )

    async def _start_session(self, db: AsyncSession, user: User) -> LoginResult:
        """
        Access Token 생성 + Refresh Token 생성/저장 (서버에만 저장)
        """
        payload = TokenPayload.from_user(user)
        access_token = self.codec.generate_access_token(payload)
        await self.refresh_tokens.issue_refresh_token(db, payload)

        return LoginResult(
            user=UserPublic.model_validate(user),
            access_token=access_token,
            session_id=user.user_id, # 세션 식별자로 사용자 ID 활용
        )

    async def login(self, db: AsyncSession, email: str, password: str) -> LoginResult:
        user = await self.users.authenticate(db, email, password)
        if user is None:
            raise InvalidCredentialsError()
        return await self._start_session(db, user)

    async def register(self, db: AsyncSession, email: str, password: str, name: str) -> LoginResult:
        user = await self.users.create_user_general(db, email=email, password=password, name=name)
        logger.info(f"✅ 신규 회원가입: user_id={user.user_id}")
        return await self._start_session(db, user)

    def create_user_session(self, access_token: str, session_id: int, redirect_to: str) -> RedirectResponse:
        return self.sessions.create_user_session(access_token, session_id, safe_redirect_path(redirect_to))

    async def authenticate_user(self, db: AsyncSession, request: Request) -> Authentication:
        """
        세션 쿠키로 사용자 인증
        Access Token이 만료됐으면 Refresh Token으로 새 Access Token을 발급 (Refresh Token은 교체)
        DB 오류는 인증 실패로 처리
        """
        session = self.sessions.read(request)
        try:
            return await self._resolve(db, session)
        except PersistenceError as e:
            logger.error(f"⛔ 인증 처리 중 DB 오류 ({e.kind.value}), 비로그인으로 처리합니다.")
            return Authentication(state=AuthState.UNAUTHENTICATED)

    async def _resolve(self, db: AsyncSession, session: SessionData) -> Authentication:
        if not session.access_token:
            return Authentication(state=AuthState.UNAUTHENTICATED)

        claims = self.codec.verify_access_token(session.access_token)
        if claims is not None:
            user = await self._with_db(db, lambda: self.users.get_user_by_id(db, claims.user_id))
            if user is None:
                return Authentication(state=AuthState.UNAUTHENTICATED)
            return Authentication(state=AuthState.VALID_ACCESS, user=user)

        if session.session_id is None:
            return Authentication(state=AuthState.UNAUTHENTICATED)

        return await self._refresh_user_session(db, session.session_id)

    async def _refresh_user_session(self, db: AsyncSession, session_id: int) -> Authentication:
        latest = await self._with_db(db, lambda: self.refresh_tokens.find_latest_for_user(db, session_id))
        if latest is None:
            return Authentication(state=AuthState.EXPIRED_ACCESS_INVALID_REFRESH)

        old_token = latest.token
        claims = self.codec.verify_refresh_token(old_token)
        if claims is None or claims.user_id != latest.user_id:
            # 유효하지 않은 토큰은 삭제
            await self._with_db(db, lambda: self.refresh_tokens.delete_refresh_token(db, old_token))
            return Authentication(state=AuthState.EXPIRED_ACCESS_INVALID_REFRESH)

        # 재시도 전 롤백이 ORM 객체를 만료시키므로 일반 값만 넘김
        user_id = latest.user_id
        payload = TokenPayload.from_user(latest.user)
        access_token = self.codec.generate_access_token(payload)

        await self._with_db(
            db,
            lambda: self.refresh_tokens.rotate_refresh_token(db, old_token, user_id, payload),
        )

        user = await self._with_db(db, lambda: self.users.get_user_by_id(db, user_id))
        if user is None:
            return Authentication(state=AuthState.EXPIRED_ACCESS_INVALID_REFRESH)

        cookie = self.sessions.commit(SessionData(access_token=access_token, session_id=user_id))
        return Authentication(state=AuthState.EXPIRED_ACCESS_VALID_REFRESH, user=user, cookie=cookie)

    async def _with_db(self, db: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
        """
        DB 작업 실행. 연결 리셋은 롤백 후 한 번 재시도, 그 외에는 PersistenceError
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except (SQLAlchemyError, OSError) as e:
                kind = classify_db_error(e)
                await db.rollback()

                if RETRY_ON_DB_ERROR[kind] and attempt < MAX_DB_ATTEMPTS:
                    logger.warning(f"⚠️ DB 연결 리셋 감지, 재시도합니다. ({attempt}/{MAX_DB_ATTEMPTS})")
                    continue

                raise PersistenceError(kind) from e

    async def logout(self, db: AsyncSession, request: Request) -> RedirectResponse:
        """
        세션 사용자의 모든 Refresh Token 삭제 + 쿠키 삭제 후 /login으로 이동
        """
        session = self.sessions.read(request)

        if session.session_id is not None:
            try:
                await self.refresh_tokens.delete_user_tokens(db, session.session_id)
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"⛔ Refresh Token 삭제 중 오류: {e}", exc_info=True)
                await db.rollback()

        response = RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)
        return self.sessions.destroy().apply(response)

    async def handle_google_login(self, db: AsyncSession, code: str, redirect_path: str = "/") -> RedirectResponse:
        """
        구글 로그인 콜백 처리
        1. 구글 토큰 요청
        2. 구글 사용자 정보 요청
        3. DB 사용자 조회/생성 (프로필 이미지 동기화)
        4. Access, Refresh 토큰 생성 + Refresh 토큰 DB 저장
        5. 세션 쿠키와 함께 redirect_path로 이동
        """
        google_access_token = await self.google.exchange_code(code)
        profile = await self.google.fetch_user_info(google_access_token)

        user = await self.social.get_or_create_user_social(db, profile)
        result = await self._start_session(db, user)

        return self.create_user_session(result.access_token, result.session_id, redirect_path)

    async def handle_google_id_token(self, db: AsyncSession, id_token: str) -> tuple[LoginResult, CookieUpdate]:
        """
        (Google Identity Services) ID 토큰으로 로그인
        """
        profile = await self.google.verify_id_token(id_token)

        user = await self.social.get_or_create_user_social(db, profile)
        result = await self._start_session(db, user)

        cookie = self.sessions.commit(SessionData(access_token=result.access_token, session_id=result.session_id))
        return result, cookie
