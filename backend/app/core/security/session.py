import logging
from dataclasses import dataclass
from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from itsdangerous import BadData, URLSafeTimedSerializer

from core.config import Settings

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 60 * 60 * 24 * 7

@dataclass(frozen=True)
class SessionData:
    """
    쿠키에 담기는 세션 내용 (서버에는 저장하지 않음)
    """
    access_token: str | None = None
    session_id: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None and self.session_id is None

    def to_dict(self) -> dict:
        return {"accessToken": self.access_token, "sessionId": self.session_id}

    @classmethod
    def from_dict(cls, data) -> "SessionData":
        if not isinstance(data, dict):
            return cls()

        access_token = data.get("accessToken")
        session_id = data.get("sessionId")
        return cls(
            access_token=access_token if isinstance(access_token, str) and access_token else None,
            session_id=session_id if isinstance(session_id, int) and not isinstance(session_id, bool) else None,
        )

@dataclass(frozen=True)
class CookieUpdate:
    """
    응답에 반드시 적용해야 하는 세션 쿠키 변경분 (설정 또는 삭제)
    """
    name: str
    value: str | None
    max_age: int
    secure: bool

    def apply(self, response: Response) -> Response:
        if self.value is None:
            response.delete_cookie(
                key=self.name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
        else:
            response.set_cookie(
                key=self.name,
                value=self.value,
                max_age=self.max_age,
                httponly=True,            # JS가 접근하지 못하도록
                secure=self.secure,       # production에서만 HTTPS 전송
                samesite="lax",           # CSRF 방어
                path="/",
            )
        return response

class SessionCookieCarrier:
    """
    서명된 세션 쿠키 (accessToken, sessionId) 읽기/쓰기
    """
    def __init__(
        self,
        secret: str,
        cookie_name: str = "__session",
        secure: bool = False,
        max_age: int = SESSION_MAX_AGE,
    ):
        self.cookie_name = cookie_name
        self.secure = secure
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret, salt="session")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionCookieCarrier":
        return cls(
            secret=settings.SESSION_SECRET,
            cookie_name=settings.SESSION_COOKIE_NAME,
            secure=settings.is_production,
            max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        )

    def read(self, request: Request) -> SessionData:
        raw = request.cookies.get(self.cookie_name)
        return self.loads(raw)

    def loads(self, raw: str | None) -> SessionData:
        if not raw:
            return SessionData()

        try:
            data = self._serializer.loads(raw, max_age=self.max_age)
        except BadData:
            # 위조/만료된 쿠키는 빈 세션으로 취급
            logger.warning("⚠️ 세션 쿠키 서명 검증 실패")
            return SessionData()

        return SessionData.from_dict(data)

    def dumps(self, session: SessionData) -> str:
        return self._serializer.dumps(session.to_dict())

    def commit(self, session: SessionData) -> CookieUpdate:
        return CookieUpdate(
            name=self.cookie_name,
            value=self.dumps(session),
            max_age=self.max_age,
            secure=self.secure,
        )

    def destroy(self) -> CookieUpdate:
        return CookieUpdate(name=self.cookie_name, value=None, max_age=0, secure=self.secure)

    def create_user_session(self, access_token: str, session_id: int, redirect_to: str) -> RedirectResponse:
        """
        새 세션 쿠키를 만들고 redirect_to로 리다이렉트
        """
        cookie = self.commit(SessionData(access_token=access_token, session_id=session_id))
        response = RedirectResponse(url=redirect_to, status_code=status.HTTP_303_SEE_OTHER)
        return cookie.apply(response)

def safe_redirect_path(path: str | None, default: str = "/") -> str:
    """
    같은 사이트 내부 경로만 허용 (외부 URL, //host 형태는 default로 대체)
    """
    if not isinstance(path, str) or not path.startswith("/") or path.startswith("//") or "\\" in path:
        return default
    return path
