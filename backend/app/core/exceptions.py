"""
앱 공통 예외 정의

서비스 계층은 이 예외들을 발생시키고, 라우터/예외 핸들러가
리다이렉트 또는 JSON 오류 응답으로 변환한다.
"""
import enum
from typing import Any

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError


class AppError(Exception):
    """모든 앱 예외의 기반 클래스"""

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class InvalidCredentialsError(AppError):
    """이메일 또는 비밀번호 불일치 (어느 쪽인지 구분하지 않음)"""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class OAuthExchangeError(AppError):
    """외부 OAuth 제공자와의 코드 교환/프로필 조회 실패"""

    def __init__(self, message: str, provider: str = "google", code: str = "OAUTH_EXCHANGE_FAILED"):
        super().__init__(message, code=code, details={"provider": provider})
        self.provider = provider


class LoginRequiredError(AppError):
    """로그인이 필요한 페이지 접근 → /login?redirectTo=... 로 리다이렉트"""

    def __init__(self, redirect_to: str = "/"):
        super().__init__("Login required", code="LOGIN_REQUIRED", details={"redirect_to": redirect_to})
        self.redirect_to = redirect_to


class PersistenceErrorKind(str, enum.Enum):
    CONNECTION_RESET = "connection_reset"
    UNAVAILABLE = "unavailable"
    INTEGRITY = "integrity"
    UNKNOWN = "unknown"


class PersistenceError(AppError):
    """DB 계층 오류. kind로 분류됨"""

    def __init__(self, kind: PersistenceErrorKind, message: str = "Database error"):
        super().__init__(message, code="PERSISTENCE_ERROR", details={"kind": kind.value})
        self.kind = kind


def classify_db_error(exc: Exception) -> PersistenceErrorKind:
    """SQLAlchemy 예외를 PersistenceErrorKind로 변환"""
    if isinstance(exc, IntegrityError):
        return PersistenceErrorKind.INTEGRITY
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return PersistenceErrorKind.CONNECTION_RESET
    if isinstance(exc, (OperationalError, InterfaceError)):
        return PersistenceErrorKind.UNAVAILABLE
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError)):
        return PersistenceErrorKind.CONNECTION_RESET
    return PersistenceErrorKind.UNKNOWN
