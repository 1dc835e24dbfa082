import secrets
import time
from datetime import timedelta
from typing import Callable
from jose import JWTError, jwt

from core.config import Settings
from schemas.token import TokenPayload, TokenClaims

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

class TokenCodec:
    """
    Access/Refresh Token (JWT) 서명 및 검증
    두 토큰은 서로 다른 비밀키로 서명되므로 한쪽 키가 유출돼도 다른 쪽 토큰은 위조할 수 없음
    """
    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], float] = time.time,
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.time) -> "TokenCodec":
        return cls(
            access_secret=settings.ACCESS_TOKEN_SECRET,
            refresh_secret=settings.REFRESH_TOKEN_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            clock=clock,
        )

    def generate_access_token(self, payload: TokenPayload) -> str:
        """
        Access Token 생성 (기본 15분)
        """
        return self._encode(payload, ACCESS_TOKEN_TYPE, self.access_ttl, self.access_secret)

    def generate_refresh_token(self, payload: TokenPayload) -> str:
        """
        Refresh Token 생성 (기본 7일)
        jti를 넣어 같은 초에 발급돼도 서로 다른 문자열이 되도록 함
        """
        return self._encode(
            payload,
            REFRESH_TOKEN_TYPE,
            self.refresh_ttl,
            self.refresh_secret,
            jti=secrets.token_hex(16),
        )

    def verify_access_token(self, token: str) -> TokenClaims | None:
        return self._decode(token, ACCESS_TOKEN_TYPE, self.access_secret)

    def verify_refresh_token(self, token: str) -> TokenClaims | None:
        return self._decode(token, REFRESH_TOKEN_TYPE, self.refresh_secret)

    def _encode(self, payload: TokenPayload, token_type: str, ttl: timedelta, secret: str, **extra) -> str:
        issued_at = int(self.clock())

        to_encode = {
            "sub": str(payload.user_id), # JWT 표준상 sub는 문자열로 변환
            "email": payload.email,
            "role": payload.role,
            "type": token_type,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
            **extra,
        }
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> TokenClaims | None:
        if not token:
            return None

        try:
            # 만료 판정은 주입된 clock 기준으로 직접 수행
            claims = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        if claims.get("type") != token_type:
            return None

        exp = claims.get("exp")
        iat = claims.get("iat")
        if not isinstance(exp, int) or not isinstance(iat, int):
            return None

        # 만료 시각과 정확히 같은 시점도 만료로 취급
        if self.clock() >= exp:
            return None

        try:
            user_id = int(claims.get("sub"))
        except (TypeError, ValueError):
            return None

        email = claims.get("email")
        role = claims.get("role")
        if not isinstance(email, str) or not isinstance(role, str):
            return None

        return TokenClaims(user_id=user_id, email=email, role=role, iat=iat, exp=exp)
