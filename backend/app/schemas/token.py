from pydantic import BaseModel

class TokenPayload(BaseModel):
    """
    Access/Refresh Token에 공통으로 담기는 사용자 정보
    """
    user_id: int
    email: str
    role: str

    @classmethod
    def from_user(cls, user) -> "TokenPayload":
        return cls(user_id=user.user_id, email=user.email, role=user.role.value)

class TokenClaims(TokenPayload):
    """
    검증된 토큰에서 복원한 페이로드 + 발급/만료 시각 (epoch seconds)
    """
    iat: int
    exp: int

class GoogleTokenRequest(BaseModel):
    """
    클라이언트(Google Identity Services)가 전달하는 ID 토큰
    """
    token: str
    redirectTo: str = "/"
