from datetime import datetime
from pydantic import BaseModel, ConfigDict

from models.user import UserRole

class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    email: str
    name: str
    role: UserRole
    profile_image: str | None = None
    is_social: bool
    created_at: datetime | None = None

class LoginResult(BaseModel):
    """
    로그인/회원가입 성공 결과
    (Refresh Token은 서버에만 저장되므로 포함하지 않음)
    """
    user: UserPublic
    access_token: str
    session_id: int

class GoogleProfile(BaseModel):
    """
    구글 userinfo / tokeninfo 응답에서 필요한 값만 추출
    """
    email: str
    name: str | None = None
    picture: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0]
