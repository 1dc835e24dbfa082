from fastapi import APIRouter, Depends, Response

from core.security.dependencies import get_current_user
from schemas.user import UserPublic
from services.user.auth import Authentication

router = APIRouter(
    prefix="/users",
    tags=["User-Profile"],
)

@router.get("/me", response_model=UserPublic)
async def read_users_me(
    response: Response,
    authentication: Authentication = Depends(get_current_user),
):
    """현재 로그인된 사용자 정보 반환 (토큰이 갱신됐으면 새 쿠키도 설정)"""
    authentication.apply(response)
    return authentication.user
