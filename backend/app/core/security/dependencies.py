from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import LoginRequiredError
from services.user.auth import AuthService, Authentication

def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service

async def get_authentication(
    request: Request,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
) -> Authentication:
    """
    세션 쿠키로 인증 시도 (비로그인이어도 예외 없음)
    """
    return await auth_service.authenticate_user(db, request)

async def get_current_user(
    authentication: Authentication = Depends(get_authentication),
) -> Authentication:
    """
    (API용) 로그인하지 않았으면 401 JSON
    """
    if not authentication.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return authentication

def require_auth(redirect_to: str | None = None):
    """
    (페이지용) 로그인하지 않았으면 /login?redirectTo=... 로 리다이렉트
    redirect_to를 생략하면 현재 요청 경로로 돌아옴
    """
    async def dependency(
        request: Request,
        authentication: Authentication = Depends(get_authentication),
    ) -> Authentication:
        if not authentication.is_authenticated:
            raise LoginRequiredError(redirect_to or request.url.path)
        return authentication

    return dependency

async def require_admin(
    authentication: Authentication = Depends(get_current_user),
) -> Authentication:
    """
    관리자 권한 확인
    """
    if not authentication.user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="관리자 권한이 필요합니다.")
    return authentication
