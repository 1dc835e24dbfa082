import logging
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from urllib.parse import urlencode

from core.database import get_db
from core.exceptions import OAuthExchangeError
from core.security.dependencies import get_auth_service
from core.security.session import safe_redirect_path
from schemas.token import GoogleTokenRequest
from services.oauth.google import decode_state
from services.user.auth import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=['User-Social'])

def login_error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(url=f"/login?{urlencode({'error': error})}", status_code=status.HTTP_303_SEE_OTHER)

@router.get('/auth/google')
async def google_login(
    redirectTo: str = Query("/"),
    auth_service: AuthService = Depends(get_auth_service),
):
    """구글 로그인 (로그인 후 돌아올 경로는 state에 담음)"""
    return RedirectResponse(url=auth_service.google.build_auth_url(safe_redirect_path(redirectTo)))

@router.get('/auth/google/callback')
async def google_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    구글 로그인 콜백 처리
    실패는 모두 /login?error=... 리다이렉트로 처리
    """
    if error:
        logger.warning(f"⚠️ 구글 로그인 거부/오류: {error}")
        return login_error_redirect(error)

    if not code:
        return login_error_redirect("missing_code")

    redirect_path = decode_state(state)

    try:
        return await auth_service.handle_google_login(db, code, redirect_path)
    except OAuthExchangeError as e:
        logger.warning(f"⚠️ 구글 로그인 실패: {e.code}")
        return login_error_redirect("google_auth_failed")
    except SQLAlchemyError as e:
        logger.error(f"⛔ 구글 콜백 처리 중 예외 발생: {e}", exc_info=True)
        return login_error_redirect("google_auth_failed")

@router.post('/api/auth/google-token')
async def google_token_login(
    body: GoogleTokenRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    (Google Identity Services 버튼) ID 토큰으로 로그인, JSON 응답 + 세션 쿠키
    """
    try:
        result, cookie = await auth_service.handle_google_id_token(db, body.token)
    except OAuthExchangeError as e:
        logger.warning(f"⚠️ 구글 ID 토큰 로그인 실패: {e.code}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"success": False, "error": "Invalid token"})
    except SQLAlchemyError as e:
        logger.error(f"⛔ 구글 ID 토큰 로그인 중 예외 발생: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "Authentication failed"},
        )

    response = JSONResponse(content={
        "success": True,
        "user": result.user.model_dump(mode="json", include={"user_id", "email", "name", "profile_image"}),
        "redirectTo": safe_redirect_path(body.redirectTo),
    })
    return cookie.apply(response)
