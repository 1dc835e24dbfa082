import logging
from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import InvalidCredentialsError
from core.security.dependencies import get_auth_service, get_authentication
from core.security.session import safe_redirect_path
from services.user.auth import AuthService, Authentication

logger = logging.getLogger(__name__)
router = APIRouter(tags=['User-General'])

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72 # bcrypt 제한

def form_errors(status_code: int = status.HTTP_400_BAD_REQUEST, **errors) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"errors": errors})

@router.get("/login")
async def login_page(
    redirectTo: str = Query("/"),
    error: str | None = Query(None),
    authentication: Authentication = Depends(get_authentication),
):
    """
    이미 로그인한 사용자는 홈으로 이동
    """
    if authentication.is_authenticated:
        response = RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
        return authentication.apply(response)

    return JSONResponse(content={"redirectTo": safe_redirect_path(redirectTo), "error": error})

@router.post("/login")
async def login(
    email: str = Form(""),
    password: str = Form(""),
    redirectTo: str = Form("/"),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    일반 로그인 (이메일 + 비밀번호)
    """
    if not email:
        return form_errors(email="Email is required", password=None)

    if not password:
        return form_errors(email=None, password="Password is required")

    try:
        result = await auth_service.login(db, email, password)
    except InvalidCredentialsError as e:
        # 없는 이메일과 틀린 비밀번호를 구분하지 않음
        return form_errors(email=e.message, password=None)
    except SQLAlchemyError as e:
        logger.error(f"⛔ 로그인 처리 중 예외 발생: {e}", exc_info=True)
        return form_errors(status.HTTP_500_INTERNAL_SERVER_ERROR, email="로그인 중 오류가 발생했습니다.", password=None)

    return auth_service.create_user_session(result.access_token, result.session_id, redirectTo)

@router.post("/register")
async def register(
    email: str = Form(""),
    password: str = Form(""),
    name: str = Form(""),
    redirectTo: str = Form("/"),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    일반 회원가입 후 바로 로그인
    """
    errors = {
        "email": None if email else "이메일을 입력해주세요",
        "password": None if password else "비밀번호를 입력해주세요",
        "name": None if name else "이름을 입력해주세요",
    }
    if any(errors.values()):
        return form_errors(**errors)

    if len(password) < MIN_PASSWORD_LENGTH:
        return form_errors(email=None, password="비밀번호는 최소 6자 이상이어야 합니다", name=None)

    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return form_errors(email=None, password="비밀번호가 너무 깁니다", name=None)

    try:
        if await auth_service.users.check_email_exists(db, email):
            return form_errors(email="이미 사용 중인 이메일입니다", password=None, name=None)

        result = await auth_service.register(db, email=email, password=password, name=name)
    except SQLAlchemyError as e:
        logger.error(f"⛔ 회원가입 중 예외 발생: {e}", exc_info=True)
        return form_errors(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            email="계정 생성 중 오류가 발생했습니다",
            password=None,
            name=None,
        )

    return auth_service.create_user_session(result.access_token, result.session_id, redirectTo)

@router.post("/logout")
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    return await auth_service.logout(db, request)
