from fastapi import APIRouter, Depends, Response

from core.security.dependencies import get_authentication, require_auth
from schemas.user import UserPublic
from services.user.auth import Authentication

router = APIRouter(tags=["Home"])

@router.get("/")
async def read_root(
    response: Response,
    authentication: Authentication = Depends(get_authentication),
):
    authentication.apply(response)
    user = UserPublic.model_validate(authentication.user).model_dump(mode="json") if authentication.user else None
    return {"message": "Behindy Blog API", "user": user}

@router.get("/account", response_model=UserPublic)
async def read_account(
    response: Response,
    authentication: Authentication = Depends(require_auth()),
):
    """로그인이 필요한 페이지. 비로그인이면 /login?redirectTo=/account"""
    authentication.apply(response)
    return authentication.user
