import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from urllib.parse import urlencode

from core.config import settings
from core.database import Database
from core.exceptions import LoginRequiredError
from core.lifespan import lifespan
from routers import home, user_profile
from routers.auth import user_general, user_social
from services.user.auth import AuthService

def create_app(
    database: Database | None = None,
    auth_service: AuthService | None = None,
) -> FastAPI:
    app = FastAPI(lifespan=lifespan)

    # DB와 인증 서비스는 앱이 소유 (테스트에서는 직접 주입)
    app.state.database = database or Database(settings.DATABASE_URL)
    app.state.auth_service = auth_service or AuthService.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL], # 교차-출처 요청을 보낼 수 있는 출처의 리스트
        allow_credentials=True, # 교차-출처 요청시 쿠키 지원 여부를 설정
        allow_methods=["*"], # 교차-출처 요청을 허용하는 HTTP 메소드의 리스트
        allow_headers=["*"], # 교차-출처를 지원하는 HTTP 요청 헤더의 리스트
    )

    @app.exception_handler(LoginRequiredError)
    async def login_required_handler(request: Request, exc: LoginRequiredError):
        query = urlencode({"redirectTo": exc.redirect_to})
        return RedirectResponse(url=f"/login?{query}", status_code=status.HTTP_303_SEE_OTHER)

    # 라우터 연결
    app.include_router(home.router)
    app.include_router(user_general.router)
    app.include_router(user_social.router)
    app.include_router(user_profile.router)

    return app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app",
                host="localhost",
                port=8000,
                reload=True)
