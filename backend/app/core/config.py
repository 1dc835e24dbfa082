import os
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # URL & URI
    DATABASE_URL: str
    FRONTEND_URL: str = "http://localhost:5173"
    BASE_URL: str = "http://localhost:8000"
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/auth/google/callback"

    # development | production (production이면 쿠키에 secure 설정)
    ENVIRONMENT: str = "development"

    # Google OAuth
    GOOGLE_CLIENT_ID: str
    GOOGLE_CLIENT_SECRET: str
    GOOGLE_HTTP_TIMEOUT: float = 10.0

    # JWT
    ACCESS_TOKEN_SECRET: str
    REFRESH_TOKEN_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Session cookie
    SESSION_SECRET: str
    SESSION_COOKIE_NAME: str = "__session"

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    class Config:
        current_file_dir = os.path.dirname(os.path.abspath(__file__))
        app_dir = os.path.dirname(current_file_dir)
        backend_dir = os.path.dirname(app_dir)

        env_file = os.path.join(backend_dir, ".env")
        env_file_encoding = "utf-8"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
