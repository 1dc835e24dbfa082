import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from core.config import Settings
from core.security.token import TokenCodec
from models.refresh_token import RefreshToken
from schemas.token import TokenPayload

logger = logging.getLogger(__name__)

class RefreshTokenStore:
    """
    사용자당 하나의 Refresh Token만 유지하는 DB 저장소
    """
    def __init__(
        self,
        codec: TokenCodec,
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], float] = time.time,
    ):
        self.codec = codec
        self.ttl = ttl
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, codec: TokenCodec, clock: Callable[[], float] = time.time) -> "RefreshTokenStore":
        return cls(codec=codec, ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS), clock=clock)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    async def save_refresh_token(
        self,
        db: AsyncSession,
        user_id: int,
        token: str,
    ) -> RefreshToken:
        """
        사용자의 기존 토큰을 모두 지우고 새 토큰을 저장 (하나의 트랜잭션)
        동시에 다른 요청이 먼저 저장해 unique 제약에 걸리면 한 번 재시도
        """
        try:
            return await self._replace_user_token(db, user_id, token)
        except IntegrityError:
            await db.rollback()
            logger.warning(f"⚠️ Refresh Token 동시 저장 충돌, 재시도합니다: user_id={user_id}")
            return await self._replace_user_token(db, user_id, token)

    async def _replace_user_token(self, db: AsyncSession, user_id: int, token: str) -> RefreshToken:
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))

        new_token = RefreshToken(
            user_id=user_id,
            token=token,
            expires_at=self._now() + self.ttl,
        )
        db.add(new_token)
        await db.commit()
        await db.refresh(new_token)
        return new_token

    async def issue_refresh_token(self, db: AsyncSession, payload: TokenPayload) -> str:
        """
        새 Refresh Token 생성 후 저장
        """
        token = self.codec.generate_refresh_token(payload)
        await self.save_refresh_token(db, payload.user_id, token)
        return token

    async def find_refresh_token(self, db: AsyncSession, token: str) -> RefreshToken | None:
        result = await db.execute(
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .options(joinedload(RefreshToken.user)) # User 정보 join
        )
        return result.scalars().first()

    async def find_latest_for_user(self, db: AsyncSession, user_id: int) -> RefreshToken | None:
        """
        사용자의 가장 최근 Refresh Token 조회
        """
        result = await db.execute(
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.desc(), RefreshToken.refresh_token_id.desc())
            .options(joinedload(RefreshToken.user))
        )
        return result.scalars().first()

    async def delete_refresh_token(self, db: AsyncSession, token: str) -> bool:
        result = await db.execute(delete(RefreshToken).where(RefreshToken.token == token))
        await db.commit()
        return result.rowcount > 0

    async def delete_user_tokens(self, db: AsyncSession, user_id: int) -> int:
        """
        (로그아웃 시 사용) 사용자의 모든 Refresh Token 삭제
        """
        result = await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        await db.commit()
        return result.rowcount

    async def rotate_refresh_token(
        self,
        db: AsyncSession,
        old_token: str,
        user_id: int,
        payload: TokenPayload,
    ) -> str:
        """
        기존 토큰 삭제 + 새 토큰 발급/저장 (같은 트랜잭션), 새 토큰 반환
        """
        new_token = self.codec.generate_refresh_token(payload)
        await db.execute(delete(RefreshToken).where(RefreshToken.token == old_token))
        await self.save_refresh_token(db, user_id, new_token)
        return new_token
