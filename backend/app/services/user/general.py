from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from core.security.hashing import hash_password, verify_password
from models.user import User, UserRole

class UserGeneralService:
    async def check_email_exists(self, db: AsyncSession, email: str) -> bool:
        """이메일 중복 확인: 존재하면 True, 없으면 False"""
        return await self.get_user_by_email(db, email) is not None

    async def create_user_general(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        name: str,
    ) -> User:
        """일반 회원가입으로 신규 사용자 생성"""

        new_user = User(
            email=email,
            hashed_password=await run_in_threadpool(hash_password, password),
            name=name,
            role=UserRole.USER,
        )
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)

        return new_user

    async def get_user_by_id(self, db: AsyncSession, user_id: int) -> User | None:
        """ID로 사용자 조회"""
        result = await db.execute(select(User).where(User.user_id == user_id))
        return result.scalars().first()

    async def get_user_by_email(self, db: AsyncSession, email: str) -> User | None:
        """이메일로 사용자 조회"""
        result = await db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User | None:
        """
        이메일/비밀번호 확인
        없는 이메일, 소셜 전용 계정, 비밀번호 불일치 모두 None (구분하지 않음)
        """
        user = await self.get_user_by_email(db, email)
        if not user:
            return None

        # bcrypt는 CPU 작업이라 스레드풀에서 실행
        if not await run_in_threadpool(verify_password, password, user.hashed_password):
            return None
        return user

user_general_service = UserGeneralService()
