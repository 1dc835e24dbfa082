import logging
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserRole
from schemas.user import GoogleProfile
from services.user.general import user_general_service

logger = logging.getLogger(__name__)

class UserSocialService:
    async def create_user_social(self, db: AsyncSession, profile: GoogleProfile) -> User:
        """소셜 로그인으로 신규 사용자 생성 (비밀번호 없음)"""

        new_user = User(
            email=profile.email,
            name=profile.display_name,
            hashed_password="",
            role=UserRole.USER,
            profile_image=profile.picture,
        )
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)

        logger.info(f"✅ 소셜 로그인 신규 사용자 생성: user_id={new_user.user_id}")
        return new_user

    async def get_or_create_user_social(self, db: AsyncSession, profile: GoogleProfile) -> User:
        """
        소셜 로그인 시 이메일로 사용자 조회 또는 생성
        이미 있는 사용자라면 프로필 이미지가 바뀐 경우에만 갱신
        """
        user = await user_general_service.get_user_by_email(db, profile.email)
        if user is None:
            return await self.create_user_social(db, profile)

        if profile.picture and user.profile_image != profile.picture:
            user.profile_image = profile.picture
            db.add(user)
            await db.commit()
            await db.refresh(user)

        return user

user_social_service = UserSocialService()
