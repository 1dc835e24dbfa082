import enum
from sqlalchemy import Column, String, DateTime, func, Integer, Enum as SAEnum
from sqlalchemy.orm import relationship

from core.database import Base

class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"

class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    # 소셜(OAuth) 전용 계정은 빈 문자열
    hashed_password = Column(String(255), default="", nullable=False)
    role = Column(SAEnum(UserRole, name="user_role_enum"), default=UserRole.USER, nullable=False)
    profile_image = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)

    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_social(self) -> bool:
        return not bool(self.hashed_password)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
