from sqlalchemy import Column, String, DateTime, func, ForeignKey, Integer
from sqlalchemy.orm import relationship

from core.database import Base

class RefreshToken(Base):
    """
    리프레시 토큰 저장소 (사용자당 최대 1개)
    """
    __tablename__ = "refresh_tokens"
    refresh_token_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="CASCADE"), unique=True, nullable=False)

    token = Column(String(512), unique=True, index=True, nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")
