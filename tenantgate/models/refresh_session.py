"""
RefreshSession Model

One row per logical device/browser session backing a refresh token.

token_hash: HMAC-SHA256 of the current raw refresh token (never the token)
rotated_at: last successful rotation
revoked_at: logout, reuse detection or explicit invalidation
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from tenantgate.database import Base
import uuid


class RefreshSession(Base):
    __tablename__ = "refresh_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    token_hash = Column(String(64), nullable=False)

    expires_at = Column(DateTime, nullable=False)
    rotated_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)

    user_agent = Column(String(512), nullable=True)
    ip = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="refresh_sessions")

    __table_args__ = (
        Index('idx_refresh_session_user_live', 'user_id', 'revoked_at', 'expires_at'),
    )

    def __repr__(self):
        return f"<RefreshSession {self.id} user={self.user_id}>"
