"""
User Model

Users are platform-wide identities. They carry only a platform role;
every tenant-level role lives in a Membership row.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from tenantgate.database import Base
import uuid
import enum


class PlatformRole(str, enum.Enum):
    """
    Global role, independent of any tenant.

    PLATFORM_ADMIN: can create, archive and purge tenants and assign tenant admins
    USER: everybody else
    """
    USER = "user"
    PLATFORM_ADMIN = "platformAdmin"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Always stored lowercased, which makes the unique index case-insensitive
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    hashed_password = Column(String(255), nullable=True)

    platform_role = Column(
        SQLEnum(PlatformRole, values_callable=lambda e: [m.value for m in e]),
        default=PlatformRole.USER,
        nullable=False,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    # Relationships
    memberships = relationship("Membership", back_populates="user")
    refresh_sessions = relationship("RefreshSession", back_populates="user")

    __table_args__ = (
        Index('idx_user_platform_role_active', 'platform_role', 'is_active'),
    )

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def is_platform_admin(self) -> bool:
        return self.platform_role == PlatformRole.PLATFORM_ADMIN


def normalize_email(email: str) -> str:
    return email.strip().lower()
