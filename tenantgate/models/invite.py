"""
Invite Model

Single-use tenant invitations. Only the SHA-256 hash of the raw token is
stored; the raw token is handed to the inviter once and cannot be recovered.

Status moves pending -> accepted | revoked | expired and never leaves a
terminal state.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from tenantgate.database import Base
from tenantgate.models.membership import TenantRole
import uuid
import enum


class InviteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    EXPIRED = "expired"


class Invite(Base):
    __tablename__ = "invites"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Lowercased on write
    email = Column(String(255), nullable=False, index=True)
    role = Column(
        SQLEnum(TenantRole, values_callable=lambda e: [m.value for m in e]),
        default=TenantRole.MEMBER,
        nullable=False
    )

    token_hash = Column(String(64), nullable=False)

    status = Column(
        SQLEnum(InviteStatus, values_callable=lambda e: [m.value for m in e]),
        default=InviteStatus.PENDING,
        nullable=False,
        index=True
    )
    expires_at = Column(DateTime, nullable=False, index=True)

    invited_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    accepted_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="invites")

    __table_args__ = (
        Index('uq_invite_tenant_token_hash', 'tenant_id', 'token_hash', unique=True),
        # At most one pending invite per (tenant, email)
        Index(
            'uq_invite_tenant_email_pending',
            'tenant_id',
            'email',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index('idx_invite_tenant_status_created', 'tenant_id', 'status', 'created_at'),
    )

    def __repr__(self):
        return f"<Invite {self.email} tenant={self.tenant_id} {self.status.value}>"

    def is_acceptable(self, now: datetime) -> bool:
        return self.status == InviteStatus.PENDING and self.expires_at > now
