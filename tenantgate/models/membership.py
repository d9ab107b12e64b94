"""
Membership Model

The join record between a user and a tenant, and the only source of truth
for tenant-level authorization.

A (tenant_id, user_id) pair has at most one row. Re-inviting or re-promoting
a user updates that row; removal flips status to "removed" and the row is
kept for the audit trail.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from tenantgate.database import Base
import uuid
import enum


class TenantRole(str, enum.Enum):
    """
    Per-tenant role.

    TENANT_ADMIN: manages members and invites of the tenant
    MEMBER: regular access to tenant resources
    """
    TENANT_ADMIN = "tenantAdmin"
    MEMBER = "member"


class MembershipStatus(str, enum.Enum):
    INVITED = "invited"
    ACTIVE = "active"
    REMOVED = "removed"


class Membership(Base):
    __tablename__ = "memberships"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role = Column(
        SQLEnum(TenantRole, values_callable=lambda e: [m.value for m in e]),
        default=TenantRole.MEMBER,
        nullable=False
    )
    status = Column(
        SQLEnum(MembershipStatus, values_callable=lambda e: [m.value for m in e]),
        default=MembershipStatus.ACTIVE,
        nullable=False
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    tenant = relationship("Tenant", back_populates="memberships")
    user = relationship("User", back_populates="memberships")

    __table_args__ = (
        # Upserts conflict on this constraint; it is what keeps the pair unique
        UniqueConstraint('tenant_id', 'user_id', name='uq_membership_tenant_user'),
        # Admin counting for the last-admin check
        Index('idx_membership_tenant_role_status', 'tenant_id', 'role', 'status'),
    )

    def __repr__(self):
        return f"<Membership tenant={self.tenant_id} user={self.user_id} {self.role.value}/{self.status.value}>"

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    @property
    def is_active_admin(self) -> bool:
        return self.is_active and self.role == TenantRole.TENANT_ADMIN
