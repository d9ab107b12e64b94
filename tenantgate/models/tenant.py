"""
Tenant Model

The tenant is the primary isolation boundary. Memberships, invites and
projects all carry tenant_id and every query on them filters by it.

Archived and soft-deleted tenants stay in the table but must look exactly
like missing ones to every resolver query.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from tenantgate.database import Base
import re
import uuid


class Tenant(Base):
    __tablename__ = "tenants"

    # UUIDs avoid enumeration of tenant ids
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)

    # Canonical routing key: lowercase, letters/digits/hyphens
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Tenant-editable branding
    logo_url = Column(String(2048), nullable=True)

    # Archive state
    is_archived = Column(Boolean, default=False, nullable=False, index=True)
    archived_at = Column(DateTime, nullable=True)
    archived_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Soft delete also archives the tenant
    deleted_at = Column(DateTime, nullable=True)
    deleted_by_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    memberships = relationship("Membership", back_populates="tenant", passive_deletes=True)
    invites = relationship("Invite", back_populates="tenant", passive_deletes=True)

    __table_args__ = (
        # Resolver query: slug among live tenants
        Index('idx_tenant_slug_live', 'slug', 'is_archived', 'deleted_at'),
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"

    @property
    def is_live(self) -> bool:
        return not self.is_archived and self.deleted_at is None


_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(raw: str) -> str:
    """
    Lowercase, collapse every run of non [a-z0-9] into one hyphen and
    trim hyphens from both ends.
    """
    return _NON_SLUG_CHARS.sub("-", raw.strip().lower()).strip("-")


def normalize_slug(raw: str) -> str:
    return raw.strip().lower()
