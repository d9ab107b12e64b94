"""
Project Model

Projects are tenant-scoped resources owned by the projects service. This
package never creates or edits them; it only counts them per tenant before
allowing a tenant to be purged.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index
from datetime import datetime
from tenantgate.database import Base
import uuid


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    tenant_id = Column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_project_tenant_status', 'tenant_id', 'is_deleted'),
    )

    def __repr__(self):
        return f"<Project {self.name} (tenant={self.tenant_id})>"
