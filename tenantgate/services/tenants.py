"""
Tenant Administration

Platform-admin operations on tenants: create, list, archive, soft delete,
purge and tenant admin assignment. Also the settings a tenant admin may
edit on their own tenant.

Purging physically removes a tenant and is only allowed once nothing points
at it any more. What counts as "something" is answered by a DependencyCounter
wired at startup; the project tables belong to another service and this
module never inspects them directly.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantgate.core.exceptions import (
    ConfigurationError,
    Conflict,
    InvalidRequest,
    NotFound,
    TenantNotFound,
)
from tenantgate.models.membership import Membership, TenantRole
from tenantgate.models.project import Project
from tenantgate.models.tenant import Tenant, slugify
from tenantgate.models.user import User, normalize_email
from tenantgate.services.audit import AuditEmitter
from tenantgate.services.membership_authority import MembershipAuthority
from tenantgate.utils.logging import get_logger

logger = get_logger(__name__)


class DependencyCounter(ABC):
    """Counts the rows that keep a tenant from being purged."""

    @abstractmethod
    def count_projects(self, tenant_id: str) -> int:
        ...

    @abstractmethod
    def count_memberships(self, tenant_id: str) -> int:
        ...


class SqlDependencyCounter(DependencyCounter):
    def __init__(self, db: Session):
        self.db = db

    def count_projects(self, tenant_id: str) -> int:
        # Soft-deleted projects still hold tenant data
        return self.db.query(Project).filter(Project.tenant_id == tenant_id).count()

    def count_memberships(self, tenant_id: str) -> int:
        # Removed memberships are audit history and block a purge too
        return self.db.query(Membership).filter(Membership.tenant_id == tenant_id).count()


class TenantAdministration:
    def __init__(
        self,
        db: Session,
        memberships: MembershipAuthority,
        audit: AuditEmitter,
        counter: Optional[DependencyCounter] = None,
    ):
        self.db = db
        self.memberships = memberships
        self.audit = audit
        self.counter = counter

    def _get(self, tenant_id: str, include_deleted: bool = False) -> Tenant:
        query = self.db.query(Tenant).filter(Tenant.id == tenant_id)
        if not include_deleted:
            query = query.filter(Tenant.deleted_at.is_(None))
        tenant = query.populate_existing().first()
        if tenant is None:
            raise TenantNotFound()
        return tenant

    def create(self, name: str, actor_user_id: str, slug: Optional[str] = None) -> Tenant:
        name = name.strip()
        slug = slugify(slug or name)
        if not slug:
            raise Conflict("Tenant slug must contain letters or digits")

        if self.db.query(Tenant.id).filter(Tenant.slug == slug).first():
            raise Conflict("Tenant slug already in use")

        tenant = Tenant(name=name, slug=slug)
        self.db.add(tenant)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("Tenant slug already in use")

        logger.info(f"Tenant created: {tenant.id} ({tenant.slug})")
        self.audit.emit(
            "tenant.created",
            actor_user_id=actor_user_id,
            entity_type="Tenant",
            entity_id=tenant.id,
            slug=tenant.slug,
        )
        return tenant

    def list(
        self,
        q: Optional[str] = None,
        include_archived: bool = False,
        include_deleted: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Tenant]:
        query = self.db.query(Tenant)
        if not include_deleted:
            query = query.filter(Tenant.deleted_at.is_(None))
        if not include_archived:
            if include_deleted:
                # Soft delete also archives; asking for deleted rows must still return them
                query = query.filter(or_(Tenant.is_archived == False, Tenant.deleted_at.isnot(None)))  # noqa: E712
            else:
                query = query.filter(Tenant.is_archived == False)  # noqa: E712

        q = (q or "").strip()
        if q:
            pattern = f"%{q.lower()}%"
            query = query.filter(or_(Tenant.name.ilike(pattern), Tenant.slug.like(pattern)))

        limit = min(max(limit, 1), 100)
        return (
            query.order_by(Tenant.created_at.desc())
            .offset(max(offset, 0))
            .limit(limit)
            .all()
        )

    def set_archived(self, tenant_id: str, archived: bool, actor_user_id: str) -> Tenant:
        tenant = self._get(tenant_id)

        if archived and not tenant.is_archived:
            tenant.is_archived = True
            tenant.archived_at = datetime.utcnow()
            tenant.archived_by_user_id = actor_user_id
        elif not archived and tenant.is_archived:
            tenant.is_archived = False
            tenant.archived_at = None
            tenant.archived_by_user_id = None
        else:
            return tenant

        self.db.commit()
        self.audit.emit(
            "tenant.archived" if archived else "tenant.unarchived",
            actor_user_id=actor_user_id,
            entity_type="Tenant",
            entity_id=tenant.id,
        )
        return tenant

    def get_settings(self, tenant_id: str) -> Tenant:
        return self._get(tenant_id)

    def update_settings(
        self,
        tenant_id: str,
        actor_user_id: str,
        name: Optional[str] = None,
        logo_url: Optional[str] = None,
        is_archived: Optional[bool] = None,
    ) -> Tenant:
        """
        Tenant-admin edit of name, logo and archive flag. None leaves a field
        alone; an empty logo_url clears the logo.

        Archiving from here takes the tenant offline for its own members too,
        so only a platform admin can bring it back.
        """
        if name is not None:
            name = name.strip()
            if not name:
                raise InvalidRequest("Tenant name must not be blank")
        if logo_url is not None:
            logo_url = logo_url.strip()
            if logo_url and urlparse(logo_url).scheme not in ("http", "https"):
                raise InvalidRequest("Logo URL must be an http(s) URL")

        tenant = self._get(tenant_id)
        changed = []
        if name is not None and name != tenant.name:
            tenant.name = name
            changed.append("name")
        if logo_url is not None and (logo_url or None) != tenant.logo_url:
            tenant.logo_url = logo_url or None
            changed.append("logo_url")

        if changed:
            self.db.commit()
            logger.info(f"Tenant settings updated: {tenant.id} ({', '.join(changed)})")
            self.audit.emit(
                "tenant.settings_updated",
                actor_user_id=actor_user_id,
                tenant_id=tenant.id,
                entity_type="Tenant",
                entity_id=tenant.id,
                fields=changed,
            )

        if is_archived is not None:
            tenant = self.set_archived(tenant.id, is_archived, actor_user_id=actor_user_id)
        return tenant

    def soft_delete(self, tenant_id: str, actor_user_id: str) -> Tenant:
        """Mark deleted and archived. The row and its memberships stay."""
        tenant = self._get(tenant_id)
        now = datetime.utcnow()

        tenant.deleted_at = now
        tenant.deleted_by_user_id = actor_user_id
        if not tenant.is_archived:
            tenant.is_archived = True
            tenant.archived_at = now
            tenant.archived_by_user_id = actor_user_id

        self.db.commit()
        self.audit.emit(
            "tenant.deleted",
            actor_user_id=actor_user_id,
            entity_type="Tenant",
            entity_id=tenant.id,
        )
        return tenant

    def purge(self, tenant_id: str, actor_user_id: str) -> None:
        """Hard delete, refused while projects or memberships reference the tenant."""
        if self.counter is None:
            raise ConfigurationError("No DependencyCounter configured for tenant purge")

        tenant = self._get(tenant_id, include_deleted=True)

        if self.counter.count_projects(tenant.id) > 0:
            raise Conflict("Tenant still has projects")
        if self.counter.count_memberships(tenant.id) > 0:
            raise Conflict("Tenant still has memberships")

        self.db.delete(tenant)
        self.db.commit()

        logger.warning(f"Tenant purged: {tenant_id}")
        self.audit.emit(
            "tenant.purged",
            actor_user_id=actor_user_id,
            entity_type="Tenant",
            entity_id=tenant_id,
        )

    def assign_tenant_admin(self, tenant_id: str, email: str, actor_user_id: str) -> Membership:
        tenant = self._get(tenant_id)

        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            raise NotFound("User not found")

        return self.memberships.upsert_role(
            tenant.id,
            user.id,
            TenantRole.TENANT_ADMIN,
            actor_user_id=actor_user_id,
        )
