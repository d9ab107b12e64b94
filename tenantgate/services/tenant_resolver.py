"""
Tenant Resolver

Maps the tenant identifier of a route to a live tenant. Archived and
soft-deleted tenants are filtered in the query itself, so "does not exist"
and "exists but inactive" take the same path and raise the same error.
"""
from sqlalchemy.orm import Session

from tenantgate.core.context import ResolvedTenant
from tenantgate.core.exceptions import TenantNotFound
from tenantgate.models.tenant import Tenant, normalize_slug


class TenantResolver:
    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(Tenant.id, Tenant.slug).filter(
            Tenant.is_archived == False,  # noqa: E712
            Tenant.deleted_at.is_(None),
        )

    def resolve_slug(self, raw_slug: str) -> ResolvedTenant:
        slug = normalize_slug(raw_slug or "")
        if not slug:
            raise TenantNotFound()
        row = self._live().filter(Tenant.slug == slug).first()
        if row is None:
            raise TenantNotFound()
        return ResolvedTenant(id=row.id, slug=row.slug)

    def resolve_id(self, tenant_id: str) -> ResolvedTenant:
        if not tenant_id:
            raise TenantNotFound()
        row = self._live().filter(Tenant.id == tenant_id.strip()).first()
        if row is None:
            raise TenantNotFound()
        return ResolvedTenant(id=row.id, slug=row.slug)
