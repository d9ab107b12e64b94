"""
Platform Admin Endpoints

Tenant management for platformAdmin users. These routes address tenants by
id and do not go through the tenant resolver: a platform admin may see and
act on archived and soft-deleted tenants.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from tenantgate.api.deps import get_tenant_administration, require_platform_admin
from tenantgate.core.context import AuthContext
from tenantgate.schemas.auth import OkResponse
from tenantgate.schemas.membership import MembershipResponse
from tenantgate.schemas.tenant import (
    AssignAdminRequest,
    TenantArchiveRequest,
    TenantCreate,
    TenantListResponse,
    TenantResponse,
)
from tenantgate.services.tenants import TenantAdministration

router = APIRouter(prefix="/platform/tenants", tags=["platform"])


@router.get("", response_model=TenantListResponse)
async def list_tenants(
    q: Optional[str] = Query(None, max_length=100),
    include_archived: bool = False,
    include_deleted: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    items = tenants.list(
        q=q,
        include_archived=include_archived,
        include_deleted=include_deleted,
        limit=limit,
        offset=offset,
    )
    return TenantListResponse(items=[TenantResponse.model_validate(t) for t in items])


@router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    tenant_in: TenantCreate,
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    """Create a tenant. 409 when the slug is taken, including by an archived tenant."""
    return tenants.create(tenant_in.name, actor_user_id=auth.user_id, slug=tenant_in.slug)


@router.patch("/{tenant_id}/archive", response_model=TenantResponse)
async def archive_tenant(
    tenant_id: str,
    archive_in: TenantArchiveRequest,
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    return tenants.set_archived(tenant_id, archive_in.is_archived, actor_user_id=auth.user_id)


@router.delete("/{tenant_id}", response_model=OkResponse)
async def delete_tenant(
    tenant_id: str,
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    """Soft delete. The tenant disappears from every tenant-scoped route."""
    tenants.soft_delete(tenant_id, actor_user_id=auth.user_id)
    return OkResponse()


@router.post("/{tenant_id}/purge", response_model=OkResponse)
async def purge_tenant(
    tenant_id: str,
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    """Hard delete. 409 while projects or memberships still reference the tenant."""
    tenants.purge(tenant_id, actor_user_id=auth.user_id)
    return OkResponse()


@router.post("/{tenant_id}/admins", response_model=MembershipResponse)
async def assign_tenant_admin(
    tenant_id: str,
    assign_in: AssignAdminRequest,
    auth: AuthContext = Depends(require_platform_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    """Make an existing user an active tenantAdmin, creating or updating the membership."""
    return tenants.assign_tenant_admin(tenant_id, assign_in.email, actor_user_id=auth.user_id)
