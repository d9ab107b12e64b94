"""
Tenant Settings Endpoints

Mounted under both tenant route families like the members router. Any
active member can read the settings; only a tenantAdmin can change them.
"""
from fastapi import APIRouter, Depends

from tenantgate.api.deps import get_tenant_administration, require_membership, require_tenant_admin
from tenantgate.core.context import MembershipContext
from tenantgate.schemas.tenant import TenantSettingsResponse, TenantSettingsUpdate
from tenantgate.services.tenants import TenantAdministration

router = APIRouter(tags=["tenant settings"])


@router.get("/settings", response_model=TenantSettingsResponse)
async def get_tenant_settings(
    ctx: MembershipContext = Depends(require_membership),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    return tenants.get_settings(ctx.tenant_id)


@router.patch("/settings", response_model=TenantSettingsResponse)
async def update_tenant_settings(
    update: TenantSettingsUpdate,
    ctx: MembershipContext = Depends(require_tenant_admin),
    tenants: TenantAdministration = Depends(get_tenant_administration),
):
    """
    Partial update of name, logo_url and is_archived.

    Archiving the tenant here makes every tenant route, this one included,
    answer 404 until a platform admin unarchives it.
    """
    return tenants.update_settings(
        ctx.tenant_id,
        actor_user_id=ctx.user_id,
        name=update.name,
        logo_url=update.logo_url,
        is_archived=update.is_archived,
    )
