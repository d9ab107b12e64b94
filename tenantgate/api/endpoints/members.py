"""
Tenant Membership Endpoints

Mounted twice by main.py, under /t/{tenant_slug} and /tenants/{tenant_id}.
Every route here passes through the resolve_tenant stage, so both families
share the same 404 for unknown, archived and deleted tenants.
"""
from fastapi import APIRouter, Depends

from tenantgate.api.deps import get_membership_authority, require_membership, require_tenant_admin
from tenantgate.core.context import MembershipContext
from tenantgate.schemas.auth import OkResponse
from tenantgate.schemas.membership import (
    MemberListResponse,
    MemberResponse,
    MembershipResponse,
    RoleUpdateRequest,
)
from tenantgate.schemas.tenant import TenantContextResponse
from tenantgate.services.membership_authority import MembershipAuthority

router = APIRouter(tags=["members"])


@router.get("/me", response_model=TenantContextResponse)
async def tenant_context(ctx: MembershipContext = Depends(require_membership)):
    """The caller's role in the addressed tenant."""
    return TenantContextResponse(
        tenant_id=ctx.tenant_id,
        tenant_slug=ctx.tenant_slug,
        role=ctx.role,
    )


@router.get("/members", response_model=MemberListResponse)
async def list_members(
    include_removed: bool = False,
    ctx: MembershipContext = Depends(require_tenant_admin),
    memberships: MembershipAuthority = Depends(get_membership_authority),
):
    members = memberships.list_members(ctx.tenant_id, include_removed=include_removed)
    return MemberListResponse(items=[MemberResponse.model_validate(m) for m in members])


@router.patch("/members/{user_id}", response_model=MembershipResponse)
async def change_member_role(
    user_id: str,
    update: RoleUpdateRequest,
    ctx: MembershipContext = Depends(require_tenant_admin),
    memberships: MembershipAuthority = Depends(get_membership_authority),
):
    """
    Change a member's role.

    409 when this would demote the tenant's last active tenantAdmin.
    """
    return memberships.change_role(ctx.tenant_id, user_id, update.role, actor_user_id=ctx.user_id)


@router.delete("/members/{user_id}", response_model=OkResponse)
async def remove_member(
    user_id: str,
    ctx: MembershipContext = Depends(require_tenant_admin),
    memberships: MembershipAuthority = Depends(get_membership_authority),
):
    """Soft removal: the membership row stays with status=removed."""
    memberships.remove(ctx.tenant_id, user_id, actor_user_id=ctx.user_id)
    return OkResponse()
