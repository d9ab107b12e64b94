"""
Tenant Invite Endpoints

Mounted under both tenant route families, like the members router.

Creating, listing and revoking need tenantAdmin. Accepting only needs an
authenticated user and a live tenant: the accepter has no membership yet.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from tenantgate.api.deps import get_invite_lifecycle, require_tenant_admin, resolve_tenant
from tenantgate.core.context import MembershipContext, TenantContext
from tenantgate.models.invite import InviteStatus
from tenantgate.schemas.auth import OkResponse
from tenantgate.schemas.invite import (
    InviteAcceptRequest,
    InviteAcceptResponse,
    InviteCreate,
    InviteCreatedResponse,
    InviteListResponse,
    InviteResponse,
)
from tenantgate.schemas.membership import MembershipResponse
from tenantgate.services.invite_lifecycle import InviteLifecycle

router = APIRouter(tags=["invites"])


@router.post("/invites", response_model=InviteCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_invite(
    invite_in: InviteCreate,
    ctx: MembershipContext = Depends(require_tenant_admin),
    invites: InviteLifecycle = Depends(get_invite_lifecycle),
):
    """
    Create a pending invite.

    The raw token is in this response and nowhere else. Losing it means
    revoking the invite and creating a new one.
    """
    created = invites.create(
        ctx.tenant_id,
        invite_in.email,
        invite_in.role,
        inviter_user_id=ctx.user_id,
        ttl_hours=invite_in.ttl_hours,
    )
    return InviteCreatedResponse(
        invite=InviteResponse.model_validate(created.invite),
        token=created.token,
    )


@router.get("/invites", response_model=InviteListResponse)
async def list_invites(
    status_filter: Optional[InviteStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    ctx: MembershipContext = Depends(require_tenant_admin),
    invites: InviteLifecycle = Depends(get_invite_lifecycle),
):
    result = invites.list(ctx.tenant_id, status=status_filter, page=page, page_size=page_size)
    return InviteListResponse(
        items=[InviteResponse.model_validate(i) for i in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.post("/invites/accept", response_model=InviteAcceptResponse)
async def accept_invite(
    accept_in: InviteAcceptRequest,
    ctx: TenantContext = Depends(resolve_tenant),
    invites: InviteLifecycle = Depends(get_invite_lifecycle),
):
    accepted = invites.accept(ctx.tenant_id, accept_in.token, accepter_user_id=ctx.user_id)
    return InviteAcceptResponse(
        membership=MembershipResponse.model_validate(accepted.membership),
        created=accepted.created,
    )


@router.delete("/invites/{invite_id}", response_model=OkResponse)
async def revoke_invite(
    invite_id: str,
    ctx: MembershipContext = Depends(require_tenant_admin),
    invites: InviteLifecycle = Depends(get_invite_lifecycle),
):
    invites.revoke(ctx.tenant_id, invite_id, actor_user_id=ctx.user_id)
    return OkResponse()
