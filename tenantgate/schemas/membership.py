"""
Membership Schemas
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel

from tenantgate.models.membership import MembershipStatus, TenantRole
from tenantgate.schemas.user import UserPublic


class MembershipResponse(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    role: TenantRole
    status: MembershipStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class MemberResponse(MembershipResponse):
    """Membership plus the member's public profile, for the members list."""
    user: UserPublic


class MemberListResponse(BaseModel):
    items: List[MemberResponse]


class RoleUpdateRequest(BaseModel):
    role: TenantRole
