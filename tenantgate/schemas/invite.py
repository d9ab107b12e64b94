"""
Invite Schemas

InviteCreatedResponse is the only place a raw invite token is ever
returned. List and detail responses carry metadata only.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from tenantgate.models.invite import InviteStatus
from tenantgate.models.membership import TenantRole
from tenantgate.schemas.membership import MembershipResponse


class InviteCreate(BaseModel):
    email: EmailStr
    role: TenantRole = TenantRole.MEMBER
    # Falls back to INVITE_TTL_HOURS
    ttl_hours: Optional[int] = Field(None, ge=1, le=24 * 90)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "bob@example.com",
                "role": "member",
            }
        }


class InviteResponse(BaseModel):
    id: str
    tenant_id: str
    email: str
    role: TenantRole
    status: InviteStatus
    expires_at: datetime
    invited_by_user_id: Optional[str]
    accepted_by_user_id: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class InviteCreatedResponse(BaseModel):
    invite: InviteResponse
    token: str


class InviteListResponse(BaseModel):
    items: List[InviteResponse]
    total: int
    page: int
    page_size: int


class InviteAcceptRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)


class InviteAcceptResponse(BaseModel):
    membership: MembershipResponse
    created: bool
