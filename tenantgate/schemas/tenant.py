"""
Tenant Schemas

Platform admin tenant management and the per-tenant context endpoint.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from tenantgate.models.membership import TenantRole


class TenantCreate(BaseModel):
    """Slug defaults to the slugified name."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=100)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme Corp",
                "slug": "acme",
            }
        }


class TenantArchiveRequest(BaseModel):
    is_archived: bool = True


class TenantResponse(BaseModel):
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = None
    is_archived: bool
    archived_at: Optional[datetime]
    deleted_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TenantSettingsResponse(BaseModel):
    """What a tenant's own members see of it. No deletion bookkeeping."""
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = None
    is_archived: bool

    class Config:
        from_attributes = True


class TenantSettingsUpdate(BaseModel):
    """
    Partial update by a tenant admin. The slug is the routing key and is
    not editable here.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    # Empty string clears the logo
    logo_url: Optional[str] = Field(None, max_length=2048)
    is_archived: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acme Corp",
                "logo_url": "https://cdn.example.com/acme.png",
            }
        }


class TenantListResponse(BaseModel):
    items: List[TenantResponse]


class AssignAdminRequest(BaseModel):
    email: EmailStr


class TenantContextResponse(BaseModel):
    """What the caller is inside the tenant they addressed."""
    tenant_id: str
    tenant_slug: str
    role: TenantRole
