"""
User Schemas

The public user projection. Password hashes and timestamps stay server side.
"""
from pydantic import BaseModel

from tenantgate.models.user import PlatformRole


class UserPublic(BaseModel):
    """User response schema (excludes sensitive data)."""
    id: str
    email: str
    name: str
    platform_role: PlatformRole

    class Config:
        from_attributes = True  # Allows creating from ORM models
