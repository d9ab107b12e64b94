"""
Authentication Schemas

Request/response models for authentication endpoints.

The refresh token never appears in any of these: it only travels in the
httpOnly cookie set by the auth router.
"""
from pydantic import BaseModel, EmailStr, Field

from tenantgate.schemas.membership import MembershipResponse
from tenantgate.schemas.tenant import TenantSettingsResponse
from tenantgate.schemas.user import UserPublic


class Token(BaseModel):
    """Access token response for login and refresh."""
    access_token: str
    token_type: str = "bearer"
    user: UserPublic


class RegisterResponse(Token):
    """Login response plus the workspace created for the new user."""
    tenant: TenantSettingsResponse
    membership: MembershipResponse


class LoginRequest(BaseModel):
    """Login request body."""
    email: EmailStr
    # No minimum length here: a short password is just a wrong password
    password: str = Field(..., min_length=1, max_length=200)


class RegisterRequest(BaseModel):
    """User registration request."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    name: str = Field("", max_length=255)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@example.com",
                "password": "securepassword123",
                "name": "Jane Doe",
            }
        }


class OkResponse(BaseModel):
    ok: bool = True


class LogoutAllResponse(BaseModel):
    ok: bool = True
    revoked: int
