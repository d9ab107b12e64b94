"""
Database Models

Tenant-owned tables (memberships, invites, projects) carry tenant_id and are
always queried through it.
"""
from tenantgate.models.user import User, PlatformRole
from tenantgate.models.tenant import Tenant
from tenantgate.models.membership import Membership, TenantRole, MembershipStatus
from tenantgate.models.invite import Invite, InviteStatus
from tenantgate.models.refresh_session import RefreshSession
from tenantgate.models.project import Project

__all__ = [
    "User",
    "PlatformRole",
    "Tenant",
    "Membership",
    "TenantRole",
    "MembershipStatus",
    "Invite",
    "InviteStatus",
    "RefreshSession",
    "Project",
]
