"""
Permission System (RBAC)

Two independent levels:
- platform role on the user (user / platformAdmin)
- tenant role on the membership (tenantAdmin / member)

Tenant roles are not hierarchical here; routes name the exact set of roles
they accept, e.g. require_role(TENANT_ADMIN_ONLY).
"""
from typing import FrozenSet, Iterable

from tenantgate.core.exceptions import Forbidden
from tenantgate.models.membership import Membership, TenantRole
from tenantgate.models.user import User

TENANT_ADMIN_ONLY: FrozenSet[TenantRole] = frozenset({TenantRole.TENANT_ADMIN})
ANY_TENANT_ROLE: FrozenSet[TenantRole] = frozenset(TenantRole)


def role_allowed(membership: Membership, allowed: Iterable[TenantRole]) -> bool:
    """Active membership whose role is one of `allowed`."""
    return membership.is_active and membership.role in frozenset(allowed)


def require_platform_admin(user: User) -> None:
    if not user.is_platform_admin:
        raise Forbidden("Platform admin only")
