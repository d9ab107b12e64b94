"""
Request pipeline contexts.

Each stage of the request pipeline returns one of these and the next stage
takes it as input:

    authenticate     -> AuthContext
    resolve_tenant   -> TenantContext      (needs AuthContext)
    require_member   -> MembershipContext  (needs TenantContext)
    require_role(..) -> MembershipContext  (needs TenantContext, re-checks)

Nothing is stashed on request.state between stages.
"""
from dataclasses import dataclass

from tenantgate.models.membership import TenantRole
from tenantgate.models.user import User


@dataclass(frozen=True)
class AuthContext:
    user: User

    @property
    def user_id(self) -> str:
        return self.user.id


@dataclass(frozen=True)
class ResolvedTenant:
    id: str
    slug: str


@dataclass(frozen=True)
class TenantContext:
    auth: AuthContext
    tenant: ResolvedTenant

    @property
    def tenant_id(self) -> str:
        return self.tenant.id

    @property
    def user_id(self) -> str:
        return self.auth.user_id


@dataclass(frozen=True)
class MembershipContext:
    tenant_context: TenantContext
    role: TenantRole

    @property
    def tenant_id(self) -> str:
        return self.tenant_context.tenant_id

    @property
    def tenant_slug(self) -> str:
        return self.tenant_context.tenant.slug

    @property
    def user_id(self) -> str:
        return self.tenant_context.user_id
