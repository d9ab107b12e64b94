"""
API Dependencies

The request pipeline and the service factories used by every router.

Pipeline stages, each a FastAPI dependency returning a typed context:

    authenticate        -> AuthContext
    resolve_tenant      -> TenantContext      (authenticate first)
    require_membership  -> MembershipContext  (any active membership)
    require_role(roles) -> MembershipContext  (active membership with a role in `roles`)

Authentication runs before tenant resolution, so an anonymous caller gets a
401 and never learns whether a tenant exists. Role gates query the database
on every request.
"""
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tenantgate.config import Settings
from tenantgate.core import permissions
from tenantgate.core.context import AuthContext, MembershipContext, TenantContext
from tenantgate.core.exceptions import ConfigurationError, InvalidToken
from tenantgate.core.permissions import TENANT_ADMIN_ONLY
from tenantgate.core.tokens import TokenService
from tenantgate.database import get_db
from tenantgate.models.membership import TenantRole
from tenantgate.services.audit import AuditEmitter
from tenantgate.services.invite_lifecycle import InviteLifecycle
from tenantgate.services.membership_authority import MembershipAuthority
from tenantgate.services.session_authority import SessionAuthority
from tenantgate.services.tenant_resolver import TenantResolver
from tenantgate.services.tenants import TenantAdministration

# auto_error=False: a missing header is our InvalidToken, not FastAPI's 403
security = HTTPBearer(auto_error=False)


# ============================================================================
# WIRING (objects created by create_app and kept on app.state)
# ============================================================================

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_audit(request: Request) -> AuditEmitter:
    return request.app.state.audit


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# ============================================================================
# SERVICES (one set per request, sharing the request's session)
# ============================================================================

def get_session_authority(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    audit: AuditEmitter = Depends(get_audit),
) -> SessionAuthority:
    return SessionAuthority(db, tokens, audit)


def get_membership_authority(
    db: Session = Depends(get_db),
    audit: AuditEmitter = Depends(get_audit),
) -> MembershipAuthority:
    return MembershipAuthority(db, audit)


def get_invite_lifecycle(
    db: Session = Depends(get_db),
    memberships: MembershipAuthority = Depends(get_membership_authority),
    audit: AuditEmitter = Depends(get_audit),
    settings: Settings = Depends(get_app_settings),
) -> InviteLifecycle:
    return InviteLifecycle(db, memberships, audit, settings)


def get_tenant_administration(
    request: Request,
    db: Session = Depends(get_db),
    memberships: MembershipAuthority = Depends(get_membership_authority),
    audit: AuditEmitter = Depends(get_audit),
) -> TenantAdministration:
    counter_factory = getattr(request.app.state, "dependency_counter_factory", None)
    if counter_factory is None:
        raise ConfigurationError("No DependencyCounter configured for tenant purge")
    return TenantAdministration(db, memberships, audit, counter=counter_factory(db))


# ============================================================================
# PIPELINE
# ============================================================================

async def authenticate(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    sessions: SessionAuthority = Depends(get_session_authority),
) -> AuthContext:
    """
    Validate the bearer access token and load the user.

    The user row is read on every request; a deactivated user is rejected
    even while their access token is still within its TTL.
    """
    if credentials is None or not credentials.credentials:
        raise InvalidToken()
    user = sessions.authenticate(credentials.credentials)
    return AuthContext(user=user)


async def require_platform_admin(auth: AuthContext = Depends(authenticate)) -> AuthContext:
    permissions.require_platform_admin(auth.user)
    return auth


async def resolve_tenant(
    request: Request,
    auth: AuthContext = Depends(authenticate),
    db: Session = Depends(get_db),
) -> TenantContext:
    """
    Resolve the tenant named by the route.

    /t/{tenant_slug}/... resolves by slug, /tenants/{tenant_id}/... by id.
    Unknown, archived and deleted tenants raise the same TenantNotFound.
    """
    resolver = TenantResolver(db)
    params = request.path_params

    if "tenant_slug" in params:
        tenant = resolver.resolve_slug(params["tenant_slug"])
    elif "tenant_id" in params:
        tenant = resolver.resolve_id(params["tenant_id"])
    else:
        raise ConfigurationError(f"Route {request.url.path} has no tenant identifier")

    return TenantContext(auth=auth, tenant=tenant)


async def require_membership(
    tenant_ctx: TenantContext = Depends(resolve_tenant),
    memberships: MembershipAuthority = Depends(get_membership_authority),
) -> MembershipContext:
    membership = memberships.require_membership(tenant_ctx.tenant_id, tenant_ctx.user_id)
    return MembershipContext(tenant_context=tenant_ctx, role=membership.role)


def require_role(allowed: Iterable[TenantRole]):
    """
    Build a role gate.

    Usage:
        ctx: MembershipContext = Depends(require_role(TENANT_ADMIN_ONLY))
    """
    allowed = frozenset(allowed)

    async def role_gate(
        tenant_ctx: TenantContext = Depends(resolve_tenant),
        memberships: MembershipAuthority = Depends(get_membership_authority),
    ) -> MembershipContext:
        membership = memberships.require_role(tenant_ctx.tenant_id, tenant_ctx.user_id, allowed)
        return MembershipContext(tenant_context=tenant_ctx, role=membership.role)

    return role_gate


require_tenant_admin = require_role(TENANT_ADMIN_ONLY)
