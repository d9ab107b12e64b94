"""Pytest configuration and fixtures."""

import os

# Settings are read at import time by tenantgate.core.security; set them first.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_ACCESS_SECRET"] = "test-access-secret-0123456789"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret-0123456789"
os.environ["LOG_LEVEL"] = "WARNING"

from http.cookies import SimpleCookie
from typing import List

import pytest
from fastapi.testclient import TestClient

from tenantgate.config import Settings
from tenantgate.core.security import get_password_hash
from tenantgate.core.tokens import TokenService
from tenantgate.database import Database
from tenantgate.main import create_app
from tenantgate.models import (
    Membership,
    MembershipStatus,
    PlatformRole,
    Tenant,
    TenantRole,
    User,
)
from tenantgate.models.user import normalize_email
from tenantgate.services.audit import AuditEmitter, AuditEvent
from tenantgate.services.invite_lifecycle import InviteLifecycle
from tenantgate.services.membership_authority import MembershipAuthority
from tenantgate.services.session_authority import SessionAuthority

DEFAULT_PASSWORD = "correct-horse-battery"
API = "/api/v1"


class RecordingSink:
    """Audit sink that keeps every event for assertions."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [e.action for e in self.events]


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    database = Database("sqlite://")
    database.create_all()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def audit_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def audit(audit_sink) -> AuditEmitter:
    return AuditEmitter([audit_sink])


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService(settings)


@pytest.fixture
def sessions(db, token_service, audit) -> SessionAuthority:
    return SessionAuthority(db, token_service, audit)


@pytest.fixture
def memberships(db, audit) -> MembershipAuthority:
    return MembershipAuthority(db, audit)


@pytest.fixture
def invites(db, memberships, audit, settings) -> InviteLifecycle:
    return InviteLifecycle(db, memberships, audit, settings)


@pytest.fixture
def app(settings, database, audit_sink):
    return create_app(settings=settings, database=database, audit_sinks=[audit_sink])


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


# ============================================================================
# FACTORIES
# ============================================================================

@pytest.fixture
def make_user(db):
    def _make(
        email: str,
        password: str = DEFAULT_PASSWORD,
        platform_role: PlatformRole = PlatformRole.USER,
        is_active: bool = True,
        name: str = "",
    ) -> User:
        user = User(
            email=normalize_email(email),
            name=name or email.split("@")[0],
            hashed_password=get_password_hash(password),
            platform_role=platform_role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_tenant(db):
    def _make(slug: str, name: str = "", is_archived: bool = False) -> Tenant:
        tenant = Tenant(name=name or slug.title(), slug=slug, is_archived=is_archived)
        db.add(tenant)
        db.commit()
        return tenant

    return _make


@pytest.fixture
def make_membership(db):
    def _make(
        tenant: Tenant,
        user: User,
        role: TenantRole = TenantRole.MEMBER,
        status: MembershipStatus = MembershipStatus.ACTIVE,
    ) -> Membership:
        membership = Membership(tenant_id=tenant.id, user_id=user.id, role=role, status=status)
        db.add(membership)
        db.commit()
        return membership

    return _make


# ============================================================================
# HTTP HELPERS
# ============================================================================

def refresh_cookie_from(response, name: str = "refresh_token") -> str:
    """Raw value of the refresh cookie set by a response ('' when cleared)."""
    cookie = SimpleCookie()
    for header in response.headers.get_list("set-cookie"):
        cookie.load(header)
    return cookie[name].value if name in cookie else None


def login(client, email: str, password: str = DEFAULT_PASSWORD):
    """Returns (access_token, refresh_token)."""
    response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    # Tests send the refresh cookie explicitly
    client.cookies.clear()
    return response.json()["access_token"], refresh_cookie_from(response)


def bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}


def with_refresh_cookie(refresh_token: str) -> dict:
    return {"Cookie": f"refresh_token={refresh_token}"}
