"""
Session Authority

Registration, login, refresh-with-rotation, logout and reuse detection on top
of the TokenService and the RefreshSessionStore.

Refresh protocol:
1. Verify the presented token. A bad signature or expiry is rejected without
   touching the database (the claims cannot be trusted).
2. Load the usable session by (jti, sub). Missing means the session was
   revoked or expired, or the jti is forged: revoke every session of the user.
3. Compare HMAC(presented) to the stored hash in constant time. A mismatch
   means an older token of the family was replayed: same wide revocation.
4. Compare-and-swap the stored hash to the new token's hash. Losing the race
   to a concurrent refresh is treated as reuse as well.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import NoReturn, Optional, Tuple
import secrets
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantgate.core.exceptions import (
    Conflict,
    EmailAlreadyExists,
    InvalidCredentials,
    InvalidToken,
    RefreshRejected,
)
from tenantgate.core.security import (
    constant_time_equals,
    get_password_hash,
    hash_refresh_token,
    verify_password,
    verify_password_dummy,
)
from tenantgate.core.tokens import TokenService
from tenantgate.models.membership import Membership, MembershipStatus, TenantRole
from tenantgate.models.tenant import Tenant, slugify
from tenantgate.models.user import User, normalize_email
from tenantgate.services.audit import AuditEmitter
from tenantgate.services.credential_store import RefreshSessionStore
from tenantgate.utils.logging import get_logger

logger = get_logger(__name__)

WORKSPACE_SLUG_BASE_LENGTH = 80
WORKSPACE_SLUG_ATTEMPTS = 6


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    user: User


@dataclass(frozen=True)
class Registration:
    access_token: str
    refresh_token: str
    user: User
    tenant: Tenant
    membership: Membership


def workspace_name(name: str, email: str) -> str:
    owner = (name.strip() or email.split("@")[0])[:200]
    return f"{owner}'s Workspace"


class SessionAuthority:
    def __init__(self, db: Session, tokens: TokenService, audit: AuditEmitter):
        self.db = db
        self.tokens = tokens
        self.audit = audit
        self.store = RefreshSessionStore(db)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        password: str,
        name: str = "",
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> Registration:
        """
        Create a user with a personal workspace and sign them in.

        The user, the workspace tenant and the tenantAdmin membership commit
        in one transaction. The refresh session is opened afterwards, exactly
        as login opens one.
        """
        email = normalize_email(email)
        name = name.strip()

        if self.db.query(User.id).filter(User.email == email).first():
            raise EmailAlreadyExists()

        user = User(
            email=email,
            name=name,
            hashed_password=get_password_hash(password),
        )
        tenant = Tenant(
            name=workspace_name(name, email),
            slug=self._unique_workspace_slug(name or email.split("@")[0]),
        )
        membership = Membership(
            tenant=tenant,
            user=user,
            role=TenantRole.TENANT_ADMIN,
            status=MembershipStatus.ACTIVE,
        )
        self.db.add_all([user, tenant, membership])
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self.db.query(User.id).filter(User.email == email).first():
                # Lost a race against a concurrent registration for the same email
                raise EmailAlreadyExists()
            raise Conflict("Workspace slug already in use, please retry")

        logger.info(f"New user registered: {user.id} (workspace {tenant.slug})")
        self.audit.emit(
            "auth.register",
            actor_user_id=user.id,
            tenant_id=tenant.id,
            entity_type="User",
            entity_id=user.id,
            membership_id=membership.id,
        )

        issued, _ = self._open_session(user, user_agent=user_agent, ip=ip)
        return Registration(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            user=user,
            tenant=tenant,
            membership=membership,
        )

    def _unique_workspace_slug(self, base: str) -> str:
        base = slugify(base)[:WORKSPACE_SLUG_BASE_LENGTH].strip("-") or "workspace"
        candidate = base
        for _ in range(WORKSPACE_SLUG_ATTEMPTS):
            if self.db.query(Tenant.id).filter(Tenant.slug == candidate).first() is None:
                return candidate
            candidate = f"{base}-{secrets.token_hex(3)}"
        return f"{base}-{uuid.uuid4().hex}"

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> IssuedTokens:
        """
        Verify credentials and open a new refresh session.

        Unknown email, missing password hash, wrong password and inactive
        account all end in the same InvalidCredentials after one bcrypt
        verification each.
        """
        email = normalize_email(email)
        user = self.db.query(User).filter(User.email == email).first()

        if user is None or not user.hashed_password:
            verify_password_dummy(password)
            self._login_failed(None, "unknown_user")
            raise InvalidCredentials()

        if not verify_password(password, user.hashed_password):
            self._login_failed(user.id, "bad_password")
            raise InvalidCredentials()

        if not user.is_active:
            self._login_failed(user.id, "inactive_user")
            raise InvalidCredentials()

        issued, session_id = self._open_session(user, user_agent=user_agent, ip=ip)

        logger.info(f"Successful login: user={user.id}")
        self.audit.emit(
            "auth.login",
            actor_user_id=user.id,
            entity_type="RefreshSession",
            entity_id=session_id,
            ip=ip,
        )
        return issued

    def _open_session(
        self,
        user: User,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> Tuple[IssuedTokens, str]:
        """
        Create a refresh session, mint both tokens and return them with the
        session id.

        Raises InvalidCredentials when the new row was revoked before its
        hash could be written: the refresh token would be dead on arrival.
        """
        now = datetime.utcnow()

        # Create then fill: the token embeds the session id, so the row comes first
        session = self.store.create(
            user.id,
            expires_at=self.tokens.refresh_expiry(now),
            user_agent=user_agent,
            ip=ip,
        )
        refresh_token = self.tokens.sign_refresh(user.id, session.id)
        filled = self.store.fill_token_hash(
            session.id,
            user.id,
            hash_refresh_token(refresh_token, self.tokens.refresh_secret),
        )
        if not filled:
            revoked = self.store.revoke_all_for_user(user.id, now)
            logger.warning(
                f"Session {session.id} was revoked before its token was stored, "
                f"revoked {revoked} more session(s)",
                extra={"user_id": user.id},
            )
            self._login_failed(user.id, "session_revoked")
            raise InvalidCredentials()

        access_token = self.tokens.sign_access(user.id, user.email)

        user.last_login_at = now
        self.db.commit()

        issued = IssuedTokens(access_token=access_token, refresh_token=refresh_token, user=user)
        return issued, session.id

    def _login_failed(self, user_id: Optional[str], reason: str) -> None:
        self.audit.emit(
            "auth.login_failed",
            actor_user_id=user_id,
            entity_type="User",
            entity_id=user_id,
            reason=reason,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, raw_token: Optional[str]) -> IssuedTokens:
        """Rotate the refresh token of one session. Any failure is RefreshRejected."""
        try:
            claims = self.tokens.verify_refresh(raw_token or "")
        except InvalidToken:
            raise RefreshRejected()

        now = datetime.utcnow()

        session = self.store.find_usable(claims.session_id, claims.user_id, now)
        if session is None:
            self._revoke_family(claims.user_id, claims.session_id, "session_unusable")

        presented_hash = hash_refresh_token(raw_token, self.tokens.refresh_secret)
        if not constant_time_equals(presented_hash, session.token_hash):
            self._revoke_family(claims.user_id, session.id, "hash_mismatch")

        user = self.db.get(User, claims.user_id)
        if user is None or not user.is_active:
            self._revoke_family(claims.user_id, session.id, "inactive_user")

        new_token = self.tokens.sign_refresh(user.id, session.id)
        rotated = self.store.rotate(
            session.id,
            user.id,
            expected_hash=presented_hash,
            new_hash=hash_refresh_token(new_token, self.tokens.refresh_secret),
            new_expires_at=self.tokens.refresh_expiry(now),
            now=now,
        )
        if not rotated:
            self._revoke_family(user.id, session.id, "concurrent_rotation")

        access_token = self.tokens.sign_access(user.id, user.email)

        self.audit.emit(
            "auth.refresh",
            actor_user_id=user.id,
            entity_type="RefreshSession",
            entity_id=session.id,
        )

        return IssuedTokens(access_token=access_token, refresh_token=new_token, user=user)

    def _revoke_family(self, user_id: str, session_id: str, reason: str) -> NoReturn:
        """Revoke every session of the user, record it and reject. Never returns."""
        revoked = self.store.revoke_all_for_user(user_id, datetime.utcnow())
        logger.warning(
            f"Refresh rejected, revoked {revoked} session(s) for user {user_id}",
            extra={"user_id": user_id},
        )
        self.audit.emit(
            "auth.refresh_reuse_detected",
            actor_user_id=user_id,
            entity_type="RefreshSession",
            entity_id=session_id,
            reason=reason,
            revoked=revoked,
        )
        raise RefreshRejected()

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, raw_token: Optional[str]) -> bool:
        """
        Revoke the session behind the presented token, if it is one.

        An absent, invalid or expired token is not an error: the client drops
        its cookie either way. Returns whether a session was revoked.
        """
        if not raw_token:
            return False
        try:
            claims = self.tokens.verify_refresh(raw_token)
        except InvalidToken:
            return False

        revoked = self.store.revoke(claims.session_id, claims.user_id, datetime.utcnow())
        if revoked:
            self.audit.emit(
                "auth.logout",
                actor_user_id=claims.user_id,
                entity_type="RefreshSession",
                entity_id=claims.session_id,
            )
        return revoked

    def logout_all(self, user_id: str) -> int:
        revoked = self.store.revoke_all_for_user(user_id, datetime.utcnow())
        self.audit.emit(
            "auth.logout_all",
            actor_user_id=user_id,
            entity_type="User",
            entity_id=user_id,
            revoked=revoked,
        )
        return revoked

    # ------------------------------------------------------------------
    # Access token verification
    # ------------------------------------------------------------------

    def authenticate(self, access_token: Optional[str]) -> User:
        """
        Resolve a bearer token to a live user.

        The user is loaded on every call so that deactivation applies before
        the token expires.
        """
        claims = self.tokens.verify_access(access_token or "")
        user = self.db.get(User, claims.user_id)
        if user is None or not user.is_active:
            raise InvalidToken()
        return user
