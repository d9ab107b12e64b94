"""
Invite Lifecycle

Single-use, hashed tenant invites.

    pending -> accepted | revoked | expired   (all terminal)

Every transition out of pending is one conditional UPDATE filtered on
status = 'pending', so a concurrent accept and revoke cannot both win.
Expiry is applied lazily: expire_pending() runs before create, list, revoke
and accept.
"""
from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tenantgate.config import Settings
from tenantgate.core.exceptions import DuplicateInvite, InvalidInvite, InviteNotFound
from tenantgate.core.security import constant_time_equals, generate_invite_token, hash_invite_token
from tenantgate.models.invite import Invite, InviteStatus
from tenantgate.models.membership import Membership, TenantRole
from tenantgate.models.user import User, normalize_email
from tenantgate.services.audit import AuditEmitter
from tenantgate.services.membership_authority import MembershipAuthority
from tenantgate.utils.logging import get_logger

logger = get_logger(__name__)


class CreatedInvite(NamedTuple):
    invite: Invite
    # Returned exactly once; only its hash is stored
    token: str


class InvitePage(NamedTuple):
    items: List[Invite]
    total: int
    page: int
    page_size: int


class AcceptedInvite(NamedTuple):
    membership: Membership
    created: bool


class InviteLifecycle:
    def __init__(
        self,
        db: Session,
        memberships: MembershipAuthority,
        audit: AuditEmitter,
        settings: Settings,
    ):
        self.db = db
        self.memberships = memberships
        self.audit = audit
        self.default_ttl_hours = settings.INVITE_TTL_HOURS

    def expire_pending(self, now: Optional[datetime] = None) -> int:
        """Flip every pending invite past its expiry to expired."""
        now = now or datetime.utcnow()
        expired = (
            self.db.query(Invite)
            .filter(Invite.status == InviteStatus.PENDING, Invite.expires_at <= now)
            .update(
                {Invite.status: InviteStatus.EXPIRED, Invite.updated_at: now},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if expired:
            logger.info(f"Expired {expired} pending invite(s)")
        return expired

    def create(
        self,
        tenant_id: str,
        email: str,
        role: TenantRole,
        inviter_user_id: str,
        ttl_hours: Optional[int] = None,
    ) -> CreatedInvite:
        now = datetime.utcnow()
        self.expire_pending(now)

        email = normalize_email(email)
        pending = (
            self.db.query(Invite.id)
            .filter(
                Invite.tenant_id == tenant_id,
                Invite.email == email,
                Invite.status == InviteStatus.PENDING,
            )
            .first()
        )
        if pending:
            raise DuplicateInvite()

        token = generate_invite_token()
        invite = Invite(
            tenant_id=tenant_id,
            email=email,
            role=TenantRole(role),
            token_hash=hash_invite_token(token),
            status=InviteStatus.PENDING,
            expires_at=now + timedelta(hours=ttl_hours or self.default_ttl_hours),
            invited_by_user_id=inviter_user_id,
        )
        self.db.add(invite)
        try:
            self.db.commit()
        except IntegrityError:
            # Partial unique index on (tenant_id, email) where pending
            self.db.rollback()
            raise DuplicateInvite()

        self.audit.emit(
            "invite.created",
            actor_user_id=inviter_user_id,
            tenant_id=tenant_id,
            entity_type="Invite",
            entity_id=invite.id,
            role=invite.role.value,
        )
        return CreatedInvite(invite=invite, token=token)

    def list(
        self,
        tenant_id: str,
        status: Optional[InviteStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> InvitePage:
        self.expire_pending()

        query = self.db.query(Invite).filter(Invite.tenant_id == tenant_id)
        if status is not None:
            query = query.filter(Invite.status == InviteStatus(status))

        total = query.count()
        items = (
            query.order_by(Invite.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .populate_existing()
            .all()
        )
        return InvitePage(items=items, total=total, page=page, page_size=page_size)

    def revoke(self, tenant_id: str, invite_id: str, actor_user_id: str) -> None:
        """
        Revoke a pending invite.

        Missing, foreign-tenant, accepted, expired and already revoked invites
        all raise the same InviteNotFound.
        """
        now = datetime.utcnow()
        self.expire_pending(now)

        revoked = (
            self.db.query(Invite)
            .filter(
                Invite.id == invite_id,
                Invite.tenant_id == tenant_id,
                Invite.status == InviteStatus.PENDING,
            )
            .update(
                {Invite.status: InviteStatus.REVOKED, Invite.updated_at: now},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if revoked != 1:
            raise InviteNotFound()

        self.audit.emit(
            "invite.revoked",
            actor_user_id=actor_user_id,
            tenant_id=tenant_id,
            entity_type="Invite",
            entity_id=invite_id,
        )

    def accept(self, tenant_id: str, raw_token: str, accepter_user_id: str) -> AcceptedInvite:
        """
        Redeem an invite for the authenticated user.

        The accepter needs no membership yet. Every rejection is the same
        InvalidInvite. An active membership is never changed by acceptance,
        so a retried accept cannot demote an admin.
        """
        now = datetime.utcnow()
        self.expire_pending(now)

        if not raw_token:
            raise InvalidInvite()

        token_hash = hash_invite_token(raw_token.strip())
        invite = (
            self.db.query(Invite)
            .filter(Invite.tenant_id == tenant_id, Invite.token_hash == token_hash)
            .populate_existing()
            .first()
        )
        if invite is None or not constant_time_equals(invite.token_hash, token_hash):
            raise InvalidInvite()
        if not invite.is_acceptable(now):
            raise InvalidInvite()

        accepter = self.db.get(User, accepter_user_id)
        if accepter is None or normalize_email(accepter.email) != invite.email:
            raise InvalidInvite()

        invite_id = invite.id
        # The invite flip and the membership write commit together or not at all
        try:
            accepted = (
                self.db.query(Invite)
                .filter(
                    Invite.id == invite.id,
                    Invite.tenant_id == tenant_id,
                    Invite.status == InviteStatus.PENDING,
                    Invite.expires_at > now,
                )
                .update(
                    {
                        Invite.status: InviteStatus.ACCEPTED,
                        Invite.accepted_by_user_id: accepter_user_id,
                        Invite.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if accepted != 1:
                self.db.rollback()
                raise InvalidInvite()

            membership = self.memberships.get_active_membership(tenant_id, accepter_user_id)
            created = membership is None
            if created:
                membership = self.memberships.upsert_role(
                    tenant_id,
                    accepter_user_id,
                    invite.role,
                    actor_user_id=accepter_user_id,
                    commit=False,
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Invite acceptance rolled back: invite={invite_id}")
            raise

        self.audit.emit(
            "invite.accepted",
            actor_user_id=accepter_user_id,
            tenant_id=tenant_id,
            entity_type="Invite",
            entity_id=invite.id,
            membership_id=membership.id,
            role=membership.role.value,
            created=created,
        )
        return AcceptedInvite(membership=membership, created=created)
