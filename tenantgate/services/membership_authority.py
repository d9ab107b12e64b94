"""
Membership Authority

The RBAC decision function and every membership mutation.

get_active_membership() is the single primitive; the gates are built on it
and run a fresh query on every call. Nothing here caches a decision.

Writes go through upsert_role() and set_status(). Both enforce that a tenant
keeps at least one active tenantAdmin.
"""
from datetime import datetime
from typing import Iterable, List, Optional
import uuid

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, joinedload

from tenantgate.core.exceptions import Conflict, Forbidden, LastTenantAdmin, NotFound
from tenantgate.core.permissions import role_allowed
from tenantgate.models.membership import Membership, MembershipStatus, TenantRole
from tenantgate.services.audit import AuditEmitter
from tenantgate.utils.logging import get_logger

logger = get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class MembershipAuthority:
    def __init__(self, db: Session, audit: AuditEmitter):
        self.db = db
        self.audit = audit

    # ------------------------------------------------------------------
    # Reads and gates
    # ------------------------------------------------------------------

    def get_active_membership(self, tenant_id: str, user_id: str) -> Optional[Membership]:
        return (
            self.db.query(Membership)
            .filter(
                Membership.tenant_id == tenant_id,
                Membership.user_id == user_id,
                Membership.status == MembershipStatus.ACTIVE,
            )
            .populate_existing()
            .first()
        )

    def require_membership(self, tenant_id: str, user_id: str) -> Membership:
        membership = self.get_active_membership(tenant_id, user_id)
        if membership is None:
            raise Forbidden("Not a member of this tenant")
        return membership

    def require_role(self, tenant_id: str, user_id: str, allowed: Iterable[TenantRole]) -> Membership:
        """Re-fetches the membership; a demotion committed a moment ago applies here."""
        membership = self.get_active_membership(tenant_id, user_id)
        if membership is None or not role_allowed(membership, allowed):
            raise Forbidden("Insufficient tenant role")
        return membership

    def get_membership(self, tenant_id: str, user_id: str) -> Optional[Membership]:
        """Any status, for admin views and mutations."""
        return (
            self.db.query(Membership)
            .filter(Membership.tenant_id == tenant_id, Membership.user_id == user_id)
            .populate_existing()
            .first()
        )

    def list_members(self, tenant_id: str, include_removed: bool = False) -> List[Membership]:
        query = (
            self.db.query(Membership)
            .options(joinedload(Membership.user))
            .filter(Membership.tenant_id == tenant_id)
        )
        if not include_removed:
            query = query.filter(Membership.status != MembershipStatus.REMOVED)
        return query.order_by(Membership.created_at.asc()).all()

    def count_active_admins(self, tenant_id: str, exclude_user_id: Optional[str] = None, lock: bool = False) -> int:
        query = self.db.query(Membership.id).filter(
            Membership.tenant_id == tenant_id,
            Membership.role == TenantRole.TENANT_ADMIN,
            Membership.status == MembershipStatus.ACTIVE,
        )
        if exclude_user_id is not None:
            query = query.filter(Membership.user_id != exclude_user_id)
        if lock:
            # Row locks, not an aggregate: FOR UPDATE cannot wrap COUNT(*)
            query = query.with_for_update()
        return len(query.all())

    def _guard_last_admin(
        self,
        current: Optional[Membership],
        new_role: TenantRole,
        new_status: MembershipStatus,
    ) -> None:
        if current is None or not current.is_active_admin:
            return
        if new_role == TenantRole.TENANT_ADMIN and new_status == MembershipStatus.ACTIVE:
            return
        if self.count_active_admins(current.tenant_id, exclude_user_id=current.user_id, lock=True) == 0:
            self.db.rollback()
            raise LastTenantAdmin()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_role(
        self,
        tenant_id: str,
        user_id: str,
        role: TenantRole,
        actor_user_id: Optional[str] = None,
        commit: bool = True,
    ) -> Membership:
        """
        Make the user an active member with `role`.

        INSERT ... ON CONFLICT (tenant_id, user_id) DO UPDATE, so two concurrent
        assignments for the same pair end in one row.

        With commit=False the write joins the caller's transaction. The caller
        commits, and no role_changed event is emitted for it.
        """
        role = TenantRole(role)
        current = self.get_membership(tenant_id, user_id)
        previous = (current.role, current.status) if current is not None else None
        self._guard_last_admin(current, role, MembershipStatus.ACTIVE)

        now = datetime.utcnow()
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"Membership upsert is not supported on {dialect}")

        stmt = insert(Membership.__table__).values(
            id=current.id if current is not None else str(uuid.uuid4()),
            tenant_id=tenant_id,
            user_id=user_id,
            role=role,
            status=MembershipStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["tenant_id", "user_id"],
            set_={
                "role": role,
                "status": MembershipStatus.ACTIVE,
                "updated_at": now,
            },
        )
        self.db.execute(stmt)
        if not commit:
            return self.get_membership(tenant_id, user_id)
        self.db.commit()

        membership = self.get_membership(tenant_id, user_id)

        if previous != (membership.role, membership.status):
            self.audit.emit(
                "membership.role_changed",
                actor_user_id=actor_user_id,
                tenant_id=tenant_id,
                entity_type="Membership",
                entity_id=membership.id,
                user_id=user_id,
                previous_role=previous[0].value if previous else None,
                previous_status=previous[1].value if previous else None,
                role=membership.role.value,
            )
        return membership

    def change_role(
        self,
        tenant_id: str,
        user_id: str,
        role: TenantRole,
        actor_user_id: Optional[str] = None,
    ) -> Membership:
        """Role update for an existing, non-removed member."""
        current = self.get_membership(tenant_id, user_id)
        if current is None or current.status == MembershipStatus.REMOVED:
            raise NotFound("Membership not found")
        return self.upsert_role(tenant_id, user_id, role, actor_user_id=actor_user_id)

    def set_status(
        self,
        tenant_id: str,
        user_id: str,
        status: MembershipStatus,
        actor_user_id: Optional[str] = None,
    ) -> Membership:
        """
        Soft transition. Removal flips status; rows are never deleted.

        REMOVED is terminal here. Bringing someone back goes through
        upsert_role(), which applies the last-admin guard and audits the role.
        """
        status = MembershipStatus(status)
        membership = (
            self.db.query(Membership)
            .filter(Membership.tenant_id == tenant_id, Membership.user_id == user_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if membership is None:
            self.db.rollback()
            raise NotFound("Membership not found")

        if membership.status == MembershipStatus.REMOVED and status != MembershipStatus.REMOVED:
            self.db.rollback()
            raise Conflict("Removed memberships cannot change status")

        self._guard_last_admin(membership, membership.role, status)

        previous = membership.status
        if previous == status:
            self.db.commit()
            return membership

        membership.status = status
        membership.updated_at = datetime.utcnow()
        self.db.commit()

        self.audit.emit(
            "membership.status_changed",
            actor_user_id=actor_user_id,
            tenant_id=tenant_id,
            entity_type="Membership",
            entity_id=membership.id,
            user_id=user_id,
            previous_status=previous.value,
            status=status.value,
        )
        return membership

    def remove(self, tenant_id: str, user_id: str, actor_user_id: Optional[str] = None) -> Membership:
        return self.set_status(tenant_id, user_id, MembershipStatus.REMOVED, actor_user_id=actor_user_id)
