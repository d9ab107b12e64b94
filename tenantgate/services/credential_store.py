"""
Credential Store

Persistence for RefreshSession rows. Every write that changes a session's
state is a single conditional UPDATE so that concurrent requests race on the
database, not in Python.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from tenantgate.core.security import PLACEHOLDER_TOKEN_HASH
from tenantgate.models.refresh_session import RefreshSession


class RefreshSessionStore:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        expires_at: datetime,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> RefreshSession:
        """
        Insert a session holding a placeholder hash.

        The refresh token embeds the session id, so the row has to exist
        before the token can be minted; fill_token_hash() completes it.
        """
        session = RefreshSession(
            user_id=user_id,
            token_hash=PLACEHOLDER_TOKEN_HASH,
            expires_at=expires_at,
            user_agent=(user_agent or None) and user_agent[:512],
            ip=ip,
        )
        self.db.add(session)
        self.db.commit()
        return session

    def fill_token_hash(self, session_id: str, user_id: str, token_hash: str) -> bool:
        updated = (
            self.db.query(RefreshSession)
            .filter(
                RefreshSession.id == session_id,
                RefreshSession.user_id == user_id,
                RefreshSession.revoked_at.is_(None),
                RefreshSession.token_hash == PLACEHOLDER_TOKEN_HASH,
            )
            .update({RefreshSession.token_hash: token_hash}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def find_usable(self, session_id: str, user_id: str, now: datetime) -> Optional[RefreshSession]:
        return (
            self.db.query(RefreshSession)
            .filter(
                RefreshSession.id == session_id,
                RefreshSession.user_id == user_id,
                RefreshSession.revoked_at.is_(None),
                RefreshSession.expires_at > now,
            )
            .populate_existing()
            .first()
        )

    def rotate(
        self,
        session_id: str,
        user_id: str,
        expected_hash: str,
        new_hash: str,
        new_expires_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Compare-and-swap the token hash.

        Succeeds only while the session is unrevoked and still holds the hash
        the caller presented. Of two concurrent refreshes with the same token,
        exactly one sees rowcount 1.
        """
        updated = (
            self.db.query(RefreshSession)
            .filter(
                RefreshSession.id == session_id,
                RefreshSession.user_id == user_id,
                RefreshSession.revoked_at.is_(None),
                RefreshSession.token_hash == expected_hash,
            )
            .update(
                {
                    RefreshSession.token_hash: new_hash,
                    RefreshSession.expires_at: new_expires_at,
                    RefreshSession.rotated_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def revoke(self, session_id: str, user_id: str, now: datetime) -> bool:
        updated = (
            self.db.query(RefreshSession)
            .filter(
                RefreshSession.id == session_id,
                RefreshSession.user_id == user_id,
                RefreshSession.revoked_at.is_(None),
            )
            .update({RefreshSession.revoked_at: now}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def revoke_all_for_user(self, user_id: str, now: datetime) -> int:
        updated = (
            self.db.query(RefreshSession)
            .filter(
                RefreshSession.user_id == user_id,
                RefreshSession.revoked_at.is_(None),
            )
            .update({RefreshSession.revoked_at: now}, synchronize_session=False)
        )
        self.db.commit()
        return updated
