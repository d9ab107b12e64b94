"""
Token Service

Signs and verifies the two JWT kinds, using python-jose.

Access token:  sub, email, iat, exp       (minutes)
Refresh token: sub, jti, nonce, iat, exp  (days)

Access tokens carry no roles. Platform and tenant roles are read from the
database on every request so that a demotion applies immediately.

The refresh jti is the RefreshSession id. The nonce keeps two refresh tokens
issued for the same session within one second from being identical, which
rotation relies on.
"""
from datetime import datetime, timedelta
from typing import NamedTuple
import secrets

from jose import JWTError, jwt

from tenantgate.config import Settings
from tenantgate.core.exceptions import InvalidToken


class AccessClaims(NamedTuple):
    user_id: str
    email: str


class RefreshClaims(NamedTuple):
    user_id: str
    session_id: str


class TokenService:
    """Stateless beyond the secrets and TTLs taken from settings."""

    def __init__(self, settings: Settings):
        self._access_secret = settings.JWT_ACCESS_SECRET
        self._refresh_secret = settings.JWT_REFRESH_SECRET
        self._algorithm = settings.ALGORITHM
        self.access_ttl = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    @property
    def refresh_secret(self) -> str:
        return self._refresh_secret

    def refresh_expiry(self, now: datetime) -> datetime:
        return now + self.refresh_ttl

    def sign_access(self, user_id: str, email: str) -> str:
        now = datetime.utcnow()
        payload = {
            "sub": user_id,
            "email": email,
            "iat": now,
            "exp": now + self.access_ttl,
        }
        return jwt.encode(payload, self._access_secret, algorithm=self._algorithm)

    def sign_refresh(self, user_id: str, session_id: str) -> str:
        now = datetime.utcnow()
        payload = {
            "sub": user_id,
            "jti": session_id,
            "nonce": secrets.token_hex(8),
            "iat": now,
            "exp": now + self.refresh_ttl,
        }
        return jwt.encode(payload, self._refresh_secret, algorithm=self._algorithm)

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(token, self._access_secret)
        user_id = payload.get("sub")
        email = payload.get("email")
        if not isinstance(user_id, str) or not isinstance(email, str) or not user_id:
            raise InvalidToken()
        return AccessClaims(user_id=user_id, email=email)

    def verify_refresh(self, token: str) -> RefreshClaims:
        payload = self._decode(token, self._refresh_secret)
        user_id = payload.get("sub")
        session_id = payload.get("jti")
        if not isinstance(user_id, str) or not isinstance(session_id, str) or not user_id or not session_id:
            raise InvalidToken()
        return RefreshClaims(user_id=user_id, session_id=session_id)

    def _decode(self, token: str, secret: str) -> dict:
        """Signature and exp are checked by jose; anything wrong is InvalidToken."""
        if not token:
            raise InvalidToken()
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except JWTError:
            raise InvalidToken()
        if not isinstance(payload, dict) or "exp" not in payload:
            raise InvalidToken()
        return payload
