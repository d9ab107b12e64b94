"""
Security Module

Password hashing and the hashing/comparison helpers used for refresh and
invite tokens.

SECURITY NOTES:
- Passwords are hashed with bcrypt; BCRYPT_ROUNDS sets the work factor
- Refresh tokens are stored as HMAC-SHA256 under the refresh secret, so a
  leaked table cannot be replayed without the server key
- Invite tokens are stored as plain SHA-256; they are 256-bit random values
- All digest comparisons go through hmac.compare_digest
"""
import hashlib
import hmac
import secrets

from passlib.context import CryptContext
from tenantgate.config import get_settings

settings = get_settings()

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Verified against when the email is unknown, so that path costs the same
# bcrypt work as a wrong password.
_DUMMY_PASSWORD_HASH = pwd_context.hash(secrets.token_urlsafe(16))

# Stored in a fresh refresh session until the real hash is filled in.
PLACEHOLDER_TOKEN_HASH = "0" * 64


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Uses constant-time comparison to prevent timing attacks.
    """
    return pwd_context.verify(plain_password, hashed_password)


def verify_password_dummy(plain_password: str) -> bool:
    """Burn one verification for a user that does not exist. Always False."""
    pwd_context.verify(plain_password, _DUMMY_PASSWORD_HASH)
    return False


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt.

    NOTE: This is intentionally slow. Don't call it in tight loops.
    """
    return pwd_context.hash(password)


def hash_refresh_token(raw_token: str, secret: str) -> str:
    return hmac.new(secret.encode(), raw_token.encode(), hashlib.sha256).hexdigest()


def hash_invite_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def generate_invite_token() -> str:
    return secrets.token_hex(32)


def constant_time_equals(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode(), b.encode())
