# =============================================================================
# lib/security.py - Password Hashing and Access Tokens
# =============================================================================
# bcrypt for password hashes, python-jose for HS256 access tokens.
#
# Usage:
#   from lib.security import hash_password, verify_password, create_access_token
#   user["password_hash"] = hash_password("Engine@1843")
#   token = create_access_token(user["id"], user["email"])
# =============================================================================

import logging
from datetime import timedelta
from typing import Any

import bcrypt
from jose import jwt

from app.config import settings
from lib.utils import utc_now

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt (cost from BCRYPT_ROUNDS)."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Compare a candidate password against a stored bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value isn't a bcrypt hash
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign an access token for a user.

    Claims: sub (user id), email, iat, exp.
    """
    issued_at = utc_now()
    expire = issued_at + (expires_delta or timedelta(days=settings.JWT_EXPIRE_DAYS))
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jose.ExpiredSignatureError: If the token has expired
        jose.JWTError: If the signature or format is invalid
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
