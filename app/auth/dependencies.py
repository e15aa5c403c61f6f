# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication.
#
# Tokens are HS256 JWTs issued by this API at register/login (see
# lib/security.py). Each authenticated request:
# 1. Reads the Bearer token from the Authorization header
# 2. Verifies signature and expiry
# 3. Loads the user and rejects suspended or deleted accounts
# 4. Refreshes metrics.last_active
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError

from app.auth.models import AuthUser, TokenPayload
from app.exceptions import AccountDisabledError, AuthenticationError
from core.models.user import UserStatus
from core.services.user_service import UserService
from lib.security import decode_access_token
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

# Missing headers are reported with our own message, not FastAPI's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthUser:
    """
    Resolve the authenticated user from the bearer token.

    Returns:
        AuthUser: The authenticated user, with the full row in `record`

    Raises:
        AuthenticationError: 401 if the token is missing, invalid, expired,
            or names a user that no longer exists
        AccountDisabledError: 403 if the account is suspended or deleted
    """
    if credentials is None:
        raise AuthenticationError("Access denied. No token provided.")

    try:
        payload = decode_access_token(credentials.credentials)
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise AuthenticationError("Token has expired.")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthenticationError("Invalid token.")

    try:
        claims = TokenPayload.model_validate(payload)
    except ValidationError:
        logger.warning("JWT token missing required claims")
        raise AuthenticationError("Invalid token.")

    user_id = claims.sub

    user = SupabaseClient.fetch_user(user_id)
    if not user:
        raise AuthenticationError("Token is valid but user not found.")

    status = user.get("status") or UserStatus.ACTIVE.value
    if status != UserStatus.ACTIVE.value:
        logger.warning(f"Blocked request from {status} account {user_id}")
        raise AccountDisabledError(status)

    user = UserService.touch_last_active(user)
    logger.debug(f"Authenticated user: {user_id}")
    return AuthUser.from_row(user)


async def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[AuthUser]:
    """
    Optionally get the current user from the bearer token.

    Returns None instead of raising when there is no usable token.

    Usage:
        @router.get("/public-or-private")
        async def flexible_route(user: AuthUser | None = Depends(get_current_user_optional)):
            ...
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials)
    except (AuthenticationError, AccountDisabledError):
        # If token is invalid, treat as no auth rather than error
        return None
