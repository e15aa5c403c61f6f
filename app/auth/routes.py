# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Registration, login and token checks.
#
# Endpoints:
# - POST /api/auth/register - Create an account, returns a token
# - POST /api/auth/login    - Exchange credentials for a token
# - GET  /api/auth/me       - Current user
# - GET  /api/auth/verify   - Check a stored token is still valid
#
# Register/login responses of 400 or above count against the auth rate
# limit (see RateLimitMiddleware).
# =============================================================================

import logging

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_current_user
from app.auth.models import AuthResponse, AuthUser
from core.models.user import LoginRequest, RegisterRequest, UserResponse
from core.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(body: RegisterRequest) -> AuthResponse:
    """
    Create an account.

    Returns:
        AuthResponse: Token and the new user's profile

    Raises:
        400: If the email is already registered or the password is weak
        429: If too many attempts failed from this IP
    """
    user, token = UserService.register(body)
    return AuthResponse(token=token, user=UserResponse.from_row(user))


@router.post(
    "/login",
    response_model=AuthResponse,
)
async def login(body: LoginRequest) -> AuthResponse:
    """
    Log in with email and password.

    Raises:
        401: If the email/password pair is wrong
        403: If the account is suspended or deleted
        429: If too many attempts failed from this IP
    """
    user, token = UserService.authenticate(body)
    return AuthResponse(token=token, user=UserResponse.from_row(user))


@router.get("/me")
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Get the current authenticated user's profile.

    Raises:
        401: If not authenticated
    """
    return {
        "success": True,
        "user": UserResponse.from_row(user.record).model_dump(mode="json"),
    }


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Useful for checking if a stored token is still valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "success": True,
        "valid": True,
        "user_id": user.id,
        "email": user.email,
    }
