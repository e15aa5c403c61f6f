# =============================================================================
# app/routers/users.py - User Profile Endpoints
# =============================================================================
# Profile, password, avatar, statistics, export and account deletion.
#
# Endpoints (mounted at /api/users):
# - GET    /profile   - Current profile
# - PATCH  /profile   - Update name and/or preferences
# - DELETE /profile   - Delete the account and everything it owns
# - PATCH  /password  - Change password
# - POST   /avatar    - Upload an avatar (multipart field "avatar")
# - DELETE /avatar    - Remove the avatar
# - GET    /stats     - Metrics and goal/message aggregates
# - GET    /export    - Download all stored data as JSON
# =============================================================================

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, File, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.dependencies import CurrentUser
from core.models.user import DeleteAccountRequest, PasswordUpdateRequest, UserResponse
from core.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/profile")
async def get_profile(user: CurrentUser):
    return {"success": True, "user": UserResponse.from_row(user.record)}


@router.patch("/profile")
async def update_profile(
    user: CurrentUser,
    updates: Annotated[dict[str, Any], Body(examples=[{"preferences": {"coaching_style": "direct"}}])],
):
    """
    Update name and/or preferences.

    Preferences are merged; any other field is rejected with 400.
    """
    updated = UserService.update_profile(user.id, updates)
    return {"success": True, "user": UserResponse.from_row(updated)}


@router.delete("/profile")
async def delete_account(
    user: CurrentUser,
    body: Annotated[DeleteAccountRequest | None, Body()] = None,
):
    """Delete the account with its goals, messages and avatar."""
    UserService.delete_account(user.id, password=body.password if body else None)
    return {"success": True, "message": "Account deleted successfully"}


@router.patch("/password")
async def change_password(request: PasswordUpdateRequest, user: CurrentUser):
    UserService.change_password(user.id, request)
    return {"success": True, "message": "Password updated successfully"}


@router.post("/avatar")
async def upload_avatar(
    user: CurrentUser,
    avatar: Annotated[UploadFile, File(description="JPEG, PNG or GIF, at most 5MB")],
):
    """
    Upload a new avatar; the previous one is deleted.

    Raises:
        400: If the file isn't JPEG, PNG or GIF
        413: If the file is larger than MAX_AVATAR_SIZE_MB
    """
    content = await avatar.read()
    updated = UserService.update_avatar(user.id, content, avatar.content_type)
    logger.info(f"Avatar updated for user {user.id} ({len(content)} bytes)")
    return {"success": True, "avatar_url": updated.get("avatar_url"), "user": UserResponse.from_row(updated)}


@router.delete("/avatar")
async def remove_avatar(user: CurrentUser):
    updated = UserService.remove_avatar(user.id)
    return {"success": True, "message": "Avatar removed", "user": UserResponse.from_row(updated)}


@router.get("/stats")
async def get_stats(user: CurrentUser):
    return {"success": True, "stats": UserService.get_stats(user.id)}


@router.get("/export")
async def export_data(user: CurrentUser):
    """All stored data for the user as a JSON attachment."""
    export = UserService.export_data(user.id)
    return JSONResponse(
        content=jsonable_encoder({"success": True, **export}),
        headers={"Content-Disposition": f'attachment; filename="lifecoach-export-{user.id}.json"'},
    )
