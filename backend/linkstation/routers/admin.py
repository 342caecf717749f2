"""
Admin Router for Link Station

Every endpoint except login takes the admin token from the X-Admin-Token
header or the body field ``token``.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from linkstation.schemas.admin import (
    AdminDeleteRoom,
    AdminKickUser,
    AdminLogin,
    AdminStatus,
    AdminTokenBody,
    ChangePassword,
    CleanupRequest,
    KickSession,
    LoginResponse,
    RoomListRequest,
    ShutdownToggle,
    TokenStatus,
    UserListRequest,
)
from linkstation.routers.deps import admin_token_header, get_admin_service, resolve_admin_token
from linkstation.services.admin_service import AdminService


router = APIRouter(prefix="/api", tags=["Admin"])

Admin = Annotated[AdminService, Depends(get_admin_service)]
HeaderToken = Annotated[Optional[str], Depends(admin_token_header)]


@router.post("/admin-login", response_model=LoginResponse)
async def admin_login(data: AdminLogin, admin: Admin):
    return await admin.login(data.password)


@router.post("/admin-logout")
async def admin_logout(admin: Admin, header_token: HeaderToken, data: Optional[AdminTokenBody] = None):
    await admin.logout(resolve_admin_token(header_token, data.token if data else None))
    return {"success": True}


@router.get("/admin-token-status", response_model=TokenStatus)
async def admin_token_status(admin: Admin, header_token: HeaderToken, token: Optional[str] = None):
    """Polled by the admin page; does not extend the session."""
    return await admin.token_status(resolve_admin_token(header_token, token))


@router.post("/admin-keep-alive", response_model=TokenStatus)
async def admin_keep_alive(admin: Admin, header_token: HeaderToken, data: Optional[AdminTokenBody] = None):
    return await admin.keep_alive(resolve_admin_token(header_token, data.token if data else None))


@router.post("/admin-change-password")
async def admin_change_password(data: ChangePassword, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    await admin.change_password(data.current_password, data.new_password)
    return {"success": True}


@router.get("/admin-sessions")
async def admin_sessions(admin: Admin, header_token: HeaderToken, token: Optional[str] = None):
    await admin.require_token(resolve_admin_token(header_token, token))
    return {"success": True, "sessions": await admin.list_sessions()}


@router.post("/admin-kick-session")
async def admin_kick_session(data: KickSession, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    await admin.kick_session(data.target_token)
    return {"success": True}


# ==================== Shutdown ====================

@router.get("/admin-shutdown-status")
async def admin_shutdown_status(admin: Admin):
    """Public: clients use it to show the shut-down screen."""
    return {"success": True, "shutdown": await admin.get_shutdown()}


@router.post("/admin-shutdown")
async def admin_shutdown(data: ShutdownToggle, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    return {"success": True, "shutdown": await admin.set_shutdown(data.shutdown)}


# ==================== Overview ====================

@router.post("/admin-status", response_model=AdminStatus)
async def admin_status(admin: Admin, header_token: HeaderToken, data: Optional[AdminTokenBody] = None):
    await admin.require_token(resolve_admin_token(header_token, data.token if data else None))
    return await admin.status()


@router.post("/admin-users")
async def admin_users(data: UserListRequest, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    return {"success": True, "users": await admin.list_users(data.filter)}


@router.post("/admin-rooms")
async def admin_rooms(data: RoomListRequest, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    return {"success": True, "rooms": await admin.list_rooms(data.filter)}


# ==================== Enforcement ====================

@router.post("/admin-kick-user")
async def admin_kick_user(data: AdminKickUser, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    await admin.kick_user(data.username)
    return {"success": True}


@router.post("/admin-delete-room")
async def admin_delete_room(data: AdminDeleteRoom, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    room = await admin.delete_room(data.room_id)
    return {"success": True, "room_name": room.room_name}


@router.post("/admin-cleanup")
async def admin_cleanup(data: CleanupRequest, admin: Admin, header_token: HeaderToken):
    await admin.require_token(resolve_admin_token(header_token, data.token))
    await admin.cleanup(data.cleanup_type)
    return {"success": True}
