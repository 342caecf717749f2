"""
Game Router for Link Station

Player-facing endpoints: availability checks, room creation and joining,
the voting round, membership changes and the heartbeat / polling calls.
Every handler is a thin shell around GameService.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from linkstation.schemas.game import (
    JoinResponse,
    KickRequest,
    PingRequest,
    ReturnToWaitingResponse,
    RoleChange,
    RoomCreate,
    RoomIdOnly,
    RoomJoin,
    RoomJoinById,
    RoomNameCheck,
    RoomStatusResponse,
    RoomUserAction,
    SelectRequest,
    SelectResponse,
    UsernameCheck,
    UsernameOnly,
    WarningCheck,
    WarningStatus,
    room_view,
)
from linkstation.routers.deps import get_game_service
from linkstation.services.game_service import GameService


router = APIRouter(prefix="/api", tags=["Game"])

Game = Annotated[GameService, Depends(get_game_service)]


# ==================== Availability ====================

@router.post("/check-username")
async def check_username(data: UsernameCheck, game: Game):
    return {"success": True, **await game.check_username(data.username)}


@router.post("/check-roomname")
async def check_room_name(data: RoomNameCheck, game: Game):
    return {"success": True, "duplicate": await game.check_room_name(data.room_name)}


# ==================== Create / join ====================

@router.post("/create-room", response_model=JoinResponse)
async def create_room(data: RoomCreate, game: Game):
    return await game.create_room(
        room_name=data.room_name,
        member_limit=data.member_limit,
        username=data.username,
        room_password=data.room_password,
    )


@router.post("/join-room", response_model=JoinResponse)
async def join_room(data: RoomJoin, game: Game):
    """Join by name; a protected room answers requires_password until one is sent."""
    return await game.join_room(data.room_name, data.username, data.password)


@router.post("/check-password", response_model=JoinResponse)
async def check_password(data: RoomJoin, game: Game):
    """Second step of a protected join: the password is mandatory here."""
    return await game.join_room(data.room_name, data.username, data.password or "")


@router.post("/join-room-qr", response_model=JoinResponse)
async def join_room_by_id(data: RoomJoinById, game: Game):
    return await game.join_room_by_id(data.room_id, data.username)


# ==================== Game ====================

@router.post("/start-game")
async def start_game(data: RoomUserAction, game: Game):
    room = await game.start_game(data.room_id, data.user_id)
    return {"success": True, "room": room_view(room)}


@router.post("/select", response_model=SelectResponse)
async def select(data: SelectRequest, game: Game):
    return await game.select(data.room_id, data.user_id, data.selected_user_id)


@router.post("/change-role")
async def change_role(data: RoleChange, game: Game):
    users = await game.change_role(data.room_id, data.user_id, data.role)
    return {"success": True, "users": users}


@router.post("/return-to-waiting", response_model=ReturnToWaitingResponse)
async def return_to_waiting(data: RoomUserAction, game: Game):
    return await game.return_to_waiting(data.room_id, data.user_id)


@router.get("/room/{room_id}", response_model=RoomStatusResponse)
async def room_status(room_id: str, game: Game, username: Optional[str] = None):
    return await game.room_status(room_id, username)


# ==================== Membership ====================

@router.post("/kick-user")
async def kick_user(data: KickRequest, game: Game):
    users = await game.kick_user(data.room_id, data.master_user_id, data.target_user_id)
    return {"success": True, "users": users}


@router.post("/leave-room")
async def leave_room(data: RoomUserAction, game: Game):
    await game.leave_room(data.room_id, data.user_id)
    return {"success": True}


@router.post("/remove-user")
async def remove_user(data: UsernameOnly, game: Game):
    await game.remove_user(data.username)
    return {"success": True}


# ==================== Heartbeats ====================

@router.post("/ping")
async def ping(data: PingRequest, game: Game):
    timestamp = await game.ping(data.username, data.user_id)
    return {"success": True, "timestamp": int(timestamp * 1000)}


@router.post("/keep-alive-user")
async def keep_alive_user(data: UsernameOnly, game: Game):
    return {"success": True, "updated": await game.keep_alive_user(data.username)}


@router.post("/keep-alive-room")
async def keep_alive_room(data: RoomIdOnly, game: Game):
    await game.keep_alive_room(data.room_id)
    return {"success": True}


@router.post("/check-warning", response_model=WarningStatus)
async def check_warning(data: WarningCheck, game: Game):
    return await game.check_warning(data.username, data.user_id, data.room_id)
