from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from linkstation.models.room import (
    MAX_MEMBER_LIMIT,
    MIN_MEMBER_LIMIT,
    GameState,
    MatchResult,
    Role,
    Room,
)


# ==================== Requests ====================

class UsernameCheck(BaseModel):
    username: str = ""


class RoomNameCheck(BaseModel):
    room_name: str = ""


class RoomCreate(BaseModel):
    room_name: str = Field(..., max_length=100)
    room_password: Optional[str] = None
    member_limit: int = Field(..., ge=MIN_MEMBER_LIMIT, le=MAX_MEMBER_LIMIT)
    username: str = Field(..., max_length=50)


class RoomJoin(BaseModel):
    room_name: str
    username: str
    password: Optional[str] = None


class RoomJoinById(BaseModel):
    room_id: str
    username: str


class RoomUserAction(BaseModel):
    room_id: str
    user_id: str


class SelectRequest(RoomUserAction):
    selected_user_id: str


class RoleChange(RoomUserAction):
    role: Role


class KickRequest(BaseModel):
    room_id: str
    master_user_id: str
    target_user_id: str


class PingRequest(BaseModel):
    username: Optional[str] = None
    user_id: Optional[str] = None


class WarningCheck(PingRequest):
    room_id: Optional[str] = None


class UsernameOnly(BaseModel):
    username: Optional[str] = None


class RoomIdOnly(BaseModel):
    room_id: str


# ==================== Views ====================

class UserView(BaseModel):
    """A room member as clients see it. ``is_master`` is derived from the room."""

    id: str
    username: str
    display_name: str
    joined_at: datetime
    role: Role
    is_master: bool
    has_voted: bool
    has_returned_to_waiting: bool = False


class RoomInfo(BaseModel):
    room_name: str
    member_limit: int
    has_password: bool


class JoinResponse(BaseModel):
    success: bool = True
    room_id: str
    user_id: str
    users: list[UserView]
    is_master: bool
    role: Role = Role.ATTENDER
    room_data: RoomInfo


class RoomView(BaseModel):
    id: str
    users: list[UserView]
    selections: dict[str, str]
    game_state: GameState
    master_id: str


class RoomStatusResponse(BaseModel):
    success: bool = True
    room: RoomView
    match_result: Optional[MatchResult] = None
    kicked_by_admin: Optional[list[str]] = None


class SelectResponse(BaseModel):
    success: bool = True
    completed: bool
    users: list[UserView]
    match_result: Optional[MatchResult] = None
    room_deleted: bool = False


class ReturnToWaitingResponse(BaseModel):
    success: bool = True
    all_returned: bool
    returned_count: int
    total_attenders: int


class WarningStatus(BaseModel):
    success: bool = True
    user_warning: bool = False
    user_time_left: int = 0
    room_warning: bool = False
    room_time_left: int = 0
    kick_reason: Optional[str] = None
    room_delete_reason: Optional[str] = None
    user_disconnected: bool = False
    room_deleted: bool = False


def user_views(room: Room) -> list[UserView]:
    return [
        UserView(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            joined_at=user.joined_at,
            role=user.role,
            is_master=room.is_master(user.id),
            has_voted=user.id in room.selections,
            has_returned_to_waiting=user.id in room.returned_to_waiting,
        )
        for user in room.users.values()
    ]


def room_info(room: Room) -> RoomInfo:
    return RoomInfo(
        room_name=room.room_name,
        member_limit=room.member_limit,
        has_password=bool(room.room_password),
    )


def room_view(room: Room) -> RoomView:
    return RoomView(
        id=room.id,
        users=user_views(room),
        selections=dict(room.selections),
        game_state=room.game_state,
        master_id=room.master_id,
    )
