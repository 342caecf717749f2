from typing import Literal, Optional

from pydantic import BaseModel, Field

from linkstation.models.room import GameState


UserFilter = Literal["all", "notInRoom", "waiting", "linking", "completed"]
RoomFilter = Literal["all", "waiting", "linking", "completed"]
CleanupType = Literal["users", "rooms", "both"]


class AdminLogin(BaseModel):
    password: str


class AdminTokenBody(BaseModel):
    """Token may also arrive in the X-Admin-Token header."""

    token: Optional[str] = None


class ShutdownToggle(AdminTokenBody):
    shutdown: bool


class UserListRequest(AdminTokenBody):
    filter: UserFilter = "all"


class RoomListRequest(AdminTokenBody):
    filter: RoomFilter = "all"


class AdminKickUser(AdminTokenBody):
    username: str


class AdminDeleteRoom(AdminTokenBody):
    room_id: str


class CleanupRequest(AdminTokenBody):
    cleanup_type: CleanupType = "both"


class ChangePassword(AdminTokenBody):
    current_password: str
    new_password: str = Field(..., min_length=1)


class KickSession(AdminTokenBody):
    target_token: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    expires_in: int


class TokenStatus(BaseModel):
    success: bool = True
    remaining_seconds: int
    warning: bool


class RoomCounts(BaseModel):
    total: int = 0
    waiting: int = 0
    linking: int = 0
    completed: int = 0


class UserCounts(BaseModel):
    total: int = 0
    not_in_room: int = 0
    waiting: int = 0
    linking: int = 0
    completed: int = 0


class AdminStatus(BaseModel):
    success: bool = True
    room_counts: RoomCounts
    user_counts: UserCounts
    admin_sessions: int


class AdminUserEntry(BaseModel):
    username: str
    room_id: Optional[str] = None
    state: str
    room_name: Optional[str] = None
    is_master: bool = False


class AdminRoomEntry(BaseModel):
    id: str
    room_name: str
    game_state: GameState
    user_count: int
    member_limit: int
    has_password: bool
    password: Optional[str] = None
    master_id: str


class AdminSession(BaseModel):
    token: str
    token_preview: str
    remaining_seconds: int
