from linkstation.schemas.game import (
    RoomCreate, RoomJoin, RoomJoinById, SelectRequest, RoleChange, KickRequest,
    UserView, RoomView, JoinResponse, RoomStatusResponse, SelectResponse, WarningStatus,
    user_views, room_view, room_info,
)
from linkstation.schemas.admin import AdminLogin, AdminStatus, AdminUserEntry, AdminRoomEntry, AdminSession

__all__ = [
    "RoomCreate", "RoomJoin", "RoomJoinById", "SelectRequest", "RoleChange", "KickRequest",
    "UserView", "RoomView", "JoinResponse", "RoomStatusResponse", "SelectResponse", "WarningStatus",
    "user_views", "room_view", "room_info",
    "AdminLogin", "AdminStatus", "AdminUserEntry", "AdminRoomEntry", "AdminSession",
]
