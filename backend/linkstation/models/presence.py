from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ActiveUserRecord(BaseModel):
    """Process-wide presence fact; its existence is what makes a username taken."""

    room_id: Optional[str] = None
    user_id: str
    last_activity: float


class KickReason(str, Enum):
    INACTIVITY = "INACTIVITY"
    ROOM_DELETED = "ROOM_DELETED"
    MASTER = "MASTER"
    ADMIN = "ADMIN"


class RoomDeleteReason(str, Enum):
    EMPTY = "EMPTY"
    INACTIVITY = "INACTIVITY"
    ADMIN = "ADMIN"


# Rank tables (higher wins). Shared by every marker write.
KICK_REASON_RANK: dict[KickReason, int] = {
    KickReason.INACTIVITY: 0,
    KickReason.ROOM_DELETED: 1,
    KickReason.MASTER: 2,
    KickReason.ADMIN: 3,
}

ROOM_DELETE_REASON_RANK: dict[RoomDeleteReason, int] = {
    RoomDeleteReason.EMPTY: 0,
    RoomDeleteReason.INACTIVITY: 1,
    RoomDeleteReason.ADMIN: 2,
}


class KickMarker(BaseModel):
    reason: KickReason
    timestamp: float
    room_delete_reason: Optional[RoomDeleteReason] = None


class RoomDeleteMarker(BaseModel):
    reason: RoomDeleteReason
    timestamp: float
