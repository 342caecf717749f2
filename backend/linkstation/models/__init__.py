from linkstation.models.room import GameState, Role, User, MatchPair, MatchResult, Room
from linkstation.models.presence import (
    ActiveUserRecord,
    KickReason,
    RoomDeleteReason,
    KickMarker,
    RoomDeleteMarker,
)

__all__ = [
    "GameState", "Role", "User", "MatchPair", "MatchResult", "Room",
    "ActiveUserRecord", "KickReason", "RoomDeleteReason", "KickMarker", "RoomDeleteMarker",
]
