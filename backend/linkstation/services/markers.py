"""
Kick / Room-Delete Markers

Short-lived records explaining why a user or room disappeared. Several
triggers (inactivity sweep, master kick, room deletion cascade, admin
action) may fire for the same subject at about the same time; the marker
keeps the highest-ranked reason so the polling client is told the truest
story.

Writes read the live marker first and only replace it with a reason of
equal or higher rank. The check-then-write is best-effort, not atomic.
Expiry is delegated to the backend (setex), so both the in-process and the
external stores drop markers the same way.
"""

import time
from typing import Optional, TypeVar

from linkstation.models.presence import (
    KICK_REASON_RANK,
    ROOM_DELETE_REASON_RANK,
    KickMarker,
    KickReason,
    RoomDeleteMarker,
    RoomDeleteReason,
)
from linkstation.services.kv_store import Clock, KeyValueBackend
from linkstation.services.redis_keys import KICK_MARKER_KEY, ROOM_DELETE_MARKER_KEY
from linkstation.utils.logging_config import store_logger as logger


MARKER_TTL_SECONDS = 10 * 60

ReasonT = TypeVar("ReasonT")


def outranks(requested: ReasonT, existing: Optional[ReasonT], ranks: dict[ReasonT, int]) -> bool:
    """True when ``requested`` may replace ``existing`` (no marker, or rank >= existing)."""
    if existing is None:
        return True
    return ranks[requested] >= ranks[existing]


class MarkerStore:
    def __init__(
        self,
        store: KeyValueBackend,
        ttl: int = MARKER_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self.store = store
        self.ttl = ttl
        self._clock = clock

    # ==================== Kick markers ====================

    async def get_user_kick_marker(self, username: str) -> Optional[KickMarker]:
        if not username:
            return None
        raw = await self.store.get(KICK_MARKER_KEY.format(username=username))
        if not raw:
            return None
        return KickMarker.model_validate_json(raw)

    async def set_user_kick_marker(
        self,
        username: str,
        reason: KickReason,
        room_delete_reason: Optional[RoomDeleteReason] = None,
    ) -> bool:
        """Returns False when a higher-ranked marker is already live."""
        if not username:
            return False
        existing = await self.get_user_kick_marker(username)
        if not outranks(reason, existing.reason if existing else None, KICK_REASON_RANK):
            logger.debug(
                f"Kick marker for {username} kept at {existing.reason.value}, dropped {reason.value}"
            )
            return False

        marker = KickMarker(
            reason=reason,
            timestamp=self._clock(),
            room_delete_reason=room_delete_reason,
        )
        await self.store.setex(
            KICK_MARKER_KEY.format(username=username), self.ttl, marker.model_dump_json()
        )
        return True

    async def was_user_kicked_by_admin(self, username: str) -> bool:
        marker = await self.get_user_kick_marker(username)
        return marker is not None and marker.reason == KickReason.ADMIN

    # ==================== Room delete markers ====================

    async def get_room_delete_marker(self, room_id: str) -> Optional[RoomDeleteMarker]:
        if not room_id:
            return None
        raw = await self.store.get(ROOM_DELETE_MARKER_KEY.format(room_id=room_id))
        if not raw:
            return None
        return RoomDeleteMarker.model_validate_json(raw)

    async def set_room_delete_marker(self, room_id: str, reason: RoomDeleteReason) -> bool:
        if not room_id:
            return False
        existing = await self.get_room_delete_marker(room_id)
        if not outranks(reason, existing.reason if existing else None, ROOM_DELETE_REASON_RANK):
            logger.debug(
                f"Room marker for {room_id} kept at {existing.reason.value}, dropped {reason.value}"
            )
            return False

        marker = RoomDeleteMarker(reason=reason, timestamp=self._clock())
        await self.store.setex(
            ROOM_DELETE_MARKER_KEY.format(room_id=room_id), self.ttl, marker.model_dump_json()
        )
        return True

    async def was_room_deleted_by_admin(self, room_id: str) -> bool:
        marker = await self.get_room_delete_marker(room_id)
        return marker is not None and marker.reason == RoomDeleteReason.ADMIN
