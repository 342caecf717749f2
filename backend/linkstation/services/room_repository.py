"""
Room Repository

Stores Room aggregates and keeps three indexes in step with them:

- room:{id}               -> serialized room
- room:name:{lower name}  -> room id
- rooms:ids               -> set of live room ids

Deleting a room leaves a short-lived tombstone so a client polling a room
that vanished between two polls can tell "recently deleted" from
"never existed".
"""

import time
from typing import List, Optional

from linkstation.models.room import Room
from linkstation.services.kv_store import Clock, KeyValueBackend
from linkstation.services.redis_keys import (
    DELETED_ROOM_KEY,
    ROOM_KEY,
    ROOM_NAME_KEY,
    ROOM_SET_KEY,
)
from linkstation.utils.logging_config import store_logger as logger


DELETED_ROOM_TTL_SECONDS = 10 * 60


class RoomRepository:
    def __init__(
        self,
        store: KeyValueBackend,
        tombstone_ttl: int = DELETED_ROOM_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self.store = store
        self.tombstone_ttl = tombstone_ttl
        self._clock = clock

    async def get_by_id(self, room_id: str) -> Optional[Room]:
        if not room_id:
            return None
        raw = await self.store.get(ROOM_KEY.format(room_id=room_id))
        if not raw:
            return None
        return Room.from_storage(raw)

    async def get_by_name(self, name_lower: str) -> Optional[Room]:
        if not name_lower:
            return None
        room_id = await self.store.get(ROOM_NAME_KEY.format(name_lower=name_lower.lower()))
        if not room_id:
            return None
        return await self.get_by_id(room_id)

    async def save(self, room: Room) -> None:
        # Record first, index last: the name index never points at a missing room
        await self.store.set(ROOM_KEY.format(room_id=room.id), room.to_storage())
        await self.store.sadd(ROOM_SET_KEY, room.id)
        await self.store.set(ROOM_NAME_KEY.format(name_lower=room.name_key), room.id)

    async def delete(self, room_id: str) -> Optional[Room]:
        """
        Remove the room, its set membership and its name index, then write
        a tombstone. Returns the room that was removed, if it still existed.
        """
        if not room_id:
            return None
        room = await self.get_by_id(room_id)
        await self.store.delete(ROOM_KEY.format(room_id=room_id))
        await self.store.srem(ROOM_SET_KEY, room_id)
        if room:
            name_key = ROOM_NAME_KEY.format(name_lower=room.name_key)
            # Only drop the index if it still belongs to this room
            if await self.store.get(name_key) == room_id:
                await self.store.delete(name_key)
        await self.mark_deleted(room_id)
        logger.debug(f"Room deleted: {room_id}")
        return room

    async def list_ids(self) -> List[str]:
        return await self.store.smembers(ROOM_SET_KEY)

    async def forget(self, room_id: str) -> None:
        """Drop a stale id from the room set (record already gone)."""
        await self.store.srem(ROOM_SET_KEY, room_id)

    async def list_rooms(self) -> List[Room]:
        rooms = []
        for room_id in await self.list_ids():
            room = await self.get_by_id(room_id)
            if room:
                rooms.append(room)
        return rooms

    async def mark_deleted(self, room_id: str) -> None:
        await self.store.setex(
            DELETED_ROOM_KEY.format(room_id=room_id),
            self.tombstone_ttl,
            str(int(self._clock() * 1000)),
        )

    async def was_deleted(self, room_id: str) -> bool:
        if not room_id:
            return False
        return bool(await self.store.get(DELETED_ROOM_KEY.format(room_id=room_id)))
