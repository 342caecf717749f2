"""
Periodic cleanup of inactive users and empty / zombie rooms.

Runs as a background asyncio task and interleaves freely with request
handlers, so a room or user that has already vanished is skipped, never
treated as an error.
"""

import asyncio
from typing import Optional

from linkstation.models.presence import KickReason, RoomDeleteReason
from linkstation.models.room import Room
from linkstation.services.game_service import GameService
from linkstation.services.kv_store import KeyValueBackend
from linkstation.utils.logging_config import cleanup_logger as logger


class CleanupService:
    def __init__(self, game: GameService, store: KeyValueBackend):
        self.game = game
        self.store = store
        self.config = game.config
        self._task: Optional[asyncio.Task] = None

    async def sweep_inactive_users(self, now: Optional[float] = None) -> int:
        """
        Remove users idle past USER_TIMEOUT_SECONDS from their rooms and free
        their usernames. Returns how many users were removed.
        """
        now = self.game.now() if now is None else now
        touched_rooms: dict[str, Room] = {}
        removed = 0

        for username, record in await self.game.active_users.list_all():
            inactive = now - record.last_activity
            if inactive <= self.config.USER_TIMEOUT_SECONDS:
                continue

            logger.info(f"Inactive user: {username} ({int(inactive)}s)")
            await self.game.markers.set_user_kick_marker(username, KickReason.INACTIVITY)

            room = touched_rooms.get(record.room_id) if record.room_id else None
            if room is None and record.room_id:
                room = await self.game.rooms.get_by_id(record.room_id)
            if room is not None:
                self.game.remove_member(room, record.user_id)
                touched_rooms[room.id] = room

            await self.game.active_users.delete(username)
            removed += 1

        for room in touched_rooms.values():
            await self.game.settle_room(room)

        return removed

    async def sweep_rooms(self, now: Optional[float] = None) -> int:
        """Delete empty rooms and rooms with no game activity for too long."""
        now = self.game.now() if now is None else now
        deleted = 0

        for room_id in await self.game.rooms.list_ids():
            room = await self.game.rooms.get_by_id(room_id)
            if room is None:
                await self.game.rooms.forget(room_id)
                continue

            if room.is_empty:
                await self.game.settle_room(room)
                deleted += 1
                continue

            idle = now - (room.last_activity or room.created_at.timestamp())
            if idle <= self.config.ZOMBIE_ROOM_TIMEOUT_SECONDS:
                continue

            await self.game.markers.set_room_delete_marker(room_id, RoomDeleteReason.INACTIVITY)
            for user in room.users.values():
                await self.game.markers.set_user_kick_marker(
                    user.username, KickReason.ROOM_DELETED, RoomDeleteReason.INACTIVITY
                )
                await self.game.active_users.delete(user.username)
            await self.game.rooms.delete(room_id)
            deleted += 1
            logger.info(f"Zombie room '{room.room_name}' deleted (idle {int(idle // 60)} min)")

        return deleted

    async def run_once(self) -> None:
        logger.debug("Running cleanup")
        users = await self.sweep_inactive_users()
        rooms = await self.sweep_rooms()
        compacted = await self.store.compact()
        if users or rooms or compacted:
            logger.info(
                f"Cleanup complete: {users} users, {rooms} rooms, {compacted} expired entries"
            )

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}")
            await asyncio.sleep(self.config.CLEANUP_INTERVAL_SECONDS)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info(f"Started cleanup task (every {self.config.CLEANUP_INTERVAL_SECONDS}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
