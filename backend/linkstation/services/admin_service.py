"""
Admin Service

Privileged operations behind a shared admin password: token login with a
sliding TTL, shutdown switch, overview counts, listings, force-kick,
force-delete, manual cleanup and session management.
"""

from typing import Optional

from linkstation.exceptions import (
    AdminSessionExpiredException,
    RoomNotFoundException,
    UserNotFoundException,
    ValidationException,
    WrongPasswordException,
)
from linkstation.models.presence import KickReason, RoomDeleteReason
from linkstation.models.room import Room
from linkstation.schemas.admin import (
    AdminRoomEntry,
    AdminSession,
    AdminStatus,
    AdminUserEntry,
    CleanupType,
    LoginResponse,
    RoomCounts,
    RoomFilter,
    TokenStatus,
    UserCounts,
    UserFilter,
)
from linkstation.services.admin_store import AdminSessionStore
from linkstation.services.cleanup import CleanupService
from linkstation.services.game_service import GameService
from linkstation.utils.security import (
    generate_admin_token,
    hash_password,
    token_preview,
    verify_password,
)
from linkstation.utils.logging_config import admin_logger as logger


TOKEN_WARNING_SECONDS = 60


class AdminService:
    def __init__(
        self,
        sessions: AdminSessionStore,
        game: GameService,
        cleanup: CleanupService,
        initial_password: str = "",
    ):
        self.sessions = sessions
        self.game = game
        self.cleanup_service = cleanup
        self.initial_password = initial_password

    # ==================== Authentication ====================

    async def ensure_password(self) -> None:
        """Seed the stored hash from configuration the first time."""
        if self.initial_password and not await self.sessions.get_password_hash():
            await self.sessions.set_password_hash(hash_password(self.initial_password))
            logger.info("Admin password initialized from configuration")

    async def verify_password(self, password: Optional[str]) -> bool:
        await self.ensure_password()
        stored = await self.sessions.get_password_hash()
        return verify_password(password or "", stored or "")

    async def login(self, password: str) -> LoginResponse:
        if not await self.verify_password(password):
            logger.warning("Failed admin login attempt")
            raise WrongPasswordException()
        token = generate_admin_token()
        await self.sessions.store_token(token)
        logger.info(f"Admin logged in ({token_preview(token)})")
        return LoginResponse(token=token, expires_in=self.sessions.token_ttl)

    async def logout(self, token: Optional[str]) -> None:
        if token:
            await self.sessions.revoke(token)

    async def require_token(self, token: Optional[str], refresh: bool = True) -> str:
        """
        Validate an admin token. Active admins slide their expiry forward
        unless ``refresh`` is False (status polling must not extend it).
        """
        if not token:
            raise AdminSessionExpiredException("Admin token is required")
        if not await self.sessions.is_valid(token):
            raise AdminSessionExpiredException()
        if refresh:
            await self.sessions.store_token(token)
        return token

    async def token_status(self, token: Optional[str]) -> TokenStatus:
        token = await self.require_token(token, refresh=False)
        remaining = await self.sessions.remaining_ttl(token)
        if remaining <= 0:
            raise AdminSessionExpiredException()
        return TokenStatus(remaining_seconds=remaining, warning=remaining <= TOKEN_WARNING_SECONDS)

    async def keep_alive(self, token: Optional[str]) -> TokenStatus:
        """Explicit refresh from the admin page; returns the renewed TTL."""
        token = await self.require_token(token)
        remaining = await self.sessions.remaining_ttl(token)
        return TokenStatus(remaining_seconds=remaining, warning=remaining <= TOKEN_WARNING_SECONDS)

    async def change_password(self, current_password: str, new_password: str) -> None:
        if not await self.verify_password(current_password):
            raise WrongPasswordException("Current password is incorrect")
        new_password = (new_password or "").strip()
        if not new_password:
            raise ValidationException("New password is required", {"field": "new_password"})
        await self.sessions.set_password_hash(hash_password(new_password))
        logger.info("Admin password changed")

    async def list_sessions(self) -> list[AdminSession]:
        return [AdminSession(**entry) for entry in await self.sessions.list_sessions()]

    async def kick_session(self, target_token: str) -> None:
        if not target_token:
            raise ValidationException("Token is required", {"field": "target_token"})
        await self.sessions.revoke(target_token)
        logger.info(f"Admin session revoked ({token_preview(target_token)})")

    # ==================== Shutdown ====================

    async def get_shutdown(self) -> bool:
        return await self.sessions.get_shutdown()

    async def set_shutdown(self, shutdown: bool) -> bool:
        await self.sessions.set_shutdown(shutdown)
        logger.warning(f"App shutdown flag set to {shutdown}")
        return shutdown

    # ==================== Overview ====================

    @staticmethod
    def _membership(rooms: list[Room]) -> dict[str, tuple[Room, str]]:
        """username -> (room, user_id) for every current room member"""
        members = {}
        for room in rooms:
            for user in room.users.values():
                members[user.username] = (room, user.id)
        return members

    async def status(self) -> AdminStatus:
        rooms = await self.game.rooms.list_rooms()
        active = await self.game.active_users.list_all()
        members = self._membership(rooms)

        room_counts = RoomCounts(total=len(rooms))
        for room in rooms:
            state = room.game_state.value
            setattr(room_counts, state, getattr(room_counts, state) + 1)

        user_counts = UserCounts(total=len(active))
        for username, _record in active:
            entry = members.get(username)
            if entry is None:
                user_counts.not_in_room += 1
            else:
                state = entry[0].game_state.value
                setattr(user_counts, state, getattr(user_counts, state) + 1)

        sessions = await self.sessions.list_sessions()
        return AdminStatus(room_counts=room_counts, user_counts=user_counts, admin_sessions=len(sessions))

    async def list_users(self, filter: UserFilter = "all") -> list[AdminUserEntry]:
        rooms = await self.game.rooms.list_rooms()
        members = self._membership(rooms)

        entries = []
        for username, record in await self.game.active_users.list_all():
            membership = members.get(username)
            if membership is None:
                entry = AdminUserEntry(username=username, room_id=record.room_id, state="notInRoom")
            else:
                room, user_id = membership
                entry = AdminUserEntry(
                    username=username,
                    room_id=room.id,
                    state=room.game_state.value,
                    room_name=room.room_name,
                    is_master=room.is_master(user_id),
                )
            if filter == "all" or entry.state == filter:
                entries.append(entry)
        return entries

    async def list_rooms(self, filter: RoomFilter = "all") -> list[AdminRoomEntry]:
        return [
            AdminRoomEntry(
                id=room.id,
                room_name=room.room_name,
                game_state=room.game_state,
                user_count=len(room.users),
                member_limit=room.member_limit,
                has_password=bool(room.room_password),
                password=room.room_password,
                master_id=room.master_id,
            )
            for room in await self.game.rooms.list_rooms()
            if filter == "all" or room.game_state.value == filter
        ]

    # ==================== Enforcement ====================

    async def kick_user(self, username: str) -> None:
        record = await self.game.active_users.get(username)
        if record is None:
            raise UserNotFoundException()

        await self.game.markers.set_user_kick_marker(username, KickReason.ADMIN)

        if record.room_id:
            room = await self.game.rooms.get_by_id(record.room_id)
            if room is not None and self.game.remove_member(room, record.user_id) is not None:
                await self.game.settle_room(room)

        await self.game.active_users.delete(username)
        logger.info(f"Admin kicked user '{username}'")

    async def delete_room(self, room_id: str) -> Room:
        room = await self.game.rooms.get_by_id(room_id)
        if room is None:
            raise RoomNotFoundException()

        await self.game.markers.set_room_delete_marker(room_id, RoomDeleteReason.ADMIN)
        for user in room.users.values():
            await self.game.markers.set_user_kick_marker(
                user.username, KickReason.ROOM_DELETED, RoomDeleteReason.ADMIN
            )
            await self.game.active_users.delete(user.username)

        await self.game.rooms.delete(room_id)
        logger.info(f"Admin deleted room '{room.room_name}'")
        return room

    async def cleanup(self, cleanup_type: CleanupType = "both") -> None:
        if cleanup_type in ("users", "both"):
            await self.cleanup_service.sweep_inactive_users()
        await self.cleanup_service.sweep_rooms()
