"""
Game Service

Room lifecycle and gameplay on top of the store components: create / join,
start, vote, role change, return to waiting, kick, leave, heartbeats and the
polling endpoints that explain why a user or room disappeared.
"""

import math
import secrets
import time
from typing import Any, Optional

from linkstation.config import Settings
from linkstation.exceptions import (
    AppShutdownException,
    CannotKickSelfException,
    GameInProgressException,
    InvalidGameStateException,
    InvalidInputException,
    NotRoomMasterException,
    PasswordRequiredException,
    ReservedUsernameException,
    RoomFullException,
    RoomNameTakenException,
    RoomNotFoundException,
    UsernameTakenException,
    UserNotFoundException,
    WrongPasswordException,
)
from linkstation.models.presence import ActiveUserRecord, KickReason, RoomDeleteReason
from linkstation.models.room import (
    MAX_MEMBER_LIMIT,
    MIN_MEMBER_LIMIT,
    GameState,
    Role,
    Room,
    User,
)
from linkstation.schemas.game import (
    JoinResponse,
    ReturnToWaitingResponse,
    RoomStatusResponse,
    SelectResponse,
    UserView,
    WarningStatus,
    room_info,
    room_view,
    user_views,
)
from linkstation.services import matching
from linkstation.services.active_users import ActiveUserRegistry
from linkstation.services.admin_store import AdminSessionStore
from linkstation.services.kv_store import Clock
from linkstation.services.markers import MarkerStore
from linkstation.services.room_repository import RoomRepository
from linkstation.utils.logging_config import game_logger as logger


ADMIN_USERNAME = "link-station-admin"


def generate_id(prefix: str, now: float) -> str:
    return f"{prefix}_{int(now * 1000)}_{secrets.token_hex(5)}"


class GameService:
    def __init__(
        self,
        rooms: RoomRepository,
        active_users: ActiveUserRegistry,
        markers: MarkerStore,
        admin_store: AdminSessionStore,
        config: Settings,
        clock: Clock = time.time,
    ):
        self.rooms = rooms
        self.active_users = active_users
        self.markers = markers
        self.admin_store = admin_store
        self.config = config
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    # ==================== Shared helpers ====================

    async def get_room(self, room_id: str) -> Room:
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            raise RoomNotFoundException()
        return room

    def remove_member(self, room: Room, user_id: str) -> Optional[User]:
        """
        Take one user out of a room. If a round is running and everyone still
        in it has already voted, the round is resolved on the spot.
        """
        user = room.remove_user(user_id)
        if user is None:
            return None
        if (
            room.game_state == GameState.LINKING
            and room.selections
            and matching.all_attenders_voted(room)
        ):
            result = matching.complete_round(room)
            logger.info(
                f"Results for '{room.room_name}' after '{user.display_name}' left: "
                f"{len(result.matches)} matches, {len(result.unmatched)} unmatched"
            )
        return user

    async def settle_room(
        self,
        room: Room,
        empty_reason: RoomDeleteReason = RoomDeleteReason.EMPTY,
    ) -> bool:
        """
        Persist a room after members were removed: save it, or delete it with
        a room-delete marker when nobody is left. Returns True if deleted.
        """
        if room.is_empty:
            await self.markers.set_room_delete_marker(room.id, empty_reason)
            await self.rooms.delete(room.id)
            logger.info(f"Room '{room.room_name}' deleted ({empty_reason.value})")
            return True
        await self.rooms.save(room)
        return False

    async def _ensure_open(self) -> None:
        if await self.admin_store.get_shutdown():
            raise AppShutdownException()

    @staticmethod
    def _clean_username(username: Optional[str]) -> str:
        trimmed = (username or "").strip()
        if not trimmed:
            raise InvalidInputException("username", "Username is required")
        if trimmed.lower() == ADMIN_USERNAME:
            raise ReservedUsernameException()
        return trimmed

    async def _ensure_username_free(self, username: str) -> None:
        if await self.active_users.get(username) is not None:
            raise UsernameTakenException(username)

    async def _admit(self, room: Room, username: str) -> User:
        """
        Add a user to a room and claim the username. Check-then-write is
        best-effort: two concurrent joins with one name can both pass.
        """
        now = self.now()
        user = User(
            id=generate_id("user", now),
            username=username,
            display_name=username,
            role=Role.ATTENDER,
        )
        room.add_user(user)
        room.last_activity = now
        await self.rooms.save(room)
        await self.active_users.save(
            username, ActiveUserRecord(room_id=room.id, user_id=user.id, last_activity=now)
        )
        return user

    def _join_response(self, room: Room, user: User) -> JoinResponse:
        return JoinResponse(
            room_id=room.id,
            user_id=user.id,
            users=user_views(room),
            is_master=room.is_master(user.id),
            role=user.role,
            room_data=room_info(room),
        )

    @staticmethod
    def _ensure_joinable(room: Room) -> None:
        if room.is_full:
            raise RoomFullException()
        if room.game_state != GameState.WAITING:
            raise GameInProgressException()

    # ==================== Availability checks ====================

    async def check_username(self, username: Optional[str]) -> dict[str, Any]:
        trimmed = (username or "").strip()
        if not trimmed:
            return {"duplicate": False}
        if trimmed.lower() == ADMIN_USERNAME:
            return {"duplicate": False, "available": True, "reserved": True}
        duplicate = await self.active_users.get(trimmed) is not None
        return {"duplicate": duplicate, "available": not duplicate}

    async def check_room_name(self, room_name: Optional[str]) -> bool:
        trimmed = (room_name or "").strip()
        if not trimmed:
            return False
        return await self.rooms.get_by_name(trimmed.lower()) is not None

    # ==================== Create / join ====================

    async def create_room(
        self,
        room_name: str,
        member_limit: int,
        username: str,
        room_password: Optional[str] = None,
    ) -> JoinResponse:
        await self._ensure_open()

        trimmed_name = (room_name or "").strip()
        if not trimmed_name:
            raise InvalidInputException("room_name", "Room name is required")
        if not MIN_MEMBER_LIMIT <= member_limit <= MAX_MEMBER_LIMIT:
            raise InvalidInputException(
                "member_limit", f"Must be between {MIN_MEMBER_LIMIT} and {MAX_MEMBER_LIMIT}"
            )
        trimmed_username = self._clean_username(username)

        if await self.rooms.get_by_name(trimmed_name.lower()) is not None:
            raise RoomNameTakenException(trimmed_name)
        await self._ensure_username_free(trimmed_username)

        now = self.now()
        user = User(
            id=generate_id("user", now),
            username=trimmed_username,
            display_name=trimmed_username,
            role=Role.ATTENDER,
        )
        room = Room(
            id=generate_id("room", now),
            room_name=trimmed_name,
            room_password=room_password or None,
            member_limit=member_limit,
            master_id=user.id,
            last_activity=now,
        )
        room.add_user(user)
        await self.rooms.save(room)
        await self.active_users.save(
            trimmed_username, ActiveUserRecord(room_id=room.id, user_id=user.id, last_activity=now)
        )

        logger.info(f"Room created: '{room.room_name}' ({room.id}) by '{trimmed_username}'")
        return self._join_response(room, user)

    async def join_room(
        self,
        room_name: str,
        username: str,
        password: Optional[str] = None,
    ) -> JoinResponse:
        """
        Join by room name. A password-protected room raises
        PasswordRequiredException until the caller supplies the password.
        """
        await self._ensure_open()
        trimmed_username = self._clean_username(username)

        room = await self.rooms.get_by_name((room_name or "").strip().lower())
        if room is None:
            raise RoomNotFoundException()

        self._ensure_joinable(room)
        await self._ensure_username_free(trimmed_username)

        if room.room_password:
            if password is None:
                raise PasswordRequiredException()
            if not secrets.compare_digest(room.room_password, password):
                raise WrongPasswordException()

        user = await self._admit(room, trimmed_username)
        logger.info(f"User '{trimmed_username}' joined '{room.room_name}'")
        return self._join_response(room, user)

    async def join_room_by_id(self, room_id: str, username: str) -> JoinResponse:
        """QR-code join: the room id itself is the invitation, no password."""
        await self._ensure_open()
        trimmed_username = self._clean_username(username)

        room = await self.get_room(room_id)
        self._ensure_joinable(room)
        await self._ensure_username_free(trimmed_username)

        user = await self._admit(room, trimmed_username)
        logger.info(f"User '{trimmed_username}' joined '{room.room_name}' by id")
        return self._join_response(room, user)

    # ==================== Game ====================

    async def start_game(self, room_id: str, user_id: str) -> Room:
        room = await self.get_room(room_id)
        matching.start_game(room, user_id)
        room.last_activity = self.now()
        await self.rooms.save(room)
        logger.info(f"Game started in room '{room.room_name}'")
        return room

    async def select(self, room_id: str, user_id: str, selected_user_id: str) -> SelectResponse:
        room = await self.get_room(room_id)
        voter = room.users.get(user_id)
        result = matching.submit_selection(room, user_id, selected_user_id)

        now = self.now()
        room.last_activity = now
        await self.active_users.touch(voter.username, now)

        if result is None:
            await self.rooms.save(room)
            return SelectResponse(completed=False, users=user_views(room))

        logger.info(
            f"Results for '{room.room_name}': "
            f"{len(result.matches)} matches, {len(result.unmatched)} unmatched"
        )
        deleted = await self.settle_room(room)
        return SelectResponse(
            completed=True,
            users=user_views(room),
            match_result=result,
            room_deleted=deleted,
        )

    async def change_role(self, room_id: str, user_id: str, role: Role) -> list[UserView]:
        room = await self.get_room(room_id)
        if room.game_state != GameState.WAITING:
            raise InvalidGameStateException(GameState.WAITING.value, room.game_state.value)
        user = room.users.get(user_id)
        if user is None:
            raise UserNotFoundException()

        user.role = role
        now = self.now()
        room.last_activity = now
        await self.active_users.touch(user.username, now)
        await self.rooms.save(room)
        logger.debug(f"User '{user.display_name}' changed role to {role.value}")
        return user_views(room)

    async def return_to_waiting(self, room_id: str, user_id: str) -> ReturnToWaitingResponse:
        room = await self.get_room(room_id)
        all_returned = matching.return_to_waiting(room, user_id)
        room.last_activity = self.now()
        await self.rooms.save(room)
        return ReturnToWaitingResponse(
            all_returned=all_returned,
            returned_count=len(room.returned_to_waiting),
            total_attenders=len(room.attenders()),
        )

    async def room_status(self, room_id: str, username: Optional[str] = None) -> RoomStatusResponse:
        room = await self.rooms.get_by_id(room_id)
        if room is None:
            kicked = username and await self.markers.was_user_kicked_by_admin(username)
            raise RoomNotFoundException(details={
                "room_deleted": await self.rooms.was_deleted(room_id),
                "room_deleted_by_admin": await self.markers.was_room_deleted_by_admin(room_id),
                "kicked_by_admin": [username] if kicked else None,
            })

        kicked_users = []
        if username and await self.markers.was_user_kicked_by_admin(username):
            kicked_users.append(username)
        for user in room.users.values():
            if user.username not in kicked_users and await self.markers.was_user_kicked_by_admin(user.username):
                kicked_users.append(user.username)

        return RoomStatusResponse(
            room=room_view(room),
            match_result=room.match_result,
            kicked_by_admin=kicked_users or None,
        )

    # ==================== Membership ====================

    async def kick_user(self, room_id: str, master_user_id: str, target_user_id: str) -> list[UserView]:
        room = await self.get_room(room_id)
        if not room.is_master(master_user_id):
            raise NotRoomMasterException("Only the room master can kick users")
        target = room.users.get(target_user_id)
        if target is None:
            raise UserNotFoundException()
        if target_user_id == master_user_id:
            raise CannotKickSelfException()

        await self.markers.set_user_kick_marker(target.username, KickReason.MASTER)
        self.remove_member(room, target_user_id)
        await self.active_users.delete(target.username)
        room.last_activity = self.now()
        await self.settle_room(room)

        logger.info(f"User '{target.display_name}' kicked from '{room.room_name}' by master")
        return user_views(room)

    async def leave_room(self, room_id: str, user_id: str) -> None:
        room = await self.get_room(room_id)
        user = self.remove_member(room, user_id)
        if user is None:
            raise UserNotFoundException()
        await self.active_users.delete(user.username)
        await self.settle_room(room)
        logger.info(f"User '{user.display_name}' left '{room.room_name}'")

    async def remove_user(self, username: Optional[str]) -> None:
        """Release a username when the client exits."""
        if username:
            await self.active_users.delete(username)
            logger.debug(f"User '{username}' removed from active users")

    # ==================== Heartbeats / polling ====================

    async def ping(self, username: Optional[str], user_id: Optional[str]) -> float:
        now = self.now()
        if username:
            await self.active_users.touch(username, now, user_id=user_id)
        return now

    async def keep_alive_user(self, username: Optional[str]) -> bool:
        if not username:
            return False
        return await self.active_users.touch(username, self.now())

    async def keep_alive_room(self, room_id: str) -> None:
        room = await self.get_room(room_id)
        room.last_activity = self.now()
        await self.rooms.save(room)
        logger.debug(f"Room '{room.room_name}' extended its lifetime")

    async def check_warning(
        self,
        username: Optional[str],
        user_id: Optional[str],
        room_id: Optional[str],
    ) -> WarningStatus:
        """
        Inactivity warnings plus the reason a user or room disappeared.
        Markers take precedence; the tombstone / missing-record flags are
        only reported when no marker explains the loss.
        """
        now = self.now()
        status = WarningStatus()

        record = await self.active_users.get(username) if username else None
        if record is not None and record.user_id == user_id:
            inactive = now - record.last_activity
            if self.config.USER_WARNING_SECONDS <= inactive < self.config.USER_TIMEOUT_SECONDS:
                status.user_warning = True
                status.user_time_left = math.ceil(self.config.USER_TIMEOUT_SECONDS - inactive)

        room = await self.rooms.get_by_id(room_id) if room_id else None
        if room is not None and not room.is_empty:
            idle = now - room.last_activity
            if self.config.ROOM_WARNING_SECONDS <= idle < self.config.ZOMBIE_ROOM_TIMEOUT_SECONDS:
                status.room_warning = True
                status.room_time_left = math.ceil(self.config.ZOMBIE_ROOM_TIMEOUT_SECONDS - idle)

        kick_marker = await self.markers.get_user_kick_marker(username) if username else None
        room_marker = await self.markers.get_room_delete_marker(room_id) if room_id else None

        if kick_marker is not None:
            status.kick_reason = kick_marker.reason.value
        if kick_marker is not None and kick_marker.room_delete_reason is not None:
            status.room_delete_reason = kick_marker.room_delete_reason.value
        elif room_marker is not None:
            status.room_delete_reason = room_marker.reason.value

        if status.kick_reason is None:
            status.user_disconnected = bool(username) and record is None
        if status.room_delete_reason is None and room_id and room is None:
            status.room_deleted = await self.rooms.was_deleted(room_id)

        return status
