import time
from dataclasses import dataclass

from linkstation.config import Settings
from linkstation.services.kv_store import Clock, KeyValueBackend
from linkstation.services.room_repository import RoomRepository
from linkstation.services.active_users import ActiveUserRegistry
from linkstation.services.markers import MarkerStore
from linkstation.services.admin_store import AdminSessionStore
from linkstation.services.game_service import GameService
from linkstation.services.cleanup import CleanupService
from linkstation.services.admin_service import AdminService


@dataclass
class Services:
    """Everything built on one store instance, wired for a single process."""

    store: KeyValueBackend
    rooms: RoomRepository
    active_users: ActiveUserRegistry
    markers: MarkerStore
    admin_store: AdminSessionStore
    game: GameService
    cleanup: CleanupService
    admin: AdminService


def build_services(config: Settings, store: KeyValueBackend, clock: Clock = time.time) -> Services:
    rooms = RoomRepository(store, tombstone_ttl=config.DELETED_ROOM_TTL_SECONDS, clock=clock)
    active_users = ActiveUserRegistry(store)
    markers = MarkerStore(store, ttl=config.MARKER_TTL_SECONDS, clock=clock)
    admin_store = AdminSessionStore(store, token_ttl=config.ADMIN_TOKEN_TTL_SECONDS)
    game = GameService(rooms, active_users, markers, admin_store, config, clock=clock)
    cleanup = CleanupService(game, store)
    admin = AdminService(admin_store, game, cleanup, initial_password=config.ADMIN_PASSWORD)
    return Services(
        store=store,
        rooms=rooms,
        active_users=active_users,
        markers=markers,
        admin_store=admin_store,
        game=game,
        cleanup=cleanup,
        admin=admin,
    )


__all__ = ["Services", "build_services"]
