import pytest

from linkstation.models.presence import KickReason, RoomDeleteReason
from linkstation.services.markers import MarkerStore


@pytest.fixture
def markers(store, clock):
    return MarkerStore(store, ttl=600, clock=clock)


async def test_admin_kick_is_not_downgraded(markers):
    assert await markers.set_user_kick_marker("bob", KickReason.ADMIN) is True
    assert await markers.set_user_kick_marker("bob", KickReason.INACTIVITY) is False
    assert await markers.set_user_kick_marker("bob", KickReason.MASTER) is False

    marker = await markers.get_user_kick_marker("bob")
    assert marker.reason == KickReason.ADMIN
    assert await markers.was_user_kicked_by_admin("bob") is True


async def test_higher_reason_replaces_lower(markers):
    await markers.set_user_kick_marker("bob", KickReason.INACTIVITY)
    assert await markers.set_user_kick_marker("bob", KickReason.ADMIN) is True
    assert (await markers.get_user_kick_marker("bob")).reason == KickReason.ADMIN


async def test_equal_rank_refreshes_marker(markers, clock):
    await markers.set_user_kick_marker("bob", KickReason.MASTER)
    clock.advance(30)
    assert await markers.set_user_kick_marker("bob", KickReason.MASTER) is True
    assert (await markers.get_user_kick_marker("bob")).timestamp == clock.now


async def test_room_deleted_kick_carries_room_reason(markers):
    await markers.set_user_kick_marker("carol", KickReason.ROOM_DELETED, RoomDeleteReason.INACTIVITY)
    marker = await markers.get_user_kick_marker("carol")
    assert marker.reason == KickReason.ROOM_DELETED
    assert marker.room_delete_reason == RoomDeleteReason.INACTIVITY
    assert await markers.was_user_kicked_by_admin("carol") is False


async def test_room_marker_priority(markers):
    await markers.set_room_delete_marker("room_1", RoomDeleteReason.ADMIN)
    assert await markers.set_room_delete_marker("room_1", RoomDeleteReason.EMPTY) is False
    assert await markers.was_room_deleted_by_admin("room_1") is True

    await markers.set_room_delete_marker("room_2", RoomDeleteReason.EMPTY)
    assert await markers.set_room_delete_marker("room_2", RoomDeleteReason.INACTIVITY) is True
    assert (await markers.get_room_delete_marker("room_2")).reason == RoomDeleteReason.INACTIVITY


async def test_markers_expire(markers, clock):
    await markers.set_user_kick_marker("bob", KickReason.ADMIN)
    await markers.set_room_delete_marker("room_1", RoomDeleteReason.ADMIN)
    clock.advance(600)

    assert await markers.get_user_kick_marker("bob") is None
    assert await markers.get_room_delete_marker("room_1") is None
    # An expired marker no longer blocks a lower reason
    assert await markers.set_user_kick_marker("bob", KickReason.INACTIVITY) is True


async def test_empty_subject_is_ignored(markers):
    assert await markers.set_user_kick_marker("", KickReason.ADMIN) is False
    assert await markers.get_user_kick_marker("") is None
