import json

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from linkstation.config import Settings
from linkstation.exceptions import BackendFailureException
from linkstation.services.kv_store import MemoryBackend, RedisBackend, RestBackend, create_backend


# -----------------------------
# Memory backend
# -----------------------------

async def test_memory_get_set_delete(store):
    assert await store.get("k") is None
    await store.set("k", "v")
    assert await store.get("k") == "v"
    await store.delete("k")
    assert await store.get("k") is None


async def test_memory_setex_expires_lazily(store, clock):
    await store.setex("marker", 10, "x")
    clock.advance(9)
    assert await store.get("marker") == "x"
    assert await store.ttl("marker") == 1

    clock.advance(1)
    # Still physically present until something reads it
    assert len(store) == 1
    assert await store.get("marker") is None
    assert len(store) == 0


async def test_memory_setex_rejects_non_positive_ttl(store, clock):
    for ttl in (0, -5):
        with pytest.raises(BackendFailureException) as exc_info:
            await store.setex("k", ttl, "v")
        assert exc_info.value.details["command"] == "setex"

    clock.advance(3600)
    assert await store.get("k") is None
    assert len(store) == 0


async def test_memory_ttl_without_expiry_is_none(store):
    await store.set("plain", "1")
    assert await store.ttl("plain") is None
    assert await store.ttl("missing") is None


async def test_memory_sets_keep_insertion_order(store):
    for member in ("c", "a", "b", "a"):
        await store.sadd("s", member)
    assert await store.smembers("s") == ["c", "a", "b"]

    await store.srem("s", "a")
    assert await store.smembers("s") == ["c", "b"]


async def test_memory_empty_set_disappears(store):
    await store.sadd("s", "only")
    await store.srem("s", "only")
    assert await store.smembers("s") == []
    assert len(store) == 0


async def test_memory_compact_counts_expired(store, clock):
    await store.setex("a", 5, "1")
    await store.setex("b", 50, "1")
    await store.set("c", "1")
    clock.advance(10)
    assert await store.compact() == 1
    assert len(store) == 2


# -----------------------------
# REST backend
# -----------------------------

def rest_backend(handler) -> RestBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RestBackend("https://kv.example.com/", "secret", client=client)


async def test_rest_get_encodes_key_and_sends_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["method"] = request.method
        return httpx.Response(200, json={"result": "value"})

    backend = rest_backend(handler)
    assert await backend.get("room:name:my room/1") == "value"
    assert seen["url"].startswith("https://kv.example.com/get/")
    # Slashes and spaces inside a key must not leak into the path
    assert "%2F1" in seen["url"]
    assert "my room" not in seen["url"]
    assert seen["auth"] == "Bearer secret"
    assert seen["method"] == "GET"


async def test_rest_writes_use_post():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append((request.method, request.url.path))
        return httpx.Response(200, json={"result": "OK"})

    backend = rest_backend(handler)
    await backend.setex("marker:kick:bob", 600, json.dumps({"reason": "ADMIN"}))
    await backend.sadd("rooms:ids", "room_1")

    assert [m for m, _ in methods] == ["POST", "POST"]
    assert methods[0][1].startswith("/setex/marker:kick:bob/600/")


async def test_rest_error_field_fails_even_with_200():
    backend = rest_backend(lambda request: httpx.Response(200, json={"error": "WRONGTYPE"}))
    with pytest.raises(BackendFailureException) as exc_info:
        await backend.get("k")
    assert exc_info.value.details["command"] == "get"
    assert "WRONGTYPE" in exc_info.value.message


async def test_rest_http_error_without_result_fails():
    backend = rest_backend(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(BackendFailureException):
        await backend.set("k", "v")


async def test_rest_transport_error_is_backend_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    backend = rest_backend(handler)
    with pytest.raises(BackendFailureException):
        await backend.get("k")
    assert await backend.ping() is False


async def test_rest_smembers_and_ttl_normalization():
    answers = {
        "/smembers/s": {"result": ["a", "b"]},
        "/smembers/empty": {"result": []},
        "/ttl/live": {"result": 42},
        "/ttl/gone": {"result": -2},
        "/ttl/forever": {"result": -1},
    }
    backend = rest_backend(lambda request: httpx.Response(200, json=answers[request.url.path]))

    assert await backend.smembers("s") == ["a", "b"]
    assert await backend.smembers("empty") == []
    assert await backend.ttl("live") == 42
    assert await backend.ttl("gone") is None
    assert await backend.ttl("forever") is None


# -----------------------------
# Backend selection
# -----------------------------

async def test_create_backend_auto_without_config_uses_memory():
    config = Settings(_env_file=None, STORE_BACKEND="auto", REDIS_URL="",
                      UPSTASH_REDIS_KV_REST_API_URL="", UPSTASH_REDIS_KV_REST_API_TOKEN="")
    backend = await create_backend(config)
    assert isinstance(backend, MemoryBackend)


async def test_create_backend_auto_prefers_rest():
    config = Settings(_env_file=None, STORE_BACKEND="auto",
                      UPSTASH_REDIS_KV_REST_API_URL="https://kv.example.com",
                      UPSTASH_REDIS_KV_REST_API_TOKEN="t")
    backend = await create_backend(config)
    assert isinstance(backend, RestBackend)
    await backend.close()


async def test_create_backend_rest_requires_credentials():
    config = Settings(_env_file=None, STORE_BACKEND="rest",
                      UPSTASH_REDIS_KV_REST_API_URL="", UPSTASH_REDIS_KV_REST_API_TOKEN="")
    with pytest.raises(BackendFailureException):
        await create_backend(config)


def test_settings_reject_unknown_backend():
    with pytest.raises(ValueError):
        Settings(_env_file=None, STORE_BACKEND="sqlite")


@pytest.mark.parametrize("field", ["ADMIN_TOKEN_TTL_SECONDS", "DELETED_ROOM_TTL_SECONDS", "MARKER_TTL_SECONDS"])
def test_settings_reject_zero_ttl(field):
    with pytest.raises(ValueError):
        Settings(_env_file=None, **{field: 0})


# -----------------------------
# Redis backend (client stubbed)
# -----------------------------

class FailingRedis:
    """Every command fails the way a dropped connection does."""

    def __getattr__(self, name):
        async def _fail(*args):
            raise RedisConnectionError("Connection refused")
        return _fail


class RecordingRedis:
    def __init__(self):
        self.calls = []

    async def setex(self, *args):
        self.calls.append(("setex", args))
        return True

    async def ttl(self, key):
        return -2


async def test_redis_failures_raise_backend_failure():
    backend = RedisBackend(client=FailingRedis())
    with pytest.raises(BackendFailureException) as exc_info:
        await backend.get("k")
    assert exc_info.value.details == {"backend": "redis", "command": "get"}
    assert await backend.ping() is False


async def test_redis_passes_commands_through():
    client = RecordingRedis()
    backend = RedisBackend(client=client)
    await backend.setex("marker:room:r1", 600, "{}")
    assert client.calls == [("setex", ("marker:room:r1", 600, "{}"))]
    assert await backend.ttl("missing") is None
