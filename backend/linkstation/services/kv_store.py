"""
Key-Value Store Backends

One small async contract (get / set / setex / delete / sadd / srem /
smembers / ttl) with three interchangeable implementations:

- MemoryBackend: in-process dict, TTL simulated with an expiry timestamp
  checked lazily on every read
- RestBackend: Upstash-style REST API, one HTTP call per command
- RedisBackend: native Redis through redis.asyncio

Values are always strings; callers own (de)serialization. Every failure is
raised as BackendFailureException. A missing key is None, never an error.
"""

import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx
from redis.asyncio import Redis
from redis.exceptions import RedisError

from linkstation.config import Settings
from linkstation.exceptions import BackendFailureException
from linkstation.utils.logging_config import store_logger as logger


Clock = Callable[[], float]


class KeyValueBackend(ABC):
    """Async key-value contract shared by all store implementations."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def setex(self, key: str, ttl_seconds: int, value: str) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def sadd(self, key: str, member: str) -> None: ...

    @abstractmethod
    async def srem(self, key: str, member: str) -> None: ...

    @abstractmethod
    async def smembers(self, key: str) -> List[str]: ...

    @abstractmethod
    async def ttl(self, key: str) -> Optional[int]:
        """Remaining seconds, or None when the key is missing or has no expiry."""

    async def ping(self) -> bool:
        return True

    async def compact(self) -> int:
        """Drop expired entries eagerly. Only meaningful for in-process storage."""
        return 0

    async def close(self) -> None:
        return None


# ==================== In-memory ====================

class MemoryBackend(KeyValueBackend):
    """
    In-process fallback used for local development and tests.

    Expiry is lazy: an expired entry is removed the first time it is read
    (or by compact()), never by a background thread.
    """

    name = "memory"

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._store: Dict[str, Dict[str, Any]] = {}

    def _entry(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at = entry["expires_at"]
        if expires_at is not None and expires_at <= self._clock():
            del self._store[key]
            return None
        return entry

    def _put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._store[key] = {
            "value": value,
            "expires_at": self._clock() + ttl if ttl is not None else None,
        }

    def _members(self, key: str) -> Optional[Dict[str, None]]:
        entry = self._entry(key)
        if entry is None or not isinstance(entry["value"], dict):
            return None
        return entry["value"]

    async def get(self, key: str) -> Optional[str]:
        entry = self._entry(key)
        if entry is None or isinstance(entry["value"], dict):
            return None
        return entry["value"]

    async def set(self, key: str, value: str) -> None:
        self._put(key, str(value))

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        if ttl_seconds <= 0:
            # same refusal as Redis SETEX
            raise BackendFailureException(self.name, "setex", "invalid expire time in 'setex' command")
        self._put(key, str(value), ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def sadd(self, key: str, member: str) -> None:
        members = self._members(key)
        if members is None:
            # dict keeps insertion order, like a listing a caller can rely on
            members = {}
            self._put(key, members)
        members[str(member)] = None

    async def srem(self, key: str, member: str) -> None:
        members = self._members(key)
        if members is None:
            return
        members.pop(str(member), None)
        if not members:
            del self._store[key]

    async def smembers(self, key: str) -> List[str]:
        members = self._members(key)
        return list(members) if members else []

    async def ttl(self, key: str) -> Optional[int]:
        entry = self._entry(key)
        if entry is None or entry["expires_at"] is None:
            return None
        return max(0, math.ceil(entry["expires_at"] - self._clock()))

    async def compact(self) -> int:
        now = self._clock()
        expired_keys = [
            k for k, v in self._store.items()
            if v["expires_at"] is not None and v["expires_at"] <= now
        ]
        for k in expired_keys:
            del self._store[k]
        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._store)


# ==================== REST ====================

class RestBackend(KeyValueBackend):
    """
    Upstash-style REST store.

    Each command is one request to ``{base_url}/{command}/{arg}/...`` with
    every argument URL-encoded. The body is ``{"result": ...}`` or
    ``{"error": ...}``; an ``error`` field fails the command whatever the
    HTTP status.
    """

    name = "rest"

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, command: str, *args: Any, method: str = "GET") -> Any:
        path = "/".join(quote(str(arg), safe="") for arg in args)
        url = f"{self.base_url}/{command}/{path}" if path else f"{self.base_url}/{command}"
        try:
            response = await self._client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"REST store {command} transport error: {e}")
            raise BackendFailureException(self.name, command, str(e)) from e

        try:
            data = response.json()
        except ValueError as e:
            raise BackendFailureException(
                self.name, command, "Malformed response",
                {"status": response.status_code},
            ) from e

        if not isinstance(data, dict):
            raise BackendFailureException(self.name, command, "Malformed response")
        if "error" in data:
            raise BackendFailureException(
                self.name, command, str(data["error"]),
                {"status": response.status_code},
            )
        if response.is_error or "result" not in data:
            raise BackendFailureException(
                self.name, command, f"Unexpected response (HTTP {response.status_code})",
                {"status": response.status_code},
            )
        return data["result"]

    async def get(self, key: str) -> Optional[str]:
        return await self._request("get", key)

    async def set(self, key: str, value: str) -> None:
        await self._request("set", key, value, method="POST")

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        await self._request("setex", key, ttl_seconds, value, method="POST")

    async def delete(self, key: str) -> None:
        await self._request("del", key, method="POST")

    async def sadd(self, key: str, member: str) -> None:
        await self._request("sadd", key, member, method="POST")

    async def srem(self, key: str, member: str) -> None:
        await self._request("srem", key, member, method="POST")

    async def smembers(self, key: str) -> List[str]:
        result = await self._request("smembers", key)
        if not result:
            return []
        return list(result) if isinstance(result, list) else [result]

    async def ttl(self, key: str) -> Optional[int]:
        result = await self._request("ttl", key)
        seconds = int(result) if result is not None else -2
        return seconds if seconds >= 0 else None

    async def ping(self) -> bool:
        try:
            return await self._request("ping") == "PONG"
        except BackendFailureException:
            return False

    async def close(self) -> None:
        await self._client.aclose()


# ==================== Redis ====================

class RedisBackend(KeyValueBackend):
    """Native Redis backend through redis.asyncio."""

    name = "redis"

    def __init__(self, redis_url: str = "", client: Optional[Redis] = None):
        self.redis_url = redis_url
        self._redis = client or Redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )

    async def _call(self, command: str, *args: Any) -> Any:
        try:
            return await getattr(self._redis, command)(*args)
        except (RedisError, OSError) as e:
            logger.error(f"Redis {command} failed: {e}")
            raise BackendFailureException(self.name, command, str(e)) from e

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", key)

    async def set(self, key: str, value: str) -> None:
        await self._call("set", key, value)

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        await self._call("setex", key, ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._call("delete", key)

    async def sadd(self, key: str, member: str) -> None:
        await self._call("sadd", key, member)

    async def srem(self, key: str, member: str) -> None:
        await self._call("srem", key, member)

    async def smembers(self, key: str) -> List[str]:
        return list(await self._call("smembers", key) or [])

    async def ttl(self, key: str) -> Optional[int]:
        seconds = await self._call("ttl", key)
        return seconds if seconds is not None and seconds >= 0 else None

    async def ping(self) -> bool:
        try:
            return bool(await self._call("ping"))
        except BackendFailureException:
            return False

    async def close(self) -> None:
        await self._redis.aclose()


async def create_backend(config: Settings, clock: Clock = time.time) -> KeyValueBackend:
    """
    Build the backend named by STORE_BACKEND.

    ``auto`` prefers the REST store when its URL and token are set, then a
    reachable Redis, then the in-memory fallback. The choice is made once at
    startup; a backend that fails later raises instead of falling back.
    """
    choice = config.STORE_BACKEND

    if choice == "memory":
        return MemoryBackend(clock)

    if choice == "rest" or (choice == "auto" and config.rest_store_configured):
        if not config.rest_store_configured:
            raise BackendFailureException("rest", "connect", "REST store URL/token not configured")
        logger.info(f"Using REST store at {config.UPSTASH_REDIS_KV_REST_API_URL}")
        return RestBackend(
            config.UPSTASH_REDIS_KV_REST_API_URL,
            config.UPSTASH_REDIS_KV_REST_API_TOKEN,
            timeout=config.STORE_HTTP_TIMEOUT,
        )

    if choice == "redis":
        logger.info("Using Redis store")
        return RedisBackend(config.REDIS_URL)

    if config.REDIS_URL:
        backend = RedisBackend(config.REDIS_URL)
        if await backend.ping():
            logger.info("Redis store connected successfully")
            return backend
        await backend.close()
        logger.warning("Redis connection failed, using in-memory fallback")
        return MemoryBackend(clock)

    logger.warning("No external store configured, using in-memory fallback")
    return MemoryBackend(clock)
