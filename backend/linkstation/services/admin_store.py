from typing import Any, Dict, List, Optional

from linkstation.services.kv_store import KeyValueBackend
from linkstation.services.redis_keys import (
    ADMIN_PASSWORD_KEY,
    ADMIN_SESSION_SET_KEY,
    ADMIN_TOKEN_KEY,
    APP_SHUTDOWN_KEY,
)
from linkstation.utils.security import token_preview
from linkstation.utils.logging_config import admin_logger as logger


ADMIN_TOKEN_TTL_SECONDS = 30 * 60


class AdminSessionStore:
    """
    Admin bearer tokens plus the process-wide admin facts (shutdown flag,
    password hash).

    A token lives in the session set and in its own TTL key. The TTL key is
    the authority; set members whose key has expired are pruned whenever
    the sessions are listed.
    """

    def __init__(self, store: KeyValueBackend, token_ttl: int = ADMIN_TOKEN_TTL_SECONDS):
        self.store = store
        self.token_ttl = token_ttl

    async def store_token(self, token: str) -> None:
        await self.store.sadd(ADMIN_SESSION_SET_KEY, token)
        await self.store.setex(ADMIN_TOKEN_KEY.format(token=token), self.token_ttl, "1")

    async def is_valid(self, token: str) -> bool:
        if not token:
            return False
        return bool(await self.store.get(ADMIN_TOKEN_KEY.format(token=token)))

    async def revoke(self, token: str) -> None:
        if not token:
            return
        await self.store.delete(ADMIN_TOKEN_KEY.format(token=token))
        await self.store.srem(ADMIN_SESSION_SET_KEY, token)

    async def remaining_ttl(self, token: str) -> int:
        """Seconds left on the token, 0 when it is gone."""
        if not token:
            return 0
        return await self.store.ttl(ADMIN_TOKEN_KEY.format(token=token)) or 0

    async def list_sessions(self) -> List[Dict[str, Any]]:
        sessions = []
        for token in await self.store.smembers(ADMIN_SESSION_SET_KEY):
            remaining = await self.remaining_ttl(token)
            if remaining <= 0:
                await self.store.srem(ADMIN_SESSION_SET_KEY, token)
                logger.debug(f"Pruned expired admin session {token_preview(token)}")
                continue
            sessions.append({
                "token": token,
                "token_preview": token_preview(token),
                "remaining_seconds": remaining,
            })
        return sessions

    # ==================== App-wide flags ====================

    async def get_shutdown(self) -> bool:
        return await self.store.get(APP_SHUTDOWN_KEY) == "1"

    async def set_shutdown(self, shutdown: bool) -> None:
        if shutdown:
            await self.store.set(APP_SHUTDOWN_KEY, "1")
        else:
            await self.store.delete(APP_SHUTDOWN_KEY)

    async def get_password_hash(self) -> Optional[str]:
        return await self.store.get(ADMIN_PASSWORD_KEY)

    async def set_password_hash(self, password_hash: str) -> None:
        await self.store.set(ADMIN_PASSWORD_KEY, password_hash)
