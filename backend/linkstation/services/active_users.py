import time
from typing import List, Optional, Tuple

from linkstation.models.presence import ActiveUserRecord
from linkstation.services.kv_store import KeyValueBackend
from linkstation.services.redis_keys import ACTIVE_USER_KEY, ACTIVE_USER_SET_KEY


class ActiveUserRegistry:
    """
    One presence record per username. A record's existence is the only
    authority on whether a username is taken.
    """

    def __init__(self, store: KeyValueBackend):
        self.store = store

    async def get(self, username: str) -> Optional[ActiveUserRecord]:
        if not username:
            return None
        raw = await self.store.get(ACTIVE_USER_KEY.format(username=username))
        if not raw:
            return None
        return ActiveUserRecord.model_validate_json(raw)

    async def save(self, username: str, record: ActiveUserRecord) -> None:
        await self.store.set(ACTIVE_USER_KEY.format(username=username), record.model_dump_json())
        await self.store.sadd(ACTIVE_USER_SET_KEY, username)

    async def delete(self, username: str) -> None:
        if not username:
            return
        await self.store.delete(ACTIVE_USER_KEY.format(username=username))
        await self.store.srem(ACTIVE_USER_SET_KEY, username)

    async def list_all(self) -> List[Tuple[str, ActiveUserRecord]]:
        entries = []
        for username in await self.store.smembers(ACTIVE_USER_SET_KEY):
            record = await self.get(username)
            if record:
                entries.append((username, record))
        return entries

    async def touch(self, username: str, now: Optional[float] = None, user_id: Optional[str] = None) -> bool:
        """
        Refresh last activity. With ``user_id`` the refresh only applies if
        the record still belongs to that session.
        """
        record = await self.get(username)
        if record is None or (user_id is not None and record.user_id != user_id):
            return False
        record.last_activity = time.time() if now is None else now
        await self.save(username, record)
        return True
