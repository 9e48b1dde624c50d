"""
Sync lock service.

Mutual exclusion for the local ledger: a sync and any ledger write must not
interleave, otherwise the newer-than-remote comparison and the state swap
can race. Implemented with Redis ``SET NX EX`` so a crashed holder frees the
lock after the TTL. ``sync_lock_ttl_seconds`` must stay above the longest
sync, since an expired lock can be taken by the next caller mid-sync.
"""

import uuid
from contextlib import asynccontextmanager
from typing import Optional

from chargepal.app.core.config import settings
from chargepal.app.core.exceptions import SyncInProgressError


# Delete the key only while it still holds our token, in one server-side step.
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class SyncLock:

    def __init__(self, redis, name: str = None, ttl_seconds: int = None):
        self.redis = redis
        self._release_script = redis.register_script(RELEASE_SCRIPT)
        self.key = f"chargepal:lock:{name or settings.state_key}"
        self.ttl_seconds = ttl_seconds or settings.sync_lock_ttl_seconds
        self._token: Optional[str] = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        acquired = await self.redis.set(self.key, token, nx=True, ex=self.ttl_seconds)
        if acquired:
            self._token = token
        return bool(acquired)

    async def release(self) -> None:
        # Only the holder may release; an expired lock may belong to someone else now.
        if self._token is None:
            return
        await self._release_script(keys=[self.key], args=[self._token])
        self._token = None

    async def is_held(self) -> bool:
        return bool(await self.redis.exists(self.key))

    @asynccontextmanager
    async def hold(self):
        """
        Hold the lock for the duration of the block.

        Raises:
            SyncInProgressError: the lock is already held
        """
        if not await self.acquire():
            raise SyncInProgressError()
        try:
            yield self
        finally:
            await self.release()
