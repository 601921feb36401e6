import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict

from chainverify.observability.logging import log
from chainverify.settings import settings
from chainverify.store.redis_conn import get_redis

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_RENEW_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("pexpire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class SessionBusy(Exception):
    """Another step for the same (owner, role) is still running."""

    def __init__(self, key: str):
        super().__init__(f"session busy: {key}")
        self.key = key


class LocalSessionLocks:
    """
    One asyncio.Lock per session key, single process.
    wait=True queues behind the running holder (FIFO); wait=False raises SessionBusy.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str, wait: bool = True):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        if not wait and lock.locked():
            raise SessionBusy(key)

        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # Nobody holds or waits: drop the entry so the map stays bounded
                del self._waiters[key]
                self._locks.pop(key, None)


class RedisSessionLocks:
    """
    Distributed lock to ensure single-writer per session across processes.
    While the block runs, a background task keeps pushing the expiry forward
    (PEXPIRE guarded by our token) so a slow step never outlives its lock.
    """

    def __init__(
        self,
        redis=None,
        ttl_ms: int = None,
        retries: int = 50,
        retry_delay: float = 0.1,
        renew_every: float = None,
    ):
        self._redis = redis
        self.ttl_ms = int(ttl_ms if ttl_ms is not None else settings.SESSION_LOCK_TTL_MS)
        self.retries = retries
        self.retry_delay = retry_delay
        # Renew three times per TTL window by default
        self.renew_every = renew_every if renew_every is not None else self.ttl_ms / 3000.0

    def _r(self):
        return self._redis if self._redis is not None else get_redis()

    async def _keep_alive(self, r, lock_key: str, token: str):
        while True:
            await asyncio.sleep(self.renew_every)
            try:
                renewed = await r.eval(_RENEW_SCRIPT, 1, lock_key, token, self.ttl_ms)
            except Exception as e:
                log("session_lock_renew_failed", key=lock_key, error=str(e))
                continue
            if not renewed:
                log("session_lock_lost", key=lock_key)
                return

    @asynccontextmanager
    async def hold(self, key: str, wait: bool = True):
        r = self._r()
        lock_key = f"lock:session:{key}"
        token = f"{uuid.uuid4().hex}:{time.time()}"
        acquired = await r.set(lock_key, token, px=self.ttl_ms, nx=True)

        if not acquired and wait:
            for _ in range(self.retries):
                await asyncio.sleep(self.retry_delay)
                if await r.set(lock_key, token, px=self.ttl_ms, nx=True):
                    acquired = True
                    break

        if not acquired:
            raise SessionBusy(key)

        keeper = asyncio.create_task(self._keep_alive(r, lock_key, token))
        try:
            yield
        finally:
            keeper.cancel()
            try:
                await keeper
            except asyncio.CancelledError:
                pass
            # Release only if we still own it
            await r.eval(_RELEASE_SCRIPT, 1, lock_key, token)


def build_session_locks():
    if settings.SESSION_LOCK_BACKEND == "redis":
        return RedisSessionLocks()
    return LocalSessionLocks()
