import copy
import inspect
import json
import time
from typing import Dict, Optional, Tuple

from chainverify.observability.logging import log
from chainverify.settings import settings
from chainverify.store.models import VerificationSession
from chainverify.store.redis_conn import get_redis

PREFIX = "session:"


def _key(owner_id: str, role_kind: str) -> str:
    return f"{PREFIX}{role_kind.lower()}:{owner_id}"


def _filter_session_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so VerificationSession(**kwargs) never explodes
    """
    sig = inspect.signature(VerificationSession)
    allowed = set(sig.parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


def _session_from_json(raw: str) -> VerificationSession:
    data = json.loads(raw)
    dropped = [k for k in data if k not in inspect.signature(VerificationSession).parameters]
    if dropped:
        log(event="session_fields_dropped", ownerId=data.get("ownerId", ""), fields=dropped)
    return VerificationSession(**_filter_session_kwargs(data))


def _session_to_json(session: VerificationSession) -> str:
    return json.dumps(session.__dict__.copy())


class SessionStore:
    """
    get/save/delete of the in-flight verification session keyed by (owner, role kind).

    The store is a convenience for the conversation flow only; nothing that
    guards against double grants may depend on it being present or fresh.
    """

    async def get(self, owner_id: str, role_kind: str) -> Optional[VerificationSession]:
        raise NotImplementedError

    async def save(self, session: VerificationSession) -> None:
        raise NotImplementedError

    async def delete(self, owner_id: str, role_kind: str) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """Process-local sessions. Everything in flight is lost on restart."""

    def __init__(self):
        self._data: Dict[Tuple[str, str], VerificationSession] = {}

    async def get(self, owner_id: str, role_kind: str) -> Optional[VerificationSession]:
        s = self._data.get((owner_id, role_kind))
        # Callers mutate what they get; hand out copies so an unsaved change never leaks
        return copy.deepcopy(s) if s is not None else None

    async def save(self, session: VerificationSession) -> None:
        now = int(time.time())
        if session.createdAtEpoch is None:
            session.createdAtEpoch = now
        session.lastUpdatedAtEpoch = now
        self._data[(session.ownerId, session.roleKind)] = copy.deepcopy(session)

    async def delete(self, owner_id: str, role_kind: str) -> None:
        self._data.pop((owner_id, role_kind), None)

    def __len__(self) -> int:
        return len(self._data)


class RedisSessionStore(SessionStore):
    """Sessions as JSON under session:<role>:<owner>, expiring after SESSION_TTL_SEC."""

    def __init__(self, redis=None, ttl_sec: Optional[int] = None):
        self._redis = redis
        self._ttl_sec = int(ttl_sec if ttl_sec is not None else settings.SESSION_TTL_SEC)

    def _r(self):
        return self._redis if self._redis is not None else get_redis()

    async def get(self, owner_id: str, role_kind: str) -> Optional[VerificationSession]:
        raw = await self._r().get(_key(owner_id, role_kind))
        if not raw:
            return None
        return _session_from_json(raw)

    async def save(self, session: VerificationSession) -> None:
        now = int(time.time())
        if session.createdAtEpoch is None:
            session.createdAtEpoch = now
        session.lastUpdatedAtEpoch = now
        await self._r().set(
            _key(session.ownerId, session.roleKind),
            _session_to_json(session),
            ex=self._ttl_sec if self._ttl_sec > 0 else None,
        )

    async def delete(self, owner_id: str, role_kind: str) -> None:
        await self._r().delete(_key(owner_id, role_kind))


def build_session_store() -> SessionStore:
    if settings.SESSION_BACKEND == "redis":
        return RedisSessionStore()
    return MemorySessionStore()
