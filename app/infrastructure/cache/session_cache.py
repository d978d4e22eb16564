import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncContextManager, Dict, Optional

import redis.asyncio as redis
from loguru import logger
from pydantic import ValidationError

from app.core.config import settings
from app.core.locks import KeyedLock
from app.domain.models.conversation import FlowSession
from app.domain.ports import SessionCorrupted

# ---------------------------------------------------------------------------
# Idle timeout & lock constants
# ---------------------------------------------------------------------------
LOCK_TIMEOUT_SECONDS = 60               # a stuck holder releases after this
LOCK_WAIT_SECONDS = 30                  # give up waiting for another worker


def is_idle(session: FlowSession, timeout_seconds: int, now: Optional[datetime] = None) -> bool:
    """Return True if the dialogue has been untouched longer than ``timeout_seconds``."""
    now = now or datetime.now(timezone.utc)
    last = session.last_active_at
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return now - last > timedelta(seconds=timeout_seconds)


class InMemorySessionStore:
    """Process-local sessions. Lost on restart."""

    def __init__(self, idle_timeout_seconds: Optional[int] = None):
        self._timeout = idle_timeout_seconds or settings.SESSION_IDLE_TIMEOUT_SECONDS
        self._sessions: Dict[str, FlowSession] = {}
        self._locks = KeyedLock()

    async def get(self, phone: str) -> Optional[FlowSession]:
        session = self._sessions.get(phone)
        if session is None:
            return None
        if is_idle(session, self._timeout):
            logger.info("Dropping idle session for {} (step={})", phone, session.step.value)
            self._sessions.pop(phone, None)
            return None
        return session.model_copy(deep=True)

    async def save(self, session: FlowSession) -> None:
        self._sessions[session.phone] = session.model_copy(deep=True)

    async def clear(self, phone: str) -> None:
        self._sessions.pop(phone, None)

    def lock(self, phone: str) -> AsyncContextManager[Any]:
        return self._locks.hold(phone)

    def evict_idle(self, now: Optional[datetime] = None) -> int:
        """Drop every idle session; returns how many were dropped."""
        stale = [phone for phone, s in self._sessions.items() if is_idle(s, self._timeout, now)]
        for phone in stale:
            del self._sessions[phone]
        if stale:
            logger.info("Evicted {} idle session(s)", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore:
    """Sessions as JSON in Redis; the key's TTL is the idle timeout."""

    def __init__(self, client: redis.Redis, idle_timeout_seconds: Optional[int] = None):
        self._r = client
        self._timeout = idle_timeout_seconds or settings.SESSION_IDLE_TIMEOUT_SECONDS

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisSessionStore":
        if not redis_url:
            raise RuntimeError("REDIS_URL is not set")
        return cls(redis.from_url(redis_url, decode_responses=True))

    def _key(self, phone: str) -> str:
        return f"wa:returns:session:{phone}"

    def _lock_key(self, phone: str) -> str:
        return f"wa:returns:lock:{phone}"

    async def get(self, phone: str) -> Optional[FlowSession]:
        raw = await self._r.get(self._key(phone))
        if not raw:
            return None
        try:
            return FlowSession.model_validate_json(raw)
        except ValidationError as exc:
            raise SessionCorrupted(f"session for {phone} could not be decoded") from exc

    async def save(self, session: FlowSession) -> None:
        await self._r.set(
            self._key(session.phone),
            session.model_dump_json(),
            ex=self._timeout,
        )

    async def clear(self, phone: str) -> None:
        await self._r.delete(self._key(phone))

    def lock(self, phone: str) -> AsyncContextManager[Any]:
        return self._r.lock(
            self._lock_key(phone),
            timeout=LOCK_TIMEOUT_SECONDS,
            blocking_timeout=LOCK_WAIT_SECONDS,
        )


async def sweep_idle_sessions(store: InMemorySessionStore, interval_seconds: int) -> None:
    """Background loop: evict idle in-memory sessions every ``interval_seconds``."""
    while True:
        await asyncio.sleep(interval_seconds)
        started = time.monotonic()
        dropped = store.evict_idle()
        if dropped:
            logger.debug("Idle sweep took {:.3f}s", time.monotonic() - started)
