# tests/test_session_store.py
"""Tests for the in-memory and Redis dialogue session stores."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.models.conversation import FlowSession, FlowStep
from app.domain.models.returns import RequestType
from app.domain.ports import SessionCorrupted
from app.infrastructure.cache.session_cache import (
    LOCK_TIMEOUT_SECONDS,
    LOCK_WAIT_SECONDS,
    InMemorySessionStore,
    RedisSessionStore,
    is_idle,
    sweep_idle_sessions,
)
from tests.conftest import WA_ID


def _session(phone=WA_ID, minutes_ago=0):
    session = FlowSession(phone=phone, type=RequestType.RETURN, step=FlowStep.AWAITING_REASON)
    session.data.order_id = "ORD-1001"
    session.last_active_at = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    return session


def test_is_idle_threshold():
    session = _session()
    now = session.last_active_at
    assert is_idle(session, 1800, now + timedelta(seconds=1800)) is False
    assert is_idle(session, 1800, now + timedelta(seconds=1801)) is True


# ── In-memory ────────────────────────────────────────────


def test_memory_save_get_clear(event_loop):
    store = InMemorySessionStore(idle_timeout_seconds=1800)
    event_loop.run_until_complete(store.save(_session()))

    loaded = event_loop.run_until_complete(store.get(WA_ID))
    assert loaded.data.order_id == "ORD-1001"
    assert loaded.step == FlowStep.AWAITING_REASON

    event_loop.run_until_complete(store.clear(WA_ID))
    assert event_loop.run_until_complete(store.get(WA_ID)) is None


def test_memory_returns_copies(event_loop):
    store = InMemorySessionStore(idle_timeout_seconds=1800)
    event_loop.run_until_complete(store.save(_session()))

    loaded = event_loop.run_until_complete(store.get(WA_ID))
    loaded.step = FlowStep.AWAITING_ITEM_SELECTION
    loaded.data.reason = "Other"

    again = event_loop.run_until_complete(store.get(WA_ID))
    assert again.step == FlowStep.AWAITING_REASON
    assert again.data.reason is None


def test_memory_idle_session_is_dropped_on_read(event_loop):
    store = InMemorySessionStore(idle_timeout_seconds=1800)
    event_loop.run_until_complete(store.save(_session(minutes_ago=31)))
    assert event_loop.run_until_complete(store.get(WA_ID)) is None
    assert len(store) == 0


def test_memory_evict_idle(event_loop):
    store = InMemorySessionStore(idle_timeout_seconds=1800)
    event_loop.run_until_complete(store.save(_session("911", minutes_ago=45)))
    event_loop.run_until_complete(store.save(_session("912", minutes_ago=5)))

    assert store.evict_idle() == 1
    assert len(store) == 1
    assert event_loop.run_until_complete(store.get("912")) is not None


def test_sweep_loop_evicts_until_cancelled(event_loop):
    store = InMemorySessionStore(idle_timeout_seconds=1800)
    event_loop.run_until_complete(store.save(_session(minutes_ago=60)))

    async def run():
        task = asyncio.ensure_future(sweep_idle_sessions(store, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    event_loop.run_until_complete(run())
    assert len(store) == 0


def test_memory_lock_serialises_one_phone(event_loop):
    store = InMemorySessionStore()
    order = []

    async def worker(name):
        async with store.lock(WA_ID):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    async def run():
        await asyncio.gather(worker("a"), worker("b"))

    event_loop.run_until_complete(run())
    assert order == ["a-in", "a-out", "b-in", "b-out"]


# ── Redis ────────────────────────────────────────────────


def _redis_store():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.delete = AsyncMock()
    return RedisSessionStore(client, idle_timeout_seconds=1800), client


def test_redis_save_sets_ttl(event_loop):
    store, client = _redis_store()
    session = _session()
    event_loop.run_until_complete(store.save(session))

    client.set.assert_awaited_once()
    args, kwargs = client.set.call_args
    assert args[0] == f"wa:returns:session:{WA_ID}"
    assert FlowSession.model_validate_json(args[1]).data.order_id == "ORD-1001"
    assert kwargs == {"ex": 1800}


def test_redis_get_decodes(event_loop):
    store, client = _redis_store()
    client.get.return_value = _session().model_dump_json()

    loaded = event_loop.run_until_complete(store.get(WA_ID))
    assert loaded.phone == WA_ID
    assert loaded.data.order_id == "ORD-1001"
    client.get.assert_awaited_once_with(f"wa:returns:session:{WA_ID}")


def test_redis_missing_key(event_loop):
    store, _ = _redis_store()
    assert event_loop.run_until_complete(store.get(WA_ID)) is None


def test_redis_corrupted_payload(event_loop):
    store, client = _redis_store()
    client.get.return_value = '{"phone": "919999999999", "step": "dancing"}'
    with pytest.raises(SessionCorrupted):
        event_loop.run_until_complete(store.get(WA_ID))


def test_redis_clear(event_loop):
    store, client = _redis_store()
    event_loop.run_until_complete(store.clear(WA_ID))
    client.delete.assert_awaited_once_with(f"wa:returns:session:{WA_ID}")


def test_redis_lock_arguments():
    store, client = _redis_store()
    store.lock(WA_ID)
    client.lock.assert_called_once_with(
        f"wa:returns:lock:{WA_ID}",
        timeout=LOCK_TIMEOUT_SECONDS,
        blocking_timeout=LOCK_WAIT_SECONDS,
    )


def test_redis_from_url_requires_url():
    with pytest.raises(RuntimeError):
        RedisSessionStore.from_url("")
