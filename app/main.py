import asyncio
import logging

from fastapi import FastAPI

from app.api.deps import get_session_store
from app.api.routes import api_router
from app.core.config import settings
from app.core.db import engine
from app.core.logging_config import setup_logging
from app.infrastructure.cache.redis_client import close_redis_client
from app.infrastructure.cache.session_cache import InMemorySessionStore, sweep_idle_sessions
from app.infrastructure.db import models  # noqa: F401
from app.infrastructure.db.base import Base

setup_logging()
logger = logging.getLogger("main")

app = FastAPI(title=settings.APP_NAME)

_background: list[asyncio.Task] = []


@app.on_event("startup")
async def startup():
    if settings.RECORD_STORE == "sql":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    sessions = get_session_store()
    if isinstance(sessions, InMemorySessionStore):
        _background.append(
            asyncio.create_task(sweep_idle_sessions(sessions, settings.SESSION_SWEEP_INTERVAL_SECONDS))
        )
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown():
    for task in _background:
        task.cancel()
    _background.clear()
    if settings.SESSION_BACKEND == "redis":
        await close_redis_client()
    await engine.dispose()


app.include_router(api_router)
