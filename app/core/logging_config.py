# app/core/logging_config.py

import logging
import sys

from loguru import logger

from app.core.config import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

# stdlib loggers that are too chatty at INFO
_QUIET = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "asyncio")


class InterceptHandler(logging.Handler):
    """Forward stdlib records (domain services, audit, uvicorn) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.bind(channel=record.name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging() -> None:
    """
    Colored console logs in dev, one JSON object per line elsewhere so the
    STATUS_TRANSITION / UNHANDLED_TRANSITION audit lines can be filtered.
    """
    logger.remove()

    if settings.ENVIRONMENT.lower() in ("dev", "local", "test"):
        logger.add(
            sys.stdout,
            format=_CONSOLE_FORMAT,
            level=settings.LOG_LEVEL.upper(),
            colorize=True,
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stdout,
            level=settings.LOG_LEVEL.upper(),
            serialize=True,
            backtrace=False,
            diagnose=False,
        )

    handler = InterceptHandler()
    logging.basicConfig(handlers=[handler], level=logging.INFO, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [handler]
        logging.getLogger(name).propagate = False
    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
