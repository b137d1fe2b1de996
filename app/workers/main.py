"""ARQ worker entrypoint."""

import asyncio
import logging

from arq import cron
from arq.connections import RedisSettings

from app.core.config import get_settings
from app.workers.sweep import sweep_unprocessed_payments


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    url = get_settings().redis_url
    rest = url.split("://", 1)[1] if "://" in url else url
    host_port, _, db = rest.partition("/")
    host, _, port = host_port.partition(":")
    return RedisSettings(
        host=host or "localhost",
        port=int(port) if port else 6379,
        database=int(db) if db else 0,
    )


async def startup(ctx: dict) -> None:
    logging.basicConfig(level=get_settings().log_level.upper())
    from app.core.database import init_db
    await init_db()


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [sweep_unprocessed_payments]
    cron_jobs = [
        # Every five minutes, and once at boot to drain work left by a crash
        cron(
            sweep_unprocessed_payments,
            minute=set(range(0, 60, 5)),
            run_at_startup=True,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 10
    job_timeout = 300


if __name__ == "__main__":
    from arq import run_worker
    asyncio.run(run_worker(WorkerSettings))  # type: ignore[arg-type]
