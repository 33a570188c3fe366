"""
Periodic maintenance jobs run for the lifetime of the process.
"""
import asyncio
import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import async_sessionmaker

from . import storage
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)


async def run_periodically(interval_seconds: float, job: Callable[[], Awaitable[object]], name: str) -> None:
    """Await `job` every `interval_seconds` until cancelled. Failures are logged and the loop continues."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await job()
        except Exception:
            logger.exception("Periodic job %s failed", name)


async def sweep_rate_limits(limiter: RateLimiter) -> int:
    removed = limiter.sweep()
    if removed:
        logger.debug("Dropped %d expired rate-limit windows", removed)
    return removed


async def purge_old_history(session_factory: async_sessionmaker, days_old: int) -> int:
    async with session_factory() as session:
        deleted = await storage.cleanup_old_history(session, days_old)
    if deleted > 0:
        logger.info("Cleaned up %d old history entries", deleted)
    return deleted
