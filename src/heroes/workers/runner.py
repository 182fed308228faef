"""Standalone runner for the background jobs.

Use this when the API runs with HH_ENABLE_BACKGROUND_JOBS=false, e.g. with
several API replicas, so that exactly one process generates recurring rewards
and sweeps auto-approvals.

Usage: python -m heroes.workers.runner
"""

from __future__ import annotations

import asyncio
import logging
import signal

from heroes.config import get_settings
from heroes.database import close_db, init_db
from heroes.middleware.logging import setup_logging
from heroes.workers.jobs import build_jobs

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    jobs = build_jobs(settings)
    for job in jobs:
        job.start()
    logger.info("Background job runner started (%s)", ", ".join(job.name for job in jobs))

    try:
        await stop_event.wait()
    finally:
        for job in jobs:
            await job.stop()
        await close_db()
        logger.info("Background job runner stopped")


if __name__ == "__main__":
    asyncio.run(main())
