"""Entry point for the warwatch notifier."""

from __future__ import annotations

import asyncio
import logging

from warwatch.config import setup_logging
from warwatch.migrate import run_migration
from warwatch.scheduler import WarwatchScheduler
from warwatch.store import WarStore

logger = logging.getLogger(__name__)


async def _main() -> None:
    setup_logging()
    logger.info("warwatch_starting")

    store = WarStore()

    # Run schema migration before starting the scheduler
    try:
        run_migration(store)
    except Exception:
        logger.error("migration_failed", exc_info=True)
        raise

    scheduler = WarwatchScheduler(store)
    await scheduler.start()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
