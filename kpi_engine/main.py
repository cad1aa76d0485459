"""
KPI engine process entry point.

Initializes the database, starts the scheduler and runs until interrupted.
"""

import asyncio

from kpi_engine.core.config import get_settings
from kpi_engine.core.logger import logger
from kpi_engine.deps import get_kpi_scheduler
from kpi_engine.infrastructure.local.database import init_db


async def run() -> None:
    settings = get_settings()
    logger.info(f"Starting KPI engine in {settings.ENVIRONMENT} mode...")

    await init_db()

    scheduler = get_kpi_scheduler()
    await scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down KPI engine...")
        await scheduler.stop()


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
