"""Delete expired sessions, single-use tokens and old login attempts.

Meant for cron:  python -m bazaar.seed_scripts.cleanup_tokens
"""
import asyncio
from dotenv import load_dotenv

from bazaar.auth.repository import cleanup_expired_tokens
from bazaar.common.logging_setup import get_logger, setup_logging, shutdown_logging
from bazaar.db.connection import async_engine, async_session

load_dotenv()

logger = get_logger("bazaar.maintenance")


async def run_cleanup() -> dict:
    async with async_session() as session:
        counts = await cleanup_expired_tokens(session)
        await session.commit()
    logger.info("maintenance.cleanup.done", extra=counts)
    return counts


async def main():
    setup_logging()
    try:
        counts = await run_cleanup()
        print(counts)
    finally:
        await async_engine.dispose()
        shutdown_logging()


if __name__ == "__main__":
    asyncio.run(main())
