"""
Expiry Worker
Periodically cancels Pending orders whose payment window has passed.
"""
import asyncio

from config import settings
from database import get_db
from lifecycle import expire_stale_orders
from logger import logger


async def run_expiry_sweep() -> int:
    db = get_db()
    expired = await asyncio.to_thread(expire_stale_orders, db)
    if expired:
        logger.info(f"Expiry sweep cancelled {expired} order(s)")
    return expired


async def run_expiry_worker_loop():
    """
    Run the expiry sweep forever, every EXPIRY_SWEEP_INTERVAL_SECONDS.
    Started from the application startup hook.
    """
    logger.info("Expiry worker loop started")

    while True:
        try:
            await run_expiry_sweep()
        except Exception as e:
            logger.error(f"Expiry worker loop error: {str(e)}")

        await asyncio.sleep(settings.EXPIRY_SWEEP_INTERVAL_SECONDS)


if __name__ == "__main__":
    asyncio.run(run_expiry_worker_loop())
