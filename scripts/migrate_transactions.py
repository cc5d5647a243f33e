# file: scripts/migrate_transactions.py

import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from app.database.connection import AsyncSessionLocal, init_db
from app.services.migration import MigrationJob

logger = logging.getLogger(__name__)


async def migrate() -> int:
    await init_db()
    try:
        report = await MigrationJob(AsyncSessionLocal).run()
    except Exception:
        logger.exception("Transaction migration failed")
        return 1
    if not report.lease_acquired:
        logger.error("Migration is already running elsewhere")
        return 1
    logger.info(f"Migration report: {report.model_dump()}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(migrate()))
