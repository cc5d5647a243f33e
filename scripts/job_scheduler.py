# file: scripts/job_scheduler.py

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime

from dotenv import load_dotenv

# Add the project root to the Python path to allow absolute imports from the 'app' package
# This is necessary because we are running this file as a standalone script.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from app.database.connection import AsyncSessionLocal, init_db
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.push_gateway import PushGateway, get_push_gateway
from app.services.recurring_transactions import RecurringTransactionGenerator
from app.services.transaction_status import TransactionStatusScheduler

load_dotenv()

logger = logging.getLogger(__name__)

JOB_INTERVAL_SECONDS = int(os.getenv("JOB_INTERVAL_SECONDS", str(24 * 60 * 60)))


async def run_scheduled_jobs(session_factory, push_gateway: PushGateway, now: datetime | None = None) -> None:
    """Runs one scheduler cycle: status transitions first, then recurring generation."""
    dispatcher = NotificationDispatcher(session_factory, push_gateway)
    try:
        status_report = await TransactionStatusScheduler(session_factory, dispatcher).run(now)
        logger.info(f" -> {status_report.job}: {status_report.model_dump()}")

        recurring_report = await RecurringTransactionGenerator(session_factory, dispatcher).run(now)
        logger.info(f" -> {recurring_report.job}: {recurring_report.model_dump()}")
    finally:
        await dispatcher.wait_for_pending()


async def main_scheduler_loop(session_factory, push_gateway: PushGateway) -> None:
    """The main event loop for the scheduler daemon."""
    while True:
        logger.info(f"--- [{datetime.now()}] STARTING NEW SCHEDULER CYCLE ---")
        try:
            await run_scheduled_jobs(session_factory, push_gateway)
        except Exception:
            logger.exception("An error occurred in the scheduler loop")

        logger.info(f"--- Scheduler cycle finished. Waiting for {JOB_INTERVAL_SECONDS} seconds. ---")
        await asyncio.sleep(JOB_INTERVAL_SECONDS)


async def run_once(session_factory, push_gateway: PushGateway) -> int:
    try:
        await run_scheduled_jobs(session_factory, push_gateway)
    except Exception:
        logger.exception("Scheduled run failed")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Runs the scheduled transaction jobs.")
    parser.add_argument("--once", action="store_true",
                        help="run a single cycle and exit with a non-zero status on failure")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    async def _main() -> int:
        await init_db()
        push_gateway = get_push_gateway()
        if args.once:
            return await run_once(AsyncSessionLocal, push_gateway)
        await main_scheduler_loop(AsyncSessionLocal, push_gateway)
        return 0

    return asyncio.run(_main())


if __name__ == "__main__":
    logger.info("Starting job scheduler...")
    sys.exit(main())
