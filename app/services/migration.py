# file: services/migration.py

import logging
from datetime import datetime

from sqlalchemy import or_, select

from app.database.models import Transaction
from app.models.jobs import JobReport
from app.models.transaction import TransactionStatus
from app.services.batch_writer import BatchWriter, UpdateOperation
from app.services.scheduled_job import ScheduledJob

logger = logging.getLogger(__name__)

SCAN_PAGE_SIZE = 1000


class MigrationJob(ScheduledJob):
    """
    One-time backfill of the status and recurrence fields on legacy
    transactions: a missing status becomes ``paid`` and a missing recurrence
    flag becomes ``false``. Rows that already have both are never touched, so
    a second run writes nothing.
    """

    name = "migrate_transactions"

    async def sweep(self, now: datetime, writer: BatchWriter, report: JobReport) -> None:
        logger.info("Starting transaction migration for adding status and recurring fields")
        last_id = None
        while True:
            page = await self._next_page(last_id)
            if not page:
                break
            for transaction_id, status, is_recurring in page:
                updates = {"updated_at": now}
                if not status:
                    updates["status"] = TransactionStatus.PAID.value
                if is_recurring is None:
                    updates["is_recurring"] = False
                await writer.enqueue(UpdateOperation(Transaction, transaction_id, updates))
                report.processed += 1
            last_id = page[-1][0]

        logger.info(f"Migration completed. Processed {report.processed} transactions.")

    async def _next_page(self, after_id) -> list:
        stmt = (
            select(Transaction.id, Transaction.status, Transaction.is_recurring)
            .where(or_(Transaction.status.is_(None), Transaction.status == "",
                       Transaction.is_recurring.is_(None)))
            .order_by(Transaction.id)
            .limit(SCAN_PAGE_SIZE)
        )
        if after_id is not None:
            stmt = stmt.where(Transaction.id > after_id)
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).all())
