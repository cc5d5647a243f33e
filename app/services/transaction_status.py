# file: services/transaction_status.py

import logging
from datetime import datetime

from sqlalchemy import select

from app.database.models import Transaction
from app.models.jobs import JobReport
from app.models.notification import NotificationCreate, NotificationType
from app.models.push import PushNotification
from app.models.transaction import TransactionNotificationData, TransactionRecord, TransactionStatus
from app.services.batch_writer import BatchWriter, CreateOperation, UpdateOperation
from app.services.i18n import format_amount, get_translated_message, get_translated_title
from app.services.scheduled_job import ScheduledJob
from app.utils.dates import is_same_day, start_of_day, tomorrow_end

logger = logging.getLogger(__name__)


def overdue_dedupe_key(transaction_id: str, due_date: datetime) -> str:
    # One overdue notice per due date; a rescheduled transaction that lapses again gets a new one
    return f"{NotificationType.TRANSACTION_OVERDUE.value}:{transaction_id}:{due_date.date().isoformat()}"


def reminder_dedupe_key(transaction_id: str, today: datetime) -> str:
    return f"{NotificationType.TRANSACTION_REMINDER.value}:{transaction_id}:{today.date().isoformat()}"


class TransactionStatusScheduler(ScheduledJob):
    """
    Daily sweep over upcoming transactions.

    Transactions dated before today become overdue and their owners are told
    so. Transactions due today or tomorrow keep their status and get a
    reminder. Pushes are fired in the background; the batched writes do not
    wait for them.
    """

    name = "update_transaction_statuses"

    async def sweep(self, now: datetime, writer: BatchWriter, report: JobReport) -> None:
        today_start = start_of_day(now)

        async with self._session_factory() as session:
            stmt = (
                select(Transaction)
                .where(Transaction.status == TransactionStatus.UPCOMING.value,
                       Transaction.date < today_start)
                .order_by(Transaction.date, Transaction.id)
            )
            overdue = (await session.execute(stmt)).scalars().all()
        logger.info(f"Found {len(overdue)} transactions to mark as overdue")

        sent = await self.dispatcher.existing_dedupe_keys([overdue_dedupe_key(t.id, t.date) for t in overdue])
        for row in overdue:
            try:
                operations = await self._mark_overdue(row, now, sent)
            except Exception:
                logger.exception(f"Failed to mark transaction {row.id} as overdue")
                report.failed += 1
                continue
            await writer.enqueue_all(operations)
            report.processed += 1

        async with self._session_factory() as session:
            stmt = (
                select(Transaction)
                .where(Transaction.status == TransactionStatus.UPCOMING.value,
                       Transaction.date >= today_start,
                       Transaction.date <= tomorrow_end(now))
                .order_by(Transaction.date, Transaction.id)
            )
            due_soon = (await session.execute(stmt)).scalars().all()
        logger.info(f"Found {len(due_soon)} upcoming transactions due today or tomorrow")

        sent = await self.dispatcher.existing_dedupe_keys([reminder_dedupe_key(t.id, today_start) for t in due_soon])
        for row in due_soon:
            if reminder_dedupe_key(row.id, today_start) in sent:
                report.skipped += 1
                continue
            try:
                operations = await self._remind(row, now, today_start)
            except Exception:
                logger.exception(f"Failed to create reminder for transaction {row.id}")
                report.failed += 1
                continue
            await writer.enqueue_all(operations)
            report.processed += 1

    async def _mark_overdue(self, row: Transaction, now: datetime, sent: set[str]) -> list:
        transaction = TransactionRecord.model_validate(row)
        operations = [UpdateOperation(Transaction, transaction.id, {
            "status": TransactionStatus.OVERDUE.value,
            "updated_at": now,
        })]

        dedupe_key = overdue_dedupe_key(transaction.id, transaction.date)
        if dedupe_key in sent:
            return operations

        language = await self.language_for(transaction.user_id)
        notification_type = NotificationType.TRANSACTION_OVERDUE
        data = TransactionNotificationData(
            transactionId=transaction.id,
            amount=transaction.amount,
            description=transaction.description,
            date=transaction.date.isoformat(),
            groupId=transaction.group_id,
        )
        notification = NotificationCreate(
            user_id=transaction.user_id,
            title=get_translated_title(notification_type.value, language),
            body=get_translated_message(notification_type.value, language, {
                "description": transaction.description,
                "amount": format_amount(transaction.amount, language),
            }),
            type=notification_type,
            data=data.to_document(),
            language=language,
            dedupe_key=dedupe_key,
        )
        operations.append(CreateOperation(self.dispatcher.build(notification, now)))

        self.dispatcher.dispatch_in_background(
            transaction.user_id,
            PushNotification(title=notification.title, body=notification.body),
            data.to_push_data(notification_type.value),
        )
        return operations

    async def _remind(self, row: Transaction, now: datetime, today_start: datetime) -> list:
        transaction = TransactionRecord.model_validate(row)
        is_due_today = is_same_day(transaction.date, today_start)
        language = await self.language_for(transaction.user_id)

        translation_key = "transaction_reminder_today" if is_due_today else "transaction_reminder_tomorrow"
        notification_type = NotificationType.TRANSACTION_REMINDER
        data = TransactionNotificationData(
            transactionId=transaction.id,
            amount=transaction.amount,
            description=transaction.description,
            date=transaction.date.isoformat(),
            groupId=transaction.group_id,
            isDueToday=is_due_today,
        )
        notification = NotificationCreate(
            user_id=transaction.user_id,
            title=get_translated_title(translation_key, language),
            body=get_translated_message(translation_key, language, {
                "description": transaction.description,
                "amount": format_amount(transaction.amount, language),
            }),
            type=notification_type,
            data=data.to_document(),
            language=language,
            dedupe_key=reminder_dedupe_key(transaction.id, today_start),
        )

        self.dispatcher.dispatch_in_background(
            transaction.user_id,
            PushNotification(title=notification.title, body=notification.body),
            data.to_push_data(notification_type.value),
        )
        return [CreateOperation(self.dispatcher.build(notification, now))]
