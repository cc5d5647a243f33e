# file: services/recurring_transactions.py

import logging
import uuid
from datetime import datetime

from sqlalchemy import select

from app.database.models import Transaction
from app.models.jobs import JobReport
from app.models.notification import NotificationCreate, NotificationType
from app.models.push import PushNotification
from app.models.transaction import TransactionNotificationData, TransactionRecord, TransactionStatus
from app.services.batch_writer import BatchWriter, CreateOperation
from app.services.i18n import format_amount, format_date, get_translated_message, get_translated_title
from app.services.scheduled_job import ScheduledJob
from app.utils.dates import candidate_periods, next_occurrence, period_key

logger = logging.getLogger(__name__)


class RecurringTransactionGenerator(ScheduledJob):
    """
    Creates the next upcoming occurrence of every recurring rule.

    A rule is a transaction with ``is_recurring`` set. Occurrences point back
    at their rule and carry the month they belong to, so a rule gets at most
    one occurrence per month however often the job runs.
    """

    name = "process_recurring_transactions"

    async def sweep(self, now: datetime, writer: BatchWriter, report: JobReport) -> None:
        async with self._session_factory() as session:
            stmt = (
                select(Transaction)
                .where(Transaction.is_recurring.is_(True))
                .order_by(Transaction.created_at, Transaction.id)
            )
            rules = (await session.execute(stmt)).scalars().all()

            # An occurrence always falls in this month or the next
            generated_stmt = select(Transaction.recurring_rule_id, Transaction.period_key).where(
                Transaction.recurring_rule_id.is_not(None),
                Transaction.period_key.in_(candidate_periods(now)),
            )
            generated = {tuple(r) for r in (await session.execute(generated_stmt)).all()}
        logger.info(f"Found {len(rules)} recurring transactions")

        for row in rules:
            try:
                rule = TransactionRecord.model_validate(row)
                occurrence_date = next_occurrence(now, rule.recurring_date or 1)
                if (rule.id, period_key(occurrence_date)) in generated:
                    report.skipped += 1
                    continue
                operations = await self._generate(rule, occurrence_date, now)
            except Exception:
                logger.exception(f"Failed to generate occurrence for recurring transaction {row.id}")
                report.failed += 1
                continue
            await writer.enqueue_all(operations)
            generated.add((rule.id, period_key(occurrence_date)))
            report.processed += 1

    async def _generate(self, rule: TransactionRecord, occurrence_date: datetime, now: datetime) -> list:
        occurrence = Transaction(
            id=str(uuid.uuid4()),
            amount=rule.amount,
            description=rule.description,
            date=occurrence_date,
            type=rule.type.value,
            category_id=rule.category_id,
            user_id=rule.user_id,
            shopping_list_id=rule.shopping_list_id,
            status=TransactionStatus.UPCOMING.value,
            is_recurring=False,
            recurring_rule_id=rule.id,
            period_key=period_key(occurrence_date),
            created_at=now,
            updated_at=now,
        )
        if rule.group_id:
            occurrence.group_id = rule.group_id

        language = await self.language_for(rule.user_id)
        notification_type = NotificationType.TRANSACTION_UPCOMING
        data = TransactionNotificationData(
            transactionId=occurrence.id,
            amount=rule.amount,
            description=rule.description,
            date=occurrence_date.isoformat(),
            groupId=rule.group_id,
        )
        notification = NotificationCreate(
            user_id=rule.user_id,
            title=get_translated_title(notification_type.value, language),
            body=get_translated_message(notification_type.value, language, {
                "description": rule.description,
                "amount": format_amount(rule.amount, language),
                "date": format_date(occurrence_date),
            }),
            type=notification_type,
            data=data.to_document(),
            language=language,
        )

        self.dispatcher.dispatch_in_background(
            rule.user_id,
            PushNotification(title=notification.title, body=notification.body),
            data.to_push_data(notification_type.value),
        )
        return [CreateOperation(occurrence), CreateOperation(self.dispatcher.build(notification, now))]
