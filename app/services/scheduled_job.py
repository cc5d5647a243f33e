# file: services/scheduled_job.py

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.models.jobs import JobReport
from app.services.batch_writer import BATCH_LIMIT, BatchWriter
from app.services.i18n import get_user_language
from app.services.job_lease import JOB_LEASE_TTL_SECONDS, job_lease
from app.services.notification_dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class ScheduledJob:
    """
    One sweep over a candidate set, run under a lease so overlapping
    invocations of the same job do not process the same records twice.
    Subclasses implement ``sweep``.
    """

    name = "job"

    def __init__(self, session_factory: async_sessionmaker, dispatcher: Optional[NotificationDispatcher] = None,
                 batch_limit: int = BATCH_LIMIT, lease_ttl_seconds: int = JOB_LEASE_TTL_SECONDS):
        self._session_factory = session_factory
        self.dispatcher = dispatcher
        self.batch_limit = batch_limit
        self.lease_ttl_seconds = lease_ttl_seconds
        self._languages: dict[str, str] = {}

    async def run(self, now: Optional[datetime] = None) -> JobReport:
        now = now or datetime.now()
        report = JobReport(job=self.name)
        logger.info(f"Starting {self.name}")

        async with job_lease(self._session_factory, self.name, self.lease_ttl_seconds, now=now) as acquired:
            if not acquired:
                report.lease_acquired = False
                return report

            self._languages = {}
            writer = BatchWriter(self._session_factory, self.batch_limit)
            try:
                await self.sweep(now, writer, report)
                await writer.commit_remainder()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}")
                raise
            finally:
                report.commits = list(writer.commit_sizes)

        if report.processed:
            logger.info(f"Successfully processed {report.processed} records in {self.name}")
        else:
            logger.info(f"No records needed processing in {self.name}")
        return report

    async def sweep(self, now: datetime, writer: BatchWriter, report: JobReport) -> None:
        raise NotImplementedError

    async def language_for(self, user_id: str) -> str:
        if user_id not in self._languages:
            self._languages[user_id] = await get_user_language(self._session_factory, user_id)
        return self._languages[user_id]
