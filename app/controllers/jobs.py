# file: controllers/jobs.py

import os
import logging
from fastapi import APIRouter, Depends, HTTPException, Header, BackgroundTasks
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.connection import get_session_factory
from app.models.jobs import JobRunResponse
from app.services.migration import MigrationJob
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.push_gateway import PushGateway, get_push_gateway
from app.services.recurring_transactions import RecurringTransactionGenerator
from app.services.scheduled_job import ScheduledJob
from app.services.transaction_status import TransactionStatusScheduler

router = APIRouter()
logger = logging.getLogger(__name__)

ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")


def verify_admin_key(x_api_key: str = Header(...)):
    if not ADMIN_API_KEY or x_api_key != ADMIN_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid Admin API Key")


async def _run_job(job: ScheduledJob, background_tasks: BackgroundTasks, success_message: str,
                   error_message: str):
    try:
        report = await job.run()
    except Exception as e:
        logger.error(f"Error in manual trigger for {job.name}: {e}")
        body = JobRunResponse(success=False, error=error_message)
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    finally:
        if job.dispatcher is not None:
            # Pushes go out after the response; the job result does not depend on them
            background_tasks.add_task(job.dispatcher.wait_for_pending)

    if not report.lease_acquired:
        body = JobRunResponse(success=False, error="Job is already running", report=report)
        return JSONResponse(status_code=409, content=body.model_dump(exclude_none=True))

    return JobRunResponse(success=True, message=success_message, report=report).model_dump(exclude_none=True)


@router.post("/update-transaction-statuses", dependencies=[Depends(verify_admin_key)])
async def trigger_update_transaction_statuses(
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker = Depends(get_session_factory),
        push_gateway: PushGateway = Depends(get_push_gateway),
):
    job = TransactionStatusScheduler(session_factory, NotificationDispatcher(session_factory, push_gateway))
    return await _run_job(job, background_tasks,
                          "Transaction statuses updated successfully",
                          "Failed to update transaction statuses")


@router.post("/process-recurring-transactions", dependencies=[Depends(verify_admin_key)])
async def trigger_process_recurring_transactions(
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker = Depends(get_session_factory),
        push_gateway: PushGateway = Depends(get_push_gateway),
):
    job = RecurringTransactionGenerator(session_factory, NotificationDispatcher(session_factory, push_gateway))
    return await _run_job(job, background_tasks,
                          "Recurring transactions processed successfully",
                          "Failed to process recurring transactions")


@router.post("/migrate-transactions", dependencies=[Depends(verify_admin_key)])
async def trigger_migrate_transactions(
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker = Depends(get_session_factory),
):
    job = MigrationJob(session_factory)
    return await _run_job(job, background_tasks,
                          "Transactions migrated successfully",
                          "Failed to migrate transactions")
