# file: services/job_lease.py

import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import JobLease

logger = logging.getLogger(__name__)

JOB_LEASE_TTL_SECONDS = int(os.getenv("JOB_LEASE_TTL_SECONDS", "900"))


async def acquire_lease(session_factory: async_sessionmaker, name: str, holder: str,
                        ttl_seconds: int = JOB_LEASE_TTL_SECONDS, now: Optional[datetime] = None) -> bool:
    """Takes the named lease unless another holder has an unexpired one."""
    now = now or datetime.now()
    expires_at = now + timedelta(seconds=ttl_seconds)
    async with session_factory() as session:
        lease = await session.get(JobLease, name)
        if lease is None:
            session.add(JobLease(name=name, holder=holder, acquired_at=now, expires_at=expires_at))
            try:
                await session.commit()
            except IntegrityError:
                # Another run inserted the lease first
                await session.rollback()
                return False
            return True

        if lease.holder != holder and lease.expires_at > now:
            return False

        # The row must still be ours or expired when the write lands
        result = await session.execute(
            update(JobLease)
            .where(JobLease.name == name, or_(JobLease.holder == holder, JobLease.expires_at <= now))
            .values(holder=holder, acquired_at=now, expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    if result.rowcount != 1:
        logger.info(f"Lease '{name}' was taken by another run")
        return False
    if lease.holder != holder:
        logger.info(f"Took over expired lease '{name}' from {lease.holder}")
    return True


async def release_lease(session_factory: async_sessionmaker, name: str, holder: str) -> None:
    async with session_factory() as session:
        await session.execute(delete(JobLease).where(JobLease.name == name, JobLease.holder == holder))
        await session.commit()


@asynccontextmanager
async def job_lease(session_factory: async_sessionmaker, name: str,
                    ttl_seconds: int = JOB_LEASE_TTL_SECONDS,
                    now: Optional[datetime] = None) -> AsyncIterator[bool]:
    """Yields True when the lease was acquired; the lease is released on exit."""
    holder = uuid.uuid4().hex
    acquired = await acquire_lease(session_factory, name, holder, ttl_seconds, now=now)
    if not acquired:
        logger.info(f"Job '{name}' is already running, skipping this invocation")
        yield False
        return
    try:
        yield True
    finally:
        await release_lease(session_factory, name, holder)
