# file: services/batch_writer.py

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

# Maximum number of write operations committed in one atomic chunk
BATCH_LIMIT = 500


class WriteOperation:
    async def apply(self, session: AsyncSession) -> None:
        raise NotImplementedError


@dataclass
class CreateOperation(WriteOperation):
    instance: Any

    async def apply(self, session: AsyncSession) -> None:
        session.add(self.instance)


@dataclass
class UpdateOperation(WriteOperation):
    model: Any
    pk: Any
    values: dict = field(default_factory=dict)

    async def apply(self, session: AsyncSession) -> None:
        await session.execute(
            update(self.model).where(self.model.id == self.pk).values(**self.values)
        )


class BatchWriter:
    """
    Accumulates write operations and commits them in chunks of at most
    ``limit`` operations. Each chunk is committed in its own transaction; a
    failed commit raises and nothing queued after it is written.
    """

    def __init__(self, session_factory: async_sessionmaker, limit: int = BATCH_LIMIT):
        if limit < 1:
            raise ValueError("Batch limit must be at least 1")
        self._session_factory = session_factory
        self.limit = limit
        self._pending: list[WriteOperation] = []
        self.commit_sizes: list[int] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def total_committed(self) -> int:
        return sum(self.commit_sizes)

    async def enqueue(self, operation: WriteOperation) -> None:
        self._pending.append(operation)
        await self.flush_if_full()

    async def enqueue_all(self, operations: Iterable[WriteOperation]) -> None:
        for operation in operations:
            await self.enqueue(operation)

    async def flush_if_full(self) -> bool:
        if len(self._pending) < self.limit:
            return False
        await self._commit()
        return True

    async def commit_remainder(self) -> None:
        if self._pending:
            await self._commit()

    async def _commit(self) -> None:
        operations, self._pending = self._pending, []
        async with self._session_factory() as session:
            async with session.begin():
                for operation in operations:
                    await operation.apply(session)
        self.commit_sizes.append(len(operations))
        logger.info(f"Committed batch of {len(operations)} operations")
