import os

# --- SETUP: Set a testing flag before importing app components ---
os.environ["TESTING"] = "True"

from datetime import datetime
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.database.models import Base, DeviceToken, Transaction, User
from app.models.push import BatchPushResponse, PushMessage, PushResponse
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.push_gateway import PushGateway

# Logical "now" used by the job tests: Thursday 2026-10-15, mid-morning
NOW = datetime(2026, 10, 15, 9, 30)


class FakePushGateway(PushGateway):
    """Records every multicast; ``failures`` maps a token to the error code it should fail with."""

    def __init__(self, failures: Optional[dict] = None, error: Optional[Exception] = None):
        self.failures = failures or {}
        self.error = error
        self.sent: list[PushMessage] = []

    async def send_multicast(self, message: PushMessage) -> BatchPushResponse:
        self.sent.append(message)
        if self.error is not None:
            raise self.error
        responses = [
            PushResponse(success=token not in self.failures, error_code=self.failures.get(token))
            for token in message.tokens
        ]
        success_count = sum(1 for r in responses if r.success)
        return BatchPushResponse(success_count=success_count, failure_count=len(responses) - success_count,
                                 responses=responses)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    # A file database gives every session its own connection, like the real store
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def push_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture
def dispatcher(session_factory, push_gateway) -> NotificationDispatcher:
    return NotificationDispatcher(session_factory, push_gateway)


async def add_user(session_factory, user_id="user-1", email=None, tokens=(), language=None,
                   notifications_enabled=True) -> User:
    async with session_factory() as session:
        user = User(id=user_id, email=email or f"{user_id}@example.com", language=language,
                    notifications_enabled=notifications_enabled, created_at=NOW)
        session.add(user)
        for idx, token in enumerate(tokens):
            session.add(DeviceToken(user_id=user_id, token=token, device_type="mobile",
                                    created_at=datetime(2026, 1, 1 + idx), last_used=datetime(2026, 1, 1 + idx)))
        await session.commit()
    return user


async def add_transaction(session_factory, **fields) -> Transaction:
    values = {
        "amount": 100.0,
        "description": "Rent",
        "date": NOW,
        "type": "expense",
        "category_id": "cat-1",
        "user_id": "user-1",
        "status": "upcoming",
        "is_recurring": False,
        "created_at": datetime(2026, 1, 1),
        "updated_at": datetime(2026, 1, 1),
    }
    values.update(fields)
    async with session_factory() as session:
        transaction = Transaction(**values)
        session.add(transaction)
        await session.commit()
    return transaction
