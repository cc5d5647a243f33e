# file: services/notification_dispatcher.py

import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database.models import Notification, User
from app.models.notification import NotificationCreate
from app.models.push import PushMessage, PushNotification
from app.services.push_gateway import PushGateway, is_permanent_error
from app.services.token_registry import DeviceTokenRegistry

logger = logging.getLogger(__name__)

DEDUPE_LOOKUP_CHUNK = 500


class NotificationDispatcher:
    """
    Persists in-app notifications and fans push notifications out to every
    device a user owns.

    Push delivery is best effort: ``dispatch_push`` never raises, and tokens
    rejected with a permanent error are dropped from the registry.
    """

    def __init__(self, session_factory: async_sessionmaker, push_gateway: PushGateway,
                 token_registry: Optional[DeviceTokenRegistry] = None):
        self._session_factory = session_factory
        self._push_gateway = push_gateway
        self.token_registry = token_registry or DeviceTokenRegistry(session_factory)
        self._pending: set[asyncio.Task] = set()

    def build(self, notification: NotificationCreate, now: Optional[datetime] = None) -> Notification:
        """Unsaved notification row, for callers that write it through a batch."""
        return Notification(
            user_id=notification.user_id,
            title=notification.title,
            body=notification.body,
            type=notification.type.value,
            read=False,
            created_at=now or datetime.now(),
            data=notification.data,
            language=notification.language,
            dedupe_key=notification.dedupe_key,
        )

    async def create(self, notification: NotificationCreate) -> str:
        db_notification = self.build(notification)
        async with self._session_factory() as session:
            session.add(db_notification)
            await session.commit()
        logger.info(f"Created notification with ID: {db_notification.id}")
        return db_notification.id

    async def existing_dedupe_keys(self, keys: list[str]) -> set[str]:
        found: set[str] = set()
        async with self._session_factory() as session:
            for start in range(0, len(keys), DEDUPE_LOOKUP_CHUNK):
                chunk = keys[start:start + DEDUPE_LOOKUP_CHUNK]
                stmt = select(Notification.dedupe_key).where(Notification.dedupe_key.in_(chunk))
                result = await session.execute(stmt)
                found.update(result.scalars().all())
        return found

    async def dispatch_push(self, user_id: str, notification: PushNotification, data: dict[str, str]) -> bool:
        """Returns True when at least one of the user's devices accepted the push."""
        try:
            async with self._session_factory() as session:
                user = await session.get(User, user_id)

            if user is None:
                logger.info(f"User not found for push notification: {user_id}")
                return False
            if user.notifications_enabled is False:
                logger.info(f"Notifications are disabled for user: {user_id}")
                return False

            tokens = await self.token_registry.get_tokens(user_id)
            if not tokens:
                logger.info(f"No push tokens found for user: {user_id}")
                return False

            message = PushMessage(notification=notification, data=data, tokens=tokens)
            response = await self._push_gateway.send_multicast(message)
            logger.info(
                f"Push notification for user {user_id}: {response.success_count}/{len(response.responses)} successful"
            )

            invalid_tokens = []
            for token, result in zip(tokens, response.responses):
                if result.success:
                    continue
                if is_permanent_error(result.error_code):
                    logger.info(f"Removing permanently invalid token: {result.error_code}")
                    invalid_tokens.append(token)
                else:
                    logger.warning(f"Temporary push error: {result.error_code or 'unknown'}")

            if invalid_tokens:
                await self.token_registry.remove_many(user_id, invalid_tokens)

            return response.success_count > 0
        except Exception as e:
            logger.error(f"Error sending push notification to user {user_id}: {e}")
            return False

    def dispatch_in_background(self, user_id: str, notification: PushNotification,
                               data: dict[str, str]) -> asyncio.Task:
        """Fire-and-forget push; the caller does not wait for delivery."""
        task = asyncio.create_task(self.dispatch_push(user_id, notification, data))
        self._pending.add(task)
        task.add_done_callback(self._on_push_done)
        return task

    def _on_push_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background push notification failed: {exc}")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def wait_for_pending(self) -> None:
        """Lets in-flight background pushes finish; their failures are only logged."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
