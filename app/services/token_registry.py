# file: services/token_registry.py

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database.models import DeviceToken, User
from app.models.device_token import TokenMetadata

logger = logging.getLogger(__name__)

# Max number of push tokens kept per user
MAX_FCM_TOKENS = 5


def _recency(token: DeviceToken) -> tuple[datetime, datetime]:
    # Most recent use first, creation time breaks ties
    return (token.last_used or token.created_at, token.created_at)


class DeviceTokenRegistry:
    """Per-user push tokens and their device metadata, persisted in ``device_tokens``."""

    def __init__(self, session_factory: async_sessionmaker, max_tokens: int = MAX_FCM_TOKENS):
        self._session_factory = session_factory
        self.max_tokens = max_tokens

    async def list_tokens(self, user_id: str) -> list[DeviceToken]:
        async with self._session_factory() as session:
            stmt = (
                select(DeviceToken)
                .where(DeviceToken.user_id == user_id)
                .order_by(DeviceToken.created_at, DeviceToken.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_tokens(self, user_id: str) -> list[str]:
        return [t.token for t in await self.list_tokens(user_id)]

    async def register(self, user_id: str, token: str, metadata: Optional[TokenMetadata] = None,
                       now: Optional[datetime] = None) -> DeviceToken:
        """
        Upserts ``token`` into the user's token set. A known token only has its
        usage stamp refreshed; a new token past the per-user limit evicts the
        least recently used ones.
        """
        now = now or datetime.now()
        metadata = metadata or TokenMetadata()

        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                user = User(id=user_id, notifications_enabled=True)
                session.add(user)
            user.last_token_update = now

            stmt = select(DeviceToken).where(DeviceToken.user_id == user_id, DeviceToken.token == token)
            existing = (await session.execute(stmt)).scalars().first()

            if existing:
                existing.last_used = now
                existing.interaction_count = (existing.interaction_count or 0) + 1
                if metadata.device_name:
                    existing.device_name = metadata.device_name
                await session.commit()
                logger.info(f"Updated existing push token for {existing.device_name or 'unknown device'}")
                return existing

            device_token = DeviceToken(
                user_id=user_id,
                token=token,
                device_name=metadata.device_name,
                device_type=metadata.device_type,
                user_agent=metadata.user_agent,
                created_at=now,
                last_used=now,
                interaction_count=1,
            )
            session.add(device_token)
            await session.commit()
            token_count = await self._count(session, user_id)

        logger.info(f"Added new push token for {metadata.device_name or 'unknown device'} (total: {token_count})")
        if token_count > self.max_tokens:
            await self.cleanup(user_id, self.max_tokens, now=now)
        return device_token

    async def remove(self, user_id: str, token: str, now: Optional[datetime] = None) -> bool:
        return await self.remove_many(user_id, [token], now=now) > 0

    async def remove_many(self, user_id: str, tokens: Iterable[str], now: Optional[datetime] = None) -> int:
        """Removes the given tokens, with their metadata, in a single statement."""
        tokens = list(dict.fromkeys(tokens))
        if not tokens:
            return 0

        async with self._session_factory() as session:
            result = await session.execute(
                delete(DeviceToken).where(DeviceToken.user_id == user_id, DeviceToken.token.in_(tokens))
            )
            removed = result.rowcount or 0
            if removed:
                await self._touch_user(session, user_id, now or datetime.now())
            await session.commit()

        if removed:
            logger.info(f"Removed {removed} push token(s) for user: {user_id}")
        else:
            logger.warning(f"No matching push tokens to remove for user: {user_id}")
        return removed

    async def cleanup(self, user_id: str, max_tokens: int = MAX_FCM_TOKENS,
                      now: Optional[datetime] = None) -> list[str]:
        """Keeps the ``max_tokens`` most recently used tokens and removes the rest."""
        if max_tokens < 0:
            raise ValueError("max_tokens cannot be negative")

        tokens = await self.list_tokens(user_id)
        if len(tokens) <= max_tokens:
            return []

        ranked = sorted(tokens, key=_recency, reverse=True)
        to_remove = [t.token for t in ranked[max_tokens:]]
        await self.remove_many(user_id, to_remove, now=now)
        logger.info(f"Cleaned up {len(to_remove)} tokens. Remaining: {max_tokens}")
        return to_remove

    async def _count(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.count()).select_from(DeviceToken).where(DeviceToken.user_id == user_id)
        return (await session.execute(stmt)).scalar_one()

    async def _touch_user(self, session: AsyncSession, user_id: str, now: datetime) -> None:
        user = await session.get(User, user_id)
        if user is not None:
            user.last_token_update = now
