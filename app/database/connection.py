# file: database/connection.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from dotenv import load_dotenv
import logging
import os

from app.database.models import Base

load_dotenv()

logger = logging.getLogger(__name__)


def _database_url() -> str:
    """DATABASE_URL wins; otherwise the URL is assembled from the DB_* variables."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if os.getenv("TESTING"):
        return "sqlite+aiosqlite:///:memory:"

    user, password = os.getenv("DB_USER"), os.getenv("DB_PASSWORD")
    host, port, name = os.getenv("DB_HOST"), os.getenv("DB_PORT"), os.getenv("DB_NAME")
    if not password:
        raise ValueError("DB_PASSWORD environment variable is required")
    logger.info(f"Database URL: postgresql+asyncpg://{user}:****@{host}:{port}/{name}")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


engine = create_async_engine(_database_url(), echo=False)

# Jobs keep using rows after their chunk is committed
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker:
    """Hands the session factory to the job and registry components."""
    return AsyncSessionLocal


async def get_db():
    async with get_session_factory()() as session:
        yield session


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
