import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from storefront.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Database:
    """Owns the async engine and its connection pool for the lifetime of the process."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    def connect(self, url: str, **engine_options):
        if self.engine is not None:
            return
        self.engine = create_async_engine(url, **engine_options)
        # Attributes stay loaded after commit; async sessions cannot lazy-load them back.
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        logger.info(f"[Database] Engine created for {self.engine.url.render_as_string(hide_password=True)}")

    async def disconnect(self):
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.session_factory = None
        logger.info("[Database] Engine disposed.")

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()

database = Database()

def connect_database():
    database.connect(
        settings.async_database_url,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        echo=settings.DB_ECHO,
    )

async def get_db() -> AsyncIterator[AsyncSession]:
    async with database.session() as session:
        yield session
