"""
Database engine, session factory and connection retry logic
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import pool, text
from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.logging import log


class DatabaseConfig:
    """Database configuration with environment-based settings"""

    def __init__(self, settings: Settings):
        self.database_url = settings.database_url
        self.pool_size = settings.db_pool_size
        self.max_overflow = settings.db_max_overflow
        self.pool_pre_ping = settings.db_pool_pre_ping
        self.echo = settings.db_echo
        self.app_name = settings.app_name

        # Advanced pool settings
        self.pool_recycle = 3600  # Recycle connections after 1 hour
        self.pool_timeout = 30  # Pool timeout in seconds

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def async_url(self) -> str:
        """Convert sync URL to async URL"""
        url = str(self.database_url)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    @property
    def async_engine_kwargs(self) -> dict:
        """Get async engine configuration"""
        if self.is_sqlite:
            kwargs = {"echo": self.echo, "connect_args": {"check_same_thread": False}}
            if self.async_url.rstrip("/").endswith(":memory:") or self.async_url.endswith("://"):
                # In-memory databases live on a single shared connection
                kwargs["poolclass"] = pool.StaticPool
            return kwargs
        return {
            "echo": self.echo,
            "pool_pre_ping": self.pool_pre_ping,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_recycle": self.pool_recycle,
            "pool_timeout": self.pool_timeout,
            "connect_args": {"server_settings": {"application_name": self.app_name, "jit": "off"}},
        }


def create_engine_for(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database"""
    db_config = DatabaseConfig(settings)
    return create_async_engine(db_config.async_url, **db_config.async_engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


# Retry decorator for database operations
db_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
    retry=retry_if_exception_type((OperationalError, DisconnectionError)),
)


class DatabaseSessionManager:
    """Manages database session lifecycle with proper error handling"""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_engine_for(self._settings or get_settings())
            self._sessionmaker = create_session_factory(self._engine)
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            self._sessionmaker = create_session_factory(self.engine)
        return self._sessionmaker

    @db_retry
    async def init(self):
        """Initialize the database connection"""
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        log.info("Database connection established successfully")

    async def close(self):
        """Close database connection"""
        if self._engine is None:
            return

        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        log.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope with proper error handling"""
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                log.error(f"Database session error: {e}")
                raise


# Global session manager instance
db_manager = DatabaseSessionManager()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Async session dependency with proper lifecycle management"""
    async with db_manager.session() as session:
        yield session


async def init_db(engine: Optional[AsyncEngine] = None):
    """Create all tables (Alembic revisions describe the same schema)"""
    # Import models so they register with the metadata
    from catalog_sync import models  # noqa: F401

    target = engine or db_manager.engine
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    log.info("Database tables created")


async def check_database_health(session: AsyncSession) -> dict:
    """Check database health and connection status"""
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        return {"status": "healthy"}
    except Exception as e:
        log.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


__all__ = [
    "DatabaseConfig",
    "DatabaseSessionManager",
    "create_engine_for",
    "create_session_factory",
    "db_manager",
    "db_retry",
    "get_async_session",
    "init_db",
    "check_database_health",
]
