from typing import Dict, AsyncGenerator
from contextlib import asynccontextmanager
import urllib.parse
import asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from pkg.db_util.types import PostgresConfig
from pkg.db_util.sql_alchemy.declarative_base import Base


# One engine and sessionmaker per database URL, shared by every connection object
_engine_cache: Dict[str, AsyncEngine] = {}
_sessionmaker_cache: Dict[str, async_sessionmaker] = {}
_connection_instances: Dict[str, "PostgresConnection"] = {}


def build_db_url(db_config: PostgresConfig) -> str:
    """asyncpg URL for the config; raises ValueError when the host is missing."""
    if not db_config.host:
        raise ValueError("Database host configuration is missing.")
    password = urllib.parse.quote_plus(db_config.password) if db_config.password else ""
    return (
        f"postgresql+asyncpg://{db_config.username}:{password}"
        f"@{db_config.host}:{db_config.port}/{db_config.database}"
    )


class PostgresConnection:
    """Async Postgres access: cached engine, retrying creation, auto-committing sessions."""

    def __new__(cls, db_config: PostgresConfig, logger):
        db_url = build_db_url(db_config)
        existing = _connection_instances.get(db_url)
        if existing is not None:
            existing.logger.debug("Reusing existing PostgresConnection instance")
            return existing

        instance = super().__new__(cls)
        instance._db_url = db_url
        _connection_instances[db_url] = instance
        return instance

    def __init__(self, db_config: PostgresConfig, logger):
        if hasattr(self, "_initialized"):
            return
        self.logger = logger
        self.db_config = db_config
        self._initialized = True

    def get_db_url(self) -> str:
        return self._db_url

    async def get_engine(self, max_retries: int = 3, initial_delay: float = 2.0) -> AsyncEngine:
        """Get or create the engine, retrying with exponential backoff."""
        if self._db_url in _engine_cache:
            return _engine_cache[self._db_url]

        self.logger.info("Database engine not initialized. Creating new engine...")
        pool_opts = {
            "pool_size": self.db_config.pool_size,
            "max_overflow": self.db_config.max_overflow,
            "pool_timeout": self.db_config.pool_timeout,
            "pool_recycle": self.db_config.pool_recycle,
            "pool_pre_ping": True,
        }

        last_error = None
        for attempt in range(max_retries):
            try:
                engine = create_async_engine(
                    self._db_url,
                    echo=False,
                    connect_args={
                        "timeout": 15,
                        "command_timeout": 15,
                        "server_settings": {"application_name": self.db_config.application_name},
                    },
                    **pool_opts,
                )

                self.logger.info(f"Testing database connection (attempt {attempt + 1}/{max_retries})...")
                async with engine.connect() as conn:
                    await conn.exec_driver_sql("SELECT 1")

                _engine_cache[self._db_url] = engine
                _sessionmaker_cache[self._db_url] = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )
                self.logger.info("Async engine and sessionmaker created and cached.")
                return engine

            except (SQLAlchemyError, OSError, ConnectionError) as e:
                last_error = e
                delay = initial_delay * (2 ** attempt)
                if attempt < max_retries - 1:
                    self.logger.warning(
                        f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    self.logger.error(f"Failed to create database engine after {max_retries} attempts: {e}", exc_info=True)

        raise ConnectionError(f"Could not create database engine after {max_retries} attempts: {last_error}") from last_error

    async def create_tables(self) -> None:
        """Create any missing tables registered on the declarative Base."""
        engine = await self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.logger.info("Database tables verified")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on any error."""
        await self.get_engine()
        sessionmaker = _sessionmaker_cache.get(self._db_url)
        if sessionmaker is None:
            raise ConnectionError("Database engine/sessionmaker not initialized.")

        session: AsyncSession = sessionmaker()
        try:
            yield session
            if session.in_transaction():
                await session.commit()
        except Exception as e:
            self.logger.error(f"Error in database session: {e}. Rolling back.")
            if session.in_transaction():
                await session.rollback()
            raise
        finally:
            await session.close()

    async def close_engine(self):
        engine = _engine_cache.pop(self._db_url, None)
        _sessionmaker_cache.pop(self._db_url, None)
        if engine is None:
            self.logger.info("Database engine was not initialized, no need to close.")
            return
        await engine.dispose()
        self.logger.info("Database engine closed and removed from cache.")


async def close_all_engines():
    """Dispose every cached engine. Used on application shutdown."""
    for db_url in list(_engine_cache):
        engine = _engine_cache.pop(db_url)
        _sessionmaker_cache.pop(db_url, None)
        await engine.dispose()
