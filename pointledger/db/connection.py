"""
Async database access for the ledger (SQLAlchemy 2.0).

PostgreSQL through asyncpg in production; SQLite through aiosqlite for
local runs and tests. One engine is kept per event loop, so the API loop
never borrows connections opened on another loop.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Dict, Optional

from dotenv import load_dotenv
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)

from pointledger.utils.env_utils import parse_bool_env, parse_int_env, parse_str_env

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql+asyncpg://postgres:@localhost:5432/point_ledger"


class DatabaseConfig:
    """Connection settings read from DATABASE_URL and DB_* variables."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or parse_str_env("DATABASE_URL", DEFAULT_DATABASE_URL)

        # Pool sizing only applies to PostgreSQL
        self.pool_size = parse_int_env("DB_POOL_SIZE", 5)
        self.max_overflow = parse_int_env("DB_MAX_OVERFLOW", 10)
        self.pool_timeout = parse_int_env("DB_POOL_TIMEOUT", 30)
        self.pool_recycle = parse_int_env("DB_POOL_RECYCLE", 1800)

        self.echo_sql = parse_bool_env("DB_ECHO", False)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def safe_url(self) -> str:
        """The URL with its password replaced by ****."""
        if "://" not in self.database_url or "@" not in self.database_url:
            return self.database_url
        scheme, rest = self.database_url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        return f"{scheme}://{credentials.split(':', 1)[0]}:****@{host}"

    def engine_options(self) -> Dict[str, Any]:
        if self.is_sqlite:
            return {"echo": self.echo_sql}
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": True,
            "echo": self.echo_sql,
        }


@dataclass
class _LoopBinding:
    engine: AsyncEngine
    sessions: async_sessionmaker


class DatabaseManager:
    """
    Process-wide owner of the ledger's engines.

    Every module shares the `db` instance below. `close_all()` puts the
    manager in shutdown mode; `configure()` leaves it.
    """

    _instance: Optional["DatabaseManager"] = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.config = DatabaseConfig()
            instance._bindings = {}
            instance._shutdown = False
            cls._instance = instance
        return cls._instance

    def configure(self, database_url: Optional[str] = None) -> None:
        """Reload settings, optionally overriding the URL. Call close_all() first."""
        self.config = DatabaseConfig(database_url)
        self._shutdown = False

    @staticmethod
    def _loop_key() -> int:
        try:
            return id(asyncio.get_running_loop())
        except RuntimeError:
            return 0

    def _bind_current_loop(self) -> Optional[_LoopBinding]:
        key = self._loop_key()
        binding = self._bindings.get(key)
        if binding is not None or self._shutdown:
            return binding

        logger.info(f"Creating database engine: {self.config.safe_url}")
        engine = create_async_engine(self.config.database_url, **self.config.engine_options())
        if self.config.is_sqlite:
            _use_immediate_transactions(engine)

        binding = _LoopBinding(
            engine=engine,
            sessions=async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            ),
        )
        self._bindings[key] = binding
        return binding

    async def get_engine_async(self) -> Optional[AsyncEngine]:
        """Engine for the running loop; None once close_all() has run."""
        binding = self._bind_current_loop()
        return binding.engine if binding else None

    async def test_connection(self, timeout: float = 15.0) -> bool:
        """Run SELECT 1 within `timeout` seconds."""
        engine = await self.get_engine_async()
        if engine is None:
            logger.warning("No database engine available")
            return False

        try:
            async with asyncio.timeout(timeout):
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
            return True
        except TimeoutError:
            logger.error(f"Database connection test timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[Optional[AsyncSession], None]:
        """
        One session, one transaction.

        Commits when the block exits normally. Any exception, including
        task cancellation, rolls the transaction back before propagating.
        Yields None while the manager is shut down.
        """
        binding = self._bind_current_loop()
        if binding is None:
            yield None
            return

        session = binding.sessions()
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_tables(self) -> None:
        """Create the ledger schema (local runs and tests)."""
        from .models import Base

        engine = await self.get_engine_async()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Ledger tables created")

    async def drop_tables(self) -> None:
        from .models import Base

        engine = await self.get_engine_async()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Ledger tables dropped")

    def get_pool_stats(self) -> Dict[str, Any]:
        """Pool status per event loop, reported by the health endpoint."""
        return {
            "pools_count": len(self._bindings),
            "shutdown_mode": self._shutdown,
            "pools": {
                str(key): {"status": binding.engine.pool.status()}
                for key, binding in self._bindings.items()
            },
        }

    async def close_all(self) -> None:
        """
        Dispose every engine and enter shutdown mode.

        Only the running loop's engine can be awaited. Pools opened on other
        loops are disposed synchronously.
        """
        self._shutdown = True
        current = self._loop_key()

        for key, binding in list(self._bindings.items()):
            try:
                if key == current:
                    await binding.engine.dispose()
                else:
                    binding.engine.sync_engine.pool.dispose()
            except Exception as e:
                logger.debug(f"Error disposing engine for loop {key}: {e}")

        self._bindings.clear()
        logger.info("All database connections closed")


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Take SQLite's write lock when each transaction begins.

    SQLite has no SELECT ... FOR UPDATE, so read-check-write transactions are
    serialized by BEGIN IMMEDIATE instead.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


db = DatabaseManager()


__all__ = [
    "DatabaseConfig",
    "DatabaseManager",
    "db",
]
