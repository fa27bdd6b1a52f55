"""
Database Service - Core Infrastructure Layer

Purpose
-------
Async engine and session management for the external data layer that backs
the metrics accessors and the code-cleanup service. Beacon owns no schema;
it only reads aggregates and deletes expired redeem codes.

Responsibilities
----------------
- Initialize and dispose a single AsyncEngine
- Provide async context managers for sessions and atomic transactions
- Expose a lightweight health check

Non-Responsibilities
--------------------
- Schema management or migrations (owned by the data layer)
- Query definitions (see ``src.core.database.queries``)

Architecture Notes
------------------
- Classmethod singleton, no instantiation.
- Initialization is idempotent and guarded by an async lock.
- Without DATABASE_URL the service is simply never initialized and the
  stats accessors are reported as unavailable.

Usage Example
-------------
>>> await DatabaseService.initialize("sqlite+aiosqlite:///beacon.db")
>>> async with DatabaseService.get_session() as session:
...     await session.execute(text("SELECT 1"))
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config.config import Config
from src.core.exceptions import DatabaseError
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before initialize()."""


def _url_scheme(url: str) -> str:
    return url.split(":", 1)[0] if ":" in url else "unknown"


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(url) -> create engine and session factory
    - shutdown() -> dispose engine
    - health_check() -> ``SELECT 1`` reachability probe
    - get_session() -> session without automatic commit
    - get_transaction() -> session committed on success, rolled back on error
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the engine for ``url`` (default: Config.DATABASE_URL).

        Idempotent: a second call is a no-op.

        Raises
        ------
        DatabaseError
            If the URL is empty or the engine cannot be created.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            database_url = url or Config.DATABASE_URL
            if not database_url:
                raise DatabaseError(
                    "initialize", ValueError("DATABASE_URL must be a non-empty string")
                )

            logger.info(
                "Initializing DatabaseService",
                extra={"url_scheme": _url_scheme(database_url)},
            )

            engine_kwargs: dict[str, Any] = {"echo": Config.DATABASE_ECHO}
            if database_url.startswith("postgresql"):
                engine_kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_recycle": 1800})

            try:
                cls._engine = create_async_engine(database_url, **engine_kwargs)
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseError("initialize", exc) from exc

            cls._session_factory = async_sessionmaker(
                bind=cls._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            logger.info("✓ DatabaseService initialized")

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._lock():
            if cls._engine is None:
                return

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Run ``SELECT 1``. Never raises; returns False on any failure.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True

        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": round((time.perf_counter() - start) * 1000.0, 2)},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> async_sessionmaker[AsyncSession]:
        if cls._session_factory is None:
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )
        return cls._session_factory

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session for reads; closed on exit, never committed."""
        factory = cls._ensure_initialized()
        async with factory() as session:
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in a transaction.

        Commits on success; rolls back and re-raises on any exception.
        """
        factory = cls._ensure_initialized()
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Database transaction rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise
