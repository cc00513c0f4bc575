# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL connection management with asyncpg and connection pooling."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import Settings, get_settings
from .errors import StoreError

logger = logging.getLogger(__name__)


@frozen
class PoolConfig:
    """Immutable pool configuration."""

    dsn: str = field()
    min_connections: int = field(default=2)
    max_connections: int = field(default=10)
    acquire_timeout: float = field(default=10.0)
    command_timeout: float = field(default=30.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolConfig":
        return cls(
            dsn=settings.database_url,
            min_connections=settings.database_pool_min,
            max_connections=settings.database_pool_max,
            acquire_timeout=settings.database_pool_timeout,
            command_timeout=settings.database_command_timeout,
        )


class Database:
    """asyncpg pool wrapper used by the PostgreSQL adapters.

    Connection problems and timeouts surface as ``StoreError`` so the service
    layer can treat them as transient without importing asyncpg.
    """

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig.from_settings(get_settings())
        self._pool: asyncpg.Pool | None = None

    @beartype
    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._config.dsn,
                min_size=self._config.min_connections,
                max_size=self._config.max_connections,
                command_timeout=self._config.command_timeout,
            )
        except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
            raise StoreError(f"Could not connect to database: {e}") from e
        logger.info(
            f"Database pool ready (min={self._config.min_connections}, "
            f"max={self._config.max_connections})"
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._pool is not None

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection, bounded by the acquisition timeout."""
        if self._pool is None:
            raise StoreError("Database pool is not initialized")
        try:
            conn = await self._pool.acquire(timeout=self._config.acquire_timeout)
        except asyncio.TimeoutError as e:
            raise StoreError("Timed out acquiring a database connection") from e
        except (OSError, asyncpg.PostgresError) as e:
            raise StoreError(f"Database unavailable: {e}") from e
        try:
            yield conn
        finally:
            await self._pool.release(conn)

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Create a database transaction context.

        Leaving the block with an exception rolls everything back.
        """
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    @beartype
    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query and return its command tag."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @beartype
    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a query and fetch all results."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @beartype
    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Execute a query and fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @beartype
    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @beartype
    async def health_check(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except (StoreError, asyncpg.PostgresError, OSError):
            return False


@beartype
def affected_rows(command_tag: str) -> int:
    """Row count from an asyncpg command tag such as ``UPDATE 1``."""
    try:
        return int(command_tag.rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0
