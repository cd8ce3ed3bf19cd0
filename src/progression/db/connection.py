"""Database connection management"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from progression.config import DATABASE_URL, STORAGE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS avatars (
    user_id     TEXT PRIMARY KEY,
    data        JSONB NOT NULL,
    version     INTEGER NOT NULL,
    total_xp    BIGINT NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_avatars_total_xp ON avatars (total_xp DESC, user_id);

CREATE TABLE IF NOT EXISTS xp_transactions (
    id          BIGSERIAL PRIMARY KEY,
    user_id     TEXT NOT NULL REFERENCES avatars (user_id),
    amount      INTEGER NOT NULL CHECK (amount > 0),
    skill       TEXT,
    source      TEXT NOT NULL,
    reason      TEXT NOT NULL DEFAULT '',
    awarded_at  TIMESTAMPTZ NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_xp_transactions_user ON xp_transactions (user_id, awarded_at DESC);
"""


class Database:
    """Database connection pool manager"""

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    async def init_pool(self) -> None:
        """Initialize connection pool"""
        logger.info("Initializing database connection pool")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=2,
            max_size=10,
            timeout=STORAGE_TIMEOUT_SECONDS,
            open=False,
        )
        await self._pool.open()

    async def close_pool(self) -> None:
        """Close connection pool"""
        if self._pool:
            logger.info("Closing database connection pool")
            await self._pool.close()
            self._pool = None

    async def init_schema(self) -> None:
        """Create progression tables if they do not exist"""
        async with self.connection() as conn:
            await conn.execute(SCHEMA)
            await conn.commit()
        logger.info("Progression schema ready")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Get database connection from pool"""
        if not self._pool:
            raise RuntimeError("Database pool not initialized")

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn


# Global database instance
db = Database()
