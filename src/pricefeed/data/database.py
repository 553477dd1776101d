"""Async SQLite database manager for the best-effort price snapshot cache.

Uses aiosqlite for non-blocking database operations with WAL mode so that
snapshot writes never stall readers.
"""

import os
from typing import Self

import aiosqlite

from pricefeed.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS price_snapshots (
    asset TEXT PRIMARY KEY,
    price TEXT NOT NULL,
    observed_at REAL NOT NULL,
    saved_at REAL NOT NULL
);
"""


class PriceDatabase:
    """Async SQLite connection manager for price snapshots.

    Usage:
        async with PriceDatabase("data/prices.db") as database:
            await database.db.execute("SELECT ...")
    """

    def __init__(self, db_path: str = "data/prices.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Open the connection, configure pragmas and create the schema.

        Creates the parent directory if it does not exist. ":memory:" is
        accepted for tests.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        cursor = await self._connection.execute("SELECT version FROM schema_version LIMIT 1")
        if await cursor.fetchone() is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
        await self._connection.commit()

        logger.info("price_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("price_db_closed", db_path=self._db_path)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
