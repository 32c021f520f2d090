"""Async SQLite database manager for the swap checkpoint.

Uses aiosqlite for non-blocking database operations with WAL mode.
"""

import os
from typing import Self

import aiosqlite

from galactic.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS swaps (
    block INTEGER PRIMARY KEY,
    timestamp INTEGER NOT NULL DEFAULT 0,
    date TEXT NOT NULL DEFAULT '',
    tx_hash TEXT NOT NULL,
    price TEXT NOT NULL,
    volume TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS completed_chunks (
    start_block INTEGER NOT NULL,
    end_block INTEGER NOT NULL,
    completed_at INTEGER NOT NULL,
    PRIMARY KEY (start_block, end_block)
);
"""


class CheckpointDatabase:
    """Async SQLite connection manager for indexing checkpoints.

    Usage:
        async with CheckpointDatabase("data/swaps.db") as database:
            await database.db.execute("SELECT ...")
    """

    def __init__(self, db_path: str = "data/swaps.db") -> None:
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

    @property
    def db_path(self) -> str:
        return self._db_path

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        try:
            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")

            await self._connection.executescript(_CREATE_TABLES_SQL)
            await self._connection.commit()
            await self._ensure_schema_version()
        except Exception:
            # Never leave a half-initialised connection behind
            await self._connection.close()
            self._connection = None
            raise

        logger.info("checkpoint_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("checkpoint_db_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
