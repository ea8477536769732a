"""
Database connection management: one aiosqlite connection for the whole bot.

Reads go straight through :attr:`ConnectionManager.connection` (or the
symmetrical :meth:`ConnectionManager.read` context). Writes go through
:meth:`ConnectionManager.transaction`, which serialises writers behind a
semaphore and commits or rolls back as a unit. Anything that must be atomic
(case id allocation plus the case insert, both sides of a points transfer)
happens inside a single ``transaction()`` block.

Usage
-----
    await db_connection.open(DB_PATH)

    rows = await db_connection.query("SELECT * FROM cases WHERE guild_id = ?", (guild_id,))

    async with db_connection.transaction() as conn:
        await conn.execute("UPDATE points SET vault = vault - ? WHERE user_id = ?", (50, sender))
        await conn.execute("UPDATE points SET vault = vault + ? WHERE user_id = ?", (50, recipient))

    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Iterable, List

import aiosqlite

from ascbot.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
]


class ConnectionManager:
    """
    Owner of the bot's single aiosqlite connection.

    * Reads use ``connection``/``read()``/``query()``; WAL lets them run alongside a writer.
    * Writes use ``async with transaction()``; ``_write_sem`` keeps one writer at a time.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, path: Path) -> None:
        """Open the database file and apply pragmas. Call once at startup."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw connection.

        Raises:
            RuntimeError: If :meth:`open` has not been awaited yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await db_connection.open(path) at startup."
            )
        return self._conn

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager mirroring :meth:`transaction` for read-only work."""
        yield self.connection

    async def query(self, sql: str, params: Iterable[Any] | dict = ()) -> List[aiosqlite.Row]:
        """Run one parameterised statement and return every resulting row."""
        async with self.connection.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction.

        Commits on clean exit and rolls back if the block raises.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise


# Module-level singleton
db_connection = ConnectionManager()
