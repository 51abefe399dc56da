"""
Shared aiosqlite connection for automod state, moderation history and audit rows.

Every store in ``automod.database`` and the SQLite rule repository take a
:class:`ConnectionManager` and never open connections of their own.

    async with connection.transaction() as conn:   # one writer at a time
        await conn.execute("INSERT INTO automod_audit ...")

    async with connection.read() as conn:          # concurrent with writes under WAL
        cursor = await conn.execute("SELECT ... FROM moderation_actions")
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List

import aiosqlite

from automod.util.logger import get_logger

logger = get_logger("database_connection")

DEFAULT_BUSY_TIMEOUT_MS = 5000


def connection_pragmas(busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> List[str]:
    """Pragmas run once on every newly opened connection."""
    return [
        "PRAGMA journal_mode = WAL",
        "PRAGMA synchronous = NORMAL",
        "PRAGMA foreign_keys = ON",
        "PRAGMA temp_store = MEMORY",
        f"PRAGMA busy_timeout = {int(busy_timeout_ms)}",
    ]


class ConnectionManager:
    """
    Holds the single connection the automod stores share.

    Args:
        busy_timeout_ms: How long SQLite waits on a locked database before
            raising, for writers outside this process.
    """

    def __init__(self, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._busy_timeout_ms = busy_timeout_ms
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        return self._path

    async def open(self, path: Path) -> None:
        """Connect to ``path``, creating its parent directories first."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] Already connected to %s; ignoring open(%s)", self._path, path)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        try:
            for pragma in connection_pragmas(self._busy_timeout_ms):
                await conn.execute(pragma)
            await conn.commit()
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        self._path = path
        logger.info("[DB CONNECTION] Connected to %s", path)

    async def close(self) -> None:
        """Fold the WAL back into the main file and disconnect. Safe to call twice."""
        conn, self._conn = self._conn, None
        if conn is None:
            return

        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error as exc:
            logger.warning("[DB CONNECTION] WAL checkpoint on close failed: %s", exc)
        finally:
            await conn.close()
            logger.info("[DB CONNECTION] Disconnected from %s", self._path)

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The open connection.

        Raises:
            RuntimeError: If ``open`` has not been awaited yet.
        """
        if self._conn is None:
            raise RuntimeError("Automod database is not connected; await Database.initialize() first")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive write section; commits on exit, rolls back if the body raises."""
        conn = self.connection
        async with self._write_lock:
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        yield self.connection


db_connection = ConnectionManager()
