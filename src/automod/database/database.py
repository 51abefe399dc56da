"""
Database lifecycle coordinator.

Opens the shared connection, creates the schema, and exposes the stores
built on top of it.
"""

from __future__ import annotations

from pathlib import Path

from automod.database.audit_log import AutoModAuditStore
from automod.database.db_connection import ConnectionManager, db_connection
from automod.database.db_schema import SchemaManager
from automod.database.moderation import ModerationHistoryStore
from automod.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/automod.db").resolve()


class Database:
    """Owns startup and shutdown of the SQLite layer."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection
        self.moderation_history = ModerationHistoryStore(connection)
        self.audit_log = AutoModAuditStore(connection)

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    async def initialize(self, db_path: Path = DB_PATH) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True on success, False if the database could not be initialized.
        """
        try:
            await self._connection.open(db_path)
            await SchemaManager.initialize_schema(self._connection.connection)
        except Exception:
            logger.exception("[DATABASE] Failed to initialize database at %s", db_path)
            return False
        logger.info("[DATABASE] Database ready at %s", db_path)
        return True

    async def shutdown(self) -> None:
        await self._connection.close()


database = Database()
