"""
Database schema initialization.

Creates the tables used by the rule repository, the moderation history and
the audit log, plus schema version tracking.
"""

import aiosqlite
from automod.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables and indexes; every statement is idempotent."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes and record the schema version.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Rule store snapshot, one JSON document per section
        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                user_id TEXT NOT NULL,
                action TEXT NOT NULL,
                reason TEXT NOT NULL,
                duration_seconds INTEGER NOT NULL DEFAULT 0,
                timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_audit (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                rule_id TEXT NOT NULL,
                rule_name TEXT NOT NULL,
                trigger_type TEXT NOT NULL,
                guild_id INTEGER NOT NULL,
                channel_id INTEGER,
                user_id TEXT NOT NULL,
                trigger_data TEXT NOT NULL DEFAULT '{}',
                action_results TEXT NOT NULL DEFAULT '[]',
                triggered_at INTEGER NOT NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_moderation_actions_user "
            "ON moderation_actions(guild_id, user_id, action)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_automod_audit_guild "
            "ON automod_audit(guild_id, triggered_at DESC)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_automod_audit_rule "
            "ON automod_audit(rule_id, triggered_at DESC)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
