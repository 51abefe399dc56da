"""Audit sink persisting rule trigger records to the ``automod_audit`` table."""

import json
from typing import Any, Dict, List

from automod.database.db_connection import ConnectionManager, db_connection
from automod.datatypes.discord_datatypes import GuildID
from automod.datatypes.evaluation_datatypes import AuditRecord
from automod.util.logger import get_logger

logger = get_logger("database_audit_log")


class AutoModAuditStore:
    """Stores one row per executed rule."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    async def record(self, record: AuditRecord) -> None:
        async with self._connection.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO automod_audit (
                    rule_id, rule_name, trigger_type, guild_id, channel_id, user_id,
                    trigger_data, action_results, triggered_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.rule_id,
                    record.rule_name,
                    record.trigger_type,
                    int(record.guild_id),
                    int(record.channel_id) if record.channel_id else None,
                    record.user_id,
                    json.dumps(record.trigger_data, default=str),
                    json.dumps(record.action_results, default=str),
                    record.timestamp,
                ),
            )
        logger.debug("[AUDIT] Recorded trigger of rule %s for user %s", record.rule_id, record.user_id)

    async def recent(self, guild_id: GuildID, limit: int = 25) -> List[Dict[str, Any]]:
        """Latest audit entries for a guild, newest first, with JSON columns decoded."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                """
                SELECT rule_id, rule_name, trigger_type, guild_id, channel_id, user_id,
                       trigger_data, action_results, triggered_at
                FROM automod_audit
                WHERE guild_id = ?
                ORDER BY triggered_at DESC, id DESC
                LIMIT ?
                """,
                (guild_id.to_int(), limit),
            )
            rows = await cursor.fetchall()

        entries = []
        for row in rows:
            entry = dict(row)
            entry["trigger_data"] = json.loads(entry["trigger_data"])
            entry["action_results"] = json.loads(entry["action_results"])
            entries.append(entry)
        return entries
