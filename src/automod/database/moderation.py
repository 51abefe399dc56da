"""
Moderation action history.

Every enforcement action carried out by the Discord backend is logged here;
the rule engine reads it back as warning counts (``max_warnings`` condition
and warn escalation).
"""

from typing import Any, Dict, List

from automod.database.db_connection import ConnectionManager, db_connection
from automod.datatypes.action_datatypes import ActionType
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.util.logger import get_logger

logger = get_logger("database_moderation")


class ModerationHistoryStore:
    """Implements the moderation-history contract on top of SQLite."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    async def log_action(
        self,
        guild_id: GuildID,
        user_id: UserID,
        action: ActionType,
        reason: str,
        duration_seconds: int = 0,
    ) -> int:
        """
        Log a moderation action.

        Args:
            guild_id: Guild the action happened in.
            user_id: Target of the action.
            action: Type of action performed.
            reason: Reason shown to moderators.
            duration_seconds: Mute/timeout/ban length, 0 when not applicable.

        Returns:
            Row id of the logged action, usable as a case id.
        """
        async with self._connection.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO moderation_actions (guild_id, user_id, action, reason, duration_seconds)
                VALUES (?, ?, ?, ?, ?)
                """,
                (guild_id.to_int(), str(user_id), action.value, reason, duration_seconds),
            )
            case_id = cursor.lastrowid

        logger.debug(
            "[MODERATION] Logged action: %s on user %s in guild %s",
            action.value, user_id, guild_id,
        )
        return case_id

    async def get_warning_count(self, guild_id: GuildID, user_id: UserID) -> int:
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM moderation_actions WHERE guild_id = ? AND user_id = ? AND action = ?",
                (guild_id.to_int(), str(user_id), ActionType.WARN.value),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def get_user_actions(self, guild_id: GuildID, user_id: UserID, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent actions against a user, newest first."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                """
                SELECT id, action, reason, duration_seconds, timestamp
                FROM moderation_actions
                WHERE guild_id = ? AND user_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (guild_id.to_int(), str(user_id), limit),
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]
