"""
Rule store repositories.

``SqliteRuleRepository`` keeps each snapshot section as a JSON document in
the ``automod_state`` table; ``save`` writes all sections in one
transaction, so a reader never sees rules from one save and keyword lists
from another.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict

from automod.database.db_connection import ConnectionManager, db_connection
from automod.util.logger import get_logger

logger = get_logger("rule_repository")

SNAPSHOT_SECTIONS: Dict[str, Any] = {
    "rules": [],
    "keyword_lists": {"whitelist": [], "blacklist": []},
    "guild_configs": {},
    "feedback_data": [],
}


def empty_snapshot() -> Dict[str, Any]:
    return copy.deepcopy(SNAPSHOT_SECTIONS)


class SqliteRuleRepository:
    """Rule repository over the shared aiosqlite connection."""

    def __init__(self, connection: ConnectionManager = db_connection) -> None:
        self._connection = connection

    async def load(self) -> Dict[str, Any]:
        snapshot = empty_snapshot()
        async with self._connection.read() as conn:
            cursor = await conn.execute("SELECT key, value FROM automod_state")
            rows = await cursor.fetchall()

        for row in rows:
            key = row["key"]
            if key not in SNAPSHOT_SECTIONS:
                logger.warning("[RULE REPOSITORY] Ignoring unknown state key %s", key)
                continue
            try:
                snapshot[key] = json.loads(row["value"])
            except json.JSONDecodeError as exc:
                logger.error("[RULE REPOSITORY] Corrupt %s section, using defaults: %s", key, exc)
        return snapshot

    async def save(self, snapshot: Dict[str, Any]) -> None:
        rows = [
            (key, json.dumps(snapshot.get(key, default)))
            for key, default in SNAPSHOT_SECTIONS.items()
        ]
        async with self._connection.transaction() as conn:
            await conn.executemany(
                """
                INSERT INTO automod_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                rows,
            )
        logger.debug("[RULE REPOSITORY] Saved snapshot with %d rules", len(snapshot.get("rules", [])))


class InMemoryRuleRepository:
    """Repository that keeps the last saved snapshot in memory."""

    def __init__(self, snapshot: Dict[str, Any] | None = None) -> None:
        self._snapshot = copy.deepcopy(snapshot) if snapshot is not None else empty_snapshot()
        self.save_count = 0

    async def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._snapshot)

    async def save(self, snapshot: Dict[str, Any]) -> None:
        self._snapshot = copy.deepcopy(snapshot)
        self.save_count += 1
