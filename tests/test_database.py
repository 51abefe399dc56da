"""Tests for the SQLite layer: connection, schema, stores and the rule repository."""

import pytest
import pytest_asyncio

from automod.database.database import Database
from automod.database.db_connection import ConnectionManager, connection_pragmas
from automod.datatypes.action_datatypes import ActionType
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.datatypes.evaluation_datatypes import AuditRecord
from automod.repositories.rule_repository import SqliteRuleRepository, empty_snapshot
from automod.store.rule_store import RuleStore

from fakes import CHANNEL, GUILD, OTHER_GUILD, USER, rule_options


@pytest_asyncio.fixture
async def database(tmp_path):
    """A freshly initialized database in a temporary directory."""
    db = Database(ConnectionManager())
    assert await db.initialize(tmp_path / "nested" / "automod.db")
    yield db
    await db.shutdown()


def audit_record(rule_id: str = "rule_1", timestamp: int = 1000, guild_id: str = GUILD) -> AuditRecord:
    return AuditRecord(
        rule_id=rule_id,
        rule_name="No invites",
        trigger_type="regex_match",
        guild_id=guild_id,
        user_id=USER,
        channel_id=CHANNEL,
        trigger_data={"match": "discord.gg/abc"},
        action_results=[{"action": "delete", "success": True, "detail": {"deleted": True}}],
        timestamp=timestamp,
    )


class TestConnectionManager:
    """Tests for ConnectionManager."""

    def test_connection_before_open_raises(self):
        with pytest.raises(RuntimeError):
            ConnectionManager().connection

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, database):
        connection = database.connection

        with pytest.raises(RuntimeError):
            async with connection.transaction() as conn:
                await conn.execute("INSERT INTO automod_state (key, value) VALUES ('rules', '[]')")
                raise RuntimeError("abort")

        async with connection.read() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM automod_state")
            row = await cursor.fetchone()
        assert row[0] == 0

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tmp_path):
        manager = ConnectionManager()
        await manager.open(tmp_path / "a.db")

        await manager.close()
        await manager.close()

        assert manager.is_open is False

    @pytest.mark.asyncio
    async def test_open_applies_busy_timeout_and_wal(self, tmp_path):
        manager = ConnectionManager(busy_timeout_ms=1234)
        await manager.open(tmp_path / "state" / "automod.db")
        try:
            async with manager.read() as conn:
                timeout = await (await conn.execute("PRAGMA busy_timeout")).fetchone()
                journal = await (await conn.execute("PRAGMA journal_mode")).fetchone()
            assert timeout[0] == 1234
            assert journal[0].lower() == "wal"
            assert manager.path == tmp_path / "state" / "automod.db"
        finally:
            await manager.close()

    def test_connection_pragmas(self):
        assert connection_pragmas(250)[-1] == "PRAGMA busy_timeout = 250"


class TestSchema:
    """Tests for schema creation."""

    @pytest.mark.asyncio
    async def test_tables_exist(self, database):
        async with database.connection.read() as conn:
            cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            tables = {row[0] for row in await cursor.fetchall()}

        assert {"automod_state", "moderation_actions", "automod_audit", "schema_version"} <= tables

    @pytest.mark.asyncio
    async def test_initialize_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        db = Database(ConnectionManager())

        assert await db.initialize(blocker / "automod.db") is False


class TestModerationHistoryStore:
    """Tests for the moderation action history."""

    @pytest.mark.asyncio
    async def test_warning_count_only_counts_warnings_in_guild(self, database):
        history = database.moderation_history
        guild, user = GuildID(GUILD), UserID(USER)

        await history.log_action(guild, user, ActionType.WARN, "spam")
        await history.log_action(guild, user, ActionType.WARN, "spam again")
        await history.log_action(guild, user, ActionType.KICK, "spam")
        await history.log_action(GuildID(OTHER_GUILD), user, ActionType.WARN, "elsewhere")

        assert await history.get_warning_count(guild, user) == 2
        assert await history.get_warning_count(guild, UserID(1)) == 0

    @pytest.mark.asyncio
    async def test_log_action_returns_case_ids(self, database):
        history = database.moderation_history
        guild, user = GuildID(GUILD), UserID(USER)

        first = await history.log_action(guild, user, ActionType.MUTE, "flood", 600)
        second = await history.log_action(guild, user, ActionType.BAN, "raid")

        assert second > first
        actions = await history.get_user_actions(guild, user)
        assert [a["action"] for a in actions] == ["ban", "mute"]
        assert actions[1]["duration_seconds"] == 600


class TestAutoModAuditStore:
    """Tests for the audit log store."""

    @pytest.mark.asyncio
    async def test_record_and_read_back(self, database):
        audit = database.audit_log

        await audit.record(audit_record("rule_1", timestamp=1000))
        await audit.record(audit_record("rule_2", timestamp=2000))
        await audit.record(audit_record("rule_3", guild_id=OTHER_GUILD))

        entries = await audit.recent(GuildID(GUILD))

        assert [e["rule_id"] for e in entries] == ["rule_2", "rule_1"]
        assert entries[0]["trigger_data"] == {"match": "discord.gg/abc"}
        assert entries[0]["action_results"][0]["success"] is True
        assert entries[0]["channel_id"] == int(CHANNEL)

    @pytest.mark.asyncio
    async def test_record_without_channel(self, database):
        record = audit_record()
        record.channel_id = None

        await database.audit_log.record(record)

        entries = await database.audit_log.recent(GuildID(GUILD), limit=1)
        assert entries[0]["channel_id"] is None


class TestSqliteRuleRepository:
    """Tests for the rule snapshot repository."""

    @pytest.mark.asyncio
    async def test_empty_database_loads_defaults(self, database):
        repository = SqliteRuleRepository(database.connection)

        assert await repository.load() == empty_snapshot()

    @pytest.mark.asyncio
    async def test_save_overwrites_previous_snapshot(self, database):
        repository = SqliteRuleRepository(database.connection)
        snapshot = empty_snapshot()
        snapshot["keyword_lists"]["blacklist"] = ["scam"]

        await repository.save(snapshot)
        snapshot["keyword_lists"]["blacklist"] = ["phish"]
        await repository.save(snapshot)

        loaded = await repository.load()
        assert loaded["keyword_lists"]["blacklist"] == ["phish"]

    @pytest.mark.asyncio
    async def test_corrupt_section_falls_back_to_default(self, database):
        async with database.connection.transaction() as conn:
            await conn.execute("INSERT INTO automod_state (key, value) VALUES ('rules', '{not json')")
            await conn.execute("INSERT INTO automod_state (key, value) VALUES ('mystery', '1')")

        loaded = await SqliteRuleRepository(database.connection).load()

        assert loaded["rules"] == []
        assert "mystery" not in loaded

    @pytest.mark.asyncio
    async def test_rule_store_survives_restart(self, database):
        repository = SqliteRuleRepository(database.connection)
        store = RuleStore(repository, persist_debounce_seconds=60)
        rule = store.create(rule_options({"type": "regex_match", "patterns": [r"discord\.gg/\w+"]}, [{"type": "delete"}]))
        store.configure_guild(GUILD, {"ai_moderation_enabled": True})
        await store.shutdown()

        restored = RuleStore(repository)
        await restored.initialize()

        assert restored.get(rule.id) == rule
        assert restored.get_guild_config(GUILD)["ai_moderation_enabled"] is True
