"""Tests for the py-cord enforcement backend."""

import datetime
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from automod.datatypes.action_datatypes import ActionType
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.enforcement.discord_backend import (
    AUDIT_REASON_PREFIX,
    DEFAULT_MUTE_SECONDS,
    MAX_TIMEOUT_SECONDS,
    DiscordEnforcementBackend,
)

from fakes import GUILD, USER


def http_error(cls, status: int, text: str):
    return cls(MagicMock(status=status, reason=text), text)


@pytest.fixture
def member():
    member = MagicMock(spec=discord.Member)
    member.id = int(USER)
    member.send = AsyncMock()
    member.timeout = AsyncMock()
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    return member


@pytest.fixture
def guild(member):
    guild = MagicMock()
    guild.id = int(GUILD)
    guild.name = "Test Guild"
    guild.get_member.return_value = member
    guild.fetch_member = AsyncMock(return_value=member)
    guild.kick = AsyncMock()
    guild.ban = AsyncMock()
    guild.get_role.return_value = MagicMock(id=77)
    return guild


@pytest.fixture
def history():
    history = MagicMock()
    history.log_action = AsyncMock(return_value=42)
    return history


@pytest.fixture
def backend(guild, history):
    bot = MagicMock()
    bot.get_guild.return_value = guild
    return DiscordEnforcementBackend(bot, history)


GUILD_ID, USER_ID = GuildID(GUILD), UserID(USER)


class TestResolution:
    """Guild and member lookup failures."""

    @pytest.mark.asyncio
    async def test_unknown_guild(self, backend):
        backend._bot.get_guild.return_value = None

        result = await backend.kick(GUILD_ID, USER_ID, reason="spam")

        assert result.success is False
        assert "not available" in result.error

    @pytest.mark.asyncio
    async def test_member_fetched_when_not_cached(self, backend, guild, member):
        guild.get_member.return_value = None

        result = await backend.kick(GUILD_ID, USER_ID, reason="spam")

        guild.fetch_member.assert_awaited_once_with(int(USER))
        assert result.success is True

    @pytest.mark.asyncio
    async def test_member_gone(self, backend, guild):
        guild.get_member.return_value = None
        guild.fetch_member.side_effect = http_error(discord.NotFound, 404, "Unknown Member")

        result = await backend.warn(GUILD_ID, USER_ID, reason="spam")

        assert result.success is False
        assert "not found" in result.error


class TestActions:
    """Individual enforcement actions."""

    @pytest.mark.asyncio
    async def test_warn_logs_and_dms(self, backend, member, history):
        result = await backend.warn(GUILD_ID, USER_ID, reason="spam")

        assert result.success is True
        assert result.case_id == "42"
        history.log_action.assert_awaited_once_with(GUILD_ID, USER_ID, ActionType.WARN, "spam", 0)
        assert "Test Guild" in member.send.await_args.args[0]

    @pytest.mark.asyncio
    async def test_warn_with_closed_dms_still_succeeds(self, backend, member):
        member.send.side_effect = http_error(discord.Forbidden, 403, "Cannot send messages to this user")

        assert (await backend.warn(GUILD_ID, USER_ID, reason="spam")).success is True

    @pytest.mark.asyncio
    async def test_mute_uses_timeout(self, backend, member, history):
        before = discord.utils.utcnow()

        result = await backend.mute(GUILD_ID, USER_ID, reason="flood", duration="10m")

        assert result.success is True
        until = member.timeout.await_args.args[0]
        assert datetime.timedelta(minutes=9) < until - before <= datetime.timedelta(minutes=11)
        assert member.timeout.await_args.kwargs["reason"] == f"{AUDIT_REASON_PREFIX}flood"
        assert history.log_action.await_args.args[2] is ActionType.MUTE
        assert history.log_action.await_args.args[4] == 600

    @pytest.mark.asyncio
    async def test_timeout_duration_defaults_and_caps(self, backend, history):
        await backend.timeout(GUILD_ID, USER_ID, reason="x", duration="garbage")
        await backend.timeout(GUILD_ID, USER_ID, reason="x", duration="8w")

        durations = [call.args[4] for call in history.log_action.await_args_list]
        assert durations == [DEFAULT_MUTE_SECONDS, MAX_TIMEOUT_SECONDS]

    @pytest.mark.asyncio
    async def test_kick_refused_by_discord(self, backend, guild, history):
        guild.kick.side_effect = http_error(discord.Forbidden, 403, "Missing Permissions")

        result = await backend.kick(GUILD_ID, USER_ID, reason="spam")

        assert result.success is False
        assert "Missing Permissions" in result.error
        history.log_action.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ban_does_not_need_member(self, backend, guild, history):
        guild.get_member.return_value = None

        result = await backend.ban(GUILD_ID, USER_ID, reason="raid", duration="7d")

        assert result.success is True
        banned = guild.ban.await_args.args[0]
        assert banned.id == int(USER)
        assert history.log_action.await_args.args[4] == 7 * 86400

    @pytest.mark.asyncio
    async def test_role_changes(self, backend, member):
        added = await backend.add_role(GUILD_ID, USER_ID, "77", reason="verified")
        removed = await backend.remove_role(GUILD_ID, USER_ID, "77", reason="muted")

        assert added.success and removed.success
        member.add_roles.assert_awaited_once()
        member.remove_roles.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_role(self, backend, guild):
        guild.get_role.return_value = None

        result = await backend.add_role(GUILD_ID, USER_ID, "77", reason="x")

        assert result.success is False
        assert result.error == "Role 77 not found"

    @pytest.mark.asyncio
    async def test_send_dm(self, backend, member, history):
        ok = await backend.send_dm(GUILD_ID, USER_ID, "hello")
        member.send.side_effect = http_error(discord.Forbidden, 403, "Cannot send messages to this user")
        refused = await backend.send_dm(GUILD_ID, USER_ID, "hello")

        assert ok.success is True
        assert refused.success is False
        history.log_action.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_action(self, backend, history):
        history.log_action.side_effect = RuntimeError("database locked")

        result = await backend.kick(GUILD_ID, USER_ID, reason="spam")

        assert result.success is True
        assert result.case_id is None
