"""
Enforcement backend that carries out rule actions through py-cord.

Every successful member action is logged to the moderation history so the
row id can serve as the case id and so warnings feed back into the engine's
warning counts. Discord refusals (missing permissions, role hierarchy) are
returned as unsuccessful :class:`EnforcementResult` objects rather than
raised.
"""

from __future__ import annotations

import datetime

import discord

from automod.database.moderation import ModerationHistoryStore
from automod.datatypes.action_datatypes import ActionType, EnforcementResult
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.util.format_utils import format_duration, parse_duration_seconds
from automod.util.logger import get_logger

logger = get_logger("discord_backend")

# Discord caps communication timeouts at 28 days.
MAX_TIMEOUT_SECONDS = 28 * 24 * 60 * 60
DEFAULT_MUTE_SECONDS = 60 * 60
AUDIT_REASON_PREFIX = "AutoMod: "


class DiscordEnforcementBackend:
    """
    Implements the enforcement backend contract over a ``discord.Bot``.

    Args:
        bot: The connected bot; guilds and members are resolved from its cache.
        history: Store that receives one row per successful member action.
    """

    def __init__(self, bot: discord.Bot, history: ModerationHistoryStore) -> None:
        self._bot = bot
        self._history = history

    def _guild(self, guild_id: GuildID) -> discord.Guild | None:
        return self._bot.get_guild(guild_id.to_int())

    async def _member(self, guild: discord.Guild, user_id: UserID) -> discord.Member | None:
        member = guild.get_member(user_id.to_int())
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id.to_int())
        except discord.NotFound:
            return None

    async def _log(
        self,
        guild_id: GuildID,
        user_id: UserID,
        action: ActionType,
        reason: str,
        duration_seconds: int = 0,
    ) -> EnforcementResult:
        try:
            case_id = await self._history.log_action(guild_id, user_id, action, reason, duration_seconds)
        except Exception as exc:
            logger.error("[ENFORCEMENT] Failed to log %s for user %s: %s", action.value, user_id, exc)
            return EnforcementResult(success=True)
        return EnforcementResult(success=True, case_id=str(case_id))

    async def _resolve(
        self, guild_id: GuildID, user_id: UserID
    ) -> tuple[discord.Guild | None, discord.Member | None, str | None]:
        guild = self._guild(guild_id)
        if guild is None:
            return None, None, f"Guild {guild_id} not available"
        member = await self._member(guild, user_id)
        if member is None:
            return guild, None, f"Member {user_id} not found"
        return guild, member, None

    async def warn(self, guild_id: GuildID, target_id: UserID, *, reason: str) -> EnforcementResult:
        guild, member, error = await self._resolve(guild_id, target_id)
        if error is not None:
            return EnforcementResult(success=False, error=error)
        result = await self._log(guild_id, target_id, ActionType.WARN, reason)
        try:
            await member.send(f"⚠️ You received a warning in **{guild.name}**: {reason}")
        except discord.HTTPException as exc:
            logger.debug("[ENFORCEMENT] Could not DM warning to %s: %s", target_id, exc)
        return result

    async def _timeout(
        self,
        guild_id: GuildID,
        target_id: UserID,
        action: ActionType,
        reason: str,
        duration: str | None,
    ) -> EnforcementResult:
        guild, member, error = await self._resolve(guild_id, target_id)
        if error is not None:
            return EnforcementResult(success=False, error=error)

        seconds = parse_duration_seconds(duration) or DEFAULT_MUTE_SECONDS
        seconds = min(seconds, MAX_TIMEOUT_SECONDS)
        until = discord.utils.utcnow() + datetime.timedelta(seconds=seconds)
        try:
            await member.timeout(until, reason=f"{AUDIT_REASON_PREFIX}{reason}")
        except discord.HTTPException as exc:
            logger.warning("[ENFORCEMENT] Failed to %s user %s: %s", action.value, target_id, exc)
            return EnforcementResult(success=False, error=str(exc))

        logger.info(
            "[ENFORCEMENT] %s user %s in guild %s for %s",
            action.value, target_id, guild_id, format_duration(seconds),
        )
        return await self._log(guild_id, target_id, action, reason, seconds)

    async def mute(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult:
        return await self._timeout(guild_id, target_id, ActionType.MUTE, reason, duration)

    async def timeout(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult:
        return await self._timeout(guild_id, target_id, ActionType.TIMEOUT, reason, duration)

    async def kick(self, guild_id: GuildID, target_id: UserID, *, reason: str) -> EnforcementResult:
        guild, member, error = await self._resolve(guild_id, target_id)
        if error is not None:
            return EnforcementResult(success=False, error=error)
        try:
            await guild.kick(member, reason=f"{AUDIT_REASON_PREFIX}{reason}")
        except discord.HTTPException as exc:
            logger.warning("[ENFORCEMENT] Failed to kick user %s: %s", target_id, exc)
            return EnforcementResult(success=False, error=str(exc))
        logger.info("[ENFORCEMENT] Kicked user %s from guild %s", target_id, guild_id)
        return await self._log(guild_id, target_id, ActionType.KICK, reason)

    async def ban(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult:
        guild = self._guild(guild_id)
        if guild is None:
            return EnforcementResult(success=False, error=f"Guild {guild_id} not available")
        seconds = parse_duration_seconds(duration) or 0
        try:
            await guild.ban(discord.Object(id=target_id.to_int()), reason=f"{AUDIT_REASON_PREFIX}{reason}")
        except discord.HTTPException as exc:
            logger.warning("[ENFORCEMENT] Failed to ban user %s: %s", target_id, exc)
            return EnforcementResult(success=False, error=str(exc))
        logger.info(
            "[ENFORCEMENT] Banned user %s from guild %s (%s)",
            target_id, guild_id, format_duration(seconds),
        )
        return await self._log(guild_id, target_id, ActionType.BAN, reason, seconds)

    async def _change_role(
        self,
        guild_id: GuildID,
        target_id: UserID,
        role_id: str,
        action: ActionType,
        reason: str,
    ) -> EnforcementResult:
        guild, member, error = await self._resolve(guild_id, target_id)
        if error is not None:
            return EnforcementResult(success=False, error=error)
        role = guild.get_role(int(role_id))
        if role is None:
            return EnforcementResult(success=False, error=f"Role {role_id} not found")
        try:
            if action is ActionType.ROLE_ADD:
                await member.add_roles(role, reason=f"{AUDIT_REASON_PREFIX}{reason}")
            else:
                await member.remove_roles(role, reason=f"{AUDIT_REASON_PREFIX}{reason}")
        except discord.HTTPException as exc:
            logger.warning("[ENFORCEMENT] Failed to %s %s for user %s: %s", action.value, role_id, target_id, exc)
            return EnforcementResult(success=False, error=str(exc))
        return await self._log(guild_id, target_id, action, reason)

    async def add_role(
        self, guild_id: GuildID, target_id: UserID, role_id: str, *, reason: str
    ) -> EnforcementResult:
        return await self._change_role(guild_id, target_id, role_id, ActionType.ROLE_ADD, reason)

    async def remove_role(
        self, guild_id: GuildID, target_id: UserID, role_id: str, *, reason: str
    ) -> EnforcementResult:
        return await self._change_role(guild_id, target_id, role_id, ActionType.ROLE_REMOVE, reason)

    async def send_dm(self, guild_id: GuildID, target_id: UserID, message: str) -> EnforcementResult:
        guild, member, error = await self._resolve(guild_id, target_id)
        if error is not None:
            return EnforcementResult(success=False, error=error)
        try:
            await member.send(message)
        except discord.HTTPException as exc:
            logger.debug("[ENFORCEMENT] Could not DM user %s: %s", target_id, exc)
            return EnforcementResult(success=False, error=str(exc))
        return EnforcementResult(success=True)
