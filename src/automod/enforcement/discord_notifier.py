"""
Posts rule-trigger notifications to each guild's configured audit channel.
"""

from __future__ import annotations

import discord

from automod.datatypes.evaluation_datatypes import AuditRecord
from automod.store.rule_store import RuleStore
from automod.ui.rule_trigger_embed import build_rule_trigger_embed
from automod.util.logger import get_logger

logger = get_logger("discord_notifier")

AUDIT_CHANNEL_KEY = "audit_log_channel_id"


class DiscordAuditNotifier:
    """Implements the trigger-notifier contract by sending an embed to a channel.

    Guilds without an ``audit_log_channel_id`` in their automod config are
    skipped silently.
    """

    def __init__(self, bot: discord.Bot, store: RuleStore) -> None:
        self._bot = bot
        self._store = store

    def _channel_for(self, guild_id: str) -> discord.abc.Messageable | None:
        channel_id = self._store.get_guild_config(guild_id).get(AUDIT_CHANNEL_KEY)
        if not channel_id:
            return None
        channel = self._bot.get_channel(int(channel_id))
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            logger.debug("[AUDIT NOTIFIER] Audit channel %s not found for guild %s", channel_id, guild_id)
            return None
        return channel

    async def notify(self, record: AuditRecord) -> None:
        channel = self._channel_for(record.guild_id)
        if channel is None:
            return
        try:
            await channel.send(embed=build_rule_trigger_embed(record))
        except discord.HTTPException as exc:
            logger.warning(
                "[AUDIT NOTIFIER] Failed to post trigger of rule %s to channel %s: %s",
                record.rule_id, getattr(channel, "id", "?"), exc,
            )
