"""Automod listener Cog.

Feeds guild messages and member joins into the rule engine, then hands
messages that survived the rules to the optional AI moderator.
"""

from __future__ import annotations

import discord
from discord.ext import commands

from automod.ai.content_moderator import AIContentModerator
from automod.datatypes.analysis_datatypes import AIModerationOptions
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.moderation.collaborators import EnforcementBackend
from automod.moderation.rule_engine import RuleEngine
from automod.util import discord_utils
from automod.util.logger import get_logger
from automod.util.sliding_window import JoinVelocityTracker, MessageRateTracker

logger = get_logger("automod_listener_cog")

AI_GUILD_TOGGLE_KEY = "ai_moderation_enabled"


class AutoModListenerCog(commands.Cog):
    """Cog responsible for routing message and join events through automod."""

    def __init__(
        self,
        discord_bot_instance,
        engine: RuleEngine,
        rate_tracker: MessageRateTracker,
        join_tracker: JoinVelocityTracker,
        backend: EnforcementBackend,
        ai_moderator: AIContentModerator | None = None,
        ai_options: AIModerationOptions | None = None,
    ):
        self.bot = discord_bot_instance
        self._engine = engine
        self._rate_tracker = rate_tracker
        self._join_tracker = join_tracker
        self._backend = backend
        self._ai_moderator = ai_moderator
        self._ai_options = ai_options or AIModerationOptions()
        logger.info("[AUTOMOD LISTENER] Automod listener cog loaded")

    def _ai_enabled_for(self, guild_id: GuildID) -> bool:
        if self._ai_moderator is None or not self._ai_moderator.available:
            return False
        config = self._engine.store.get_guild_config(guild_id)
        return bool(config.get(AI_GUILD_TOGGLE_KEY, True))

    @commands.Cog.listener(name='on_message')
    async def on_message(self, message: discord.Message):
        """
        Handle new messages.

        1. Filters out DMs, bots and webhooks
        2. Updates the author's rolling message count
        3. Runs the guild's rules
        4. Runs AI moderation if the message is still there
        """
        if not discord_utils.should_process_message(message):
            return

        guild_id = GuildID.from_guild(message.guild)
        user_id = UserID.from_user(message.author)
        message_count = self._rate_tracker.record_message(guild_id, user_id)

        context = discord_utils.build_message_context(
            message,
            message_count=message_count,
            time_window=self._rate_tracker.window_ms,
        )

        try:
            result = await self._engine.process_message(context)
        except Exception:
            logger.exception("[AUTOMOD LISTENER] Rule processing failed for message %s", message.id)
            return

        if result.triggered:
            logger.debug(
                "[AUTOMOD LISTENER] Message %s triggered %d rule(s)",
                message.id, len(result.rules),
            )

        if context.message is not None and context.message.deleted:
            return
        if not self._ai_enabled_for(guild_id):
            return

        try:
            await self._ai_moderator.process_ai_moderation(context, self._backend, self._ai_options)
        except Exception:
            logger.exception("[AUTOMOD LISTENER] AI moderation failed for message %s", message.id)

    @commands.Cog.listener(name='on_member_join')
    async def on_member_join(self, member: discord.Member):
        """Record the join for velocity tracking and run the guild's join rules."""
        if member.bot:
            return

        self._join_tracker.record_join(GuildID.from_guild(member.guild))
        context = discord_utils.build_join_context(member)
        try:
            await self._engine.process_member_join(context)
        except Exception:
            logger.exception("[AUTOMOD LISTENER] Join processing failed for member %s", member.id)


def setup(discord_bot_instance, **dependencies):
    """Register the AutoModListenerCog with the bot."""
    discord_bot_instance.add_cog(AutoModListenerCog(discord_bot_instance, **dependencies))
