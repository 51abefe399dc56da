"""
discord_utils.py
================

Stateless helpers that translate Discord objects into evaluation contexts.

Nothing here holds state or makes moderation decisions; the listener cog
calls these to feed the rule engine and the AI moderator.
"""

from __future__ import annotations

from typing import FrozenSet, Union

import discord

from automod.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from automod.datatypes.evaluation_datatypes import EvaluationContext
from automod.util.logger import get_logger

logger = get_logger("discord_utils")


def is_ignored_author(author: Union[discord.User, discord.Member]) -> bool:
    """
    Check if an author should be ignored by moderation handlers (e.g., bots or non-members).

    Args:
        author (discord.User | discord.Member): The user or member to check.

    Returns:
        bool: True if the author is a bot or not a member, False otherwise.
    """
    return author.bot or not isinstance(author, discord.Member)


def should_process_message(message: discord.Message) -> bool:
    """
    Decide whether a message is eligible for automod evaluation.

    DMs, system messages, bots and webhooks are skipped.

    Args:
        message (discord.Message): The incoming message.

    Returns:
        bool: True if the message should be evaluated.
    """
    if message.guild is None:
        return False
    if message.webhook_id is not None:
        return False
    return not is_ignored_author(message.author)


def member_role_ids(member: discord.Member | None) -> FrozenSet[str]:
    """Return the member's role ids as decimal strings."""
    if member is None:
        return frozenset()
    return frozenset(str(role.id) for role in getattr(member, "roles", []))


def is_guild_owner(guild: discord.Guild, user_id: int) -> bool:
    return guild.owner_id is not None and guild.owner_id == user_id


def bot_can_manage_messages(channel: discord.abc.GuildChannel, guild: discord.Guild) -> bool:
    """
    Determine if the bot can delete other members' messages in a channel.

    Args:
        channel (discord.abc.GuildChannel): The channel to check permissions for.
        guild (discord.Guild): The guild context to resolve the bot's member object.

    Returns:
        bool: True if the bot can read and manage messages, False otherwise.
    """
    me = getattr(guild, "me", None)
    if me is None:
        return False
    permissions = channel.permissions_for(me)
    return permissions.read_messages and permissions.manage_messages


class DiscordMessageHandle:
    """Adapts a ``discord.Message`` to the engine's message handle contract."""

    def __init__(self, message: discord.Message) -> None:
        self._message = message
        self._deleted = False

    @property
    def message(self) -> discord.Message:
        return self._message

    @property
    def deletable(self) -> bool:
        if self._deleted:
            return False
        guild = self._message.guild
        if guild is None:
            return False
        me = getattr(guild, "me", None)
        if me is not None and self._message.author.id == me.id:
            return True
        return bot_can_manage_messages(self._message.channel, guild)

    @property
    def deleted(self) -> bool:
        return self._deleted

    async def delete(self) -> None:
        try:
            await self._message.delete()
        except discord.NotFound:
            logger.debug("[DISCORD UTILS] Message %s already deleted", self._message.id)
        self._deleted = True

    async def reply(self, content: str) -> None:
        await self._message.reply(content)


def build_message_context(
    message: discord.Message,
    message_count: int | None = None,
    time_window: int | None = None,
    dry_run_only: bool = False,
) -> EvaluationContext:
    """
    Build an :class:`EvaluationContext` for a guild message.

    Args:
        message (discord.Message): A message that passed :func:`should_process_message`.
        message_count (int | None): Rolling message count of the author, if tracked.
        time_window (int | None): Window in ms the count was measured over.
        dry_run_only (bool): Evaluate without running actions.

    Returns:
        EvaluationContext: Context ready for the rule engine.
    """
    guild = message.guild
    author = message.author
    member = author if isinstance(author, discord.Member) else None
    return EvaluationContext(
        guild_id=GuildID.from_guild(guild),
        user_id=UserID.from_user(author),
        channel_id=ChannelID.from_channel(message.channel),
        member=member,
        role_ids=member_role_ids(member),
        is_guild_owner=is_guild_owner(guild, author.id),
        message_content=message.content or "",
        message=DiscordMessageHandle(message),
        message_count=message_count,
        time_window=time_window,
        dry_run_only=dry_run_only,
    )


def build_join_context(member: discord.Member) -> EvaluationContext:
    """
    Build an :class:`EvaluationContext` for a member join.

    The account creation time is used as the join timestamp, so account-age
    triggers and conditions measure how old the account is.
    """
    return EvaluationContext(
        guild_id=GuildID.from_guild(member.guild),
        user_id=UserID.from_user(member),
        member=member,
        role_ids=member_role_ids(member),
        is_guild_owner=is_guild_owner(member.guild, member.id),
        join_timestamp=int(member.created_at.timestamp() * 1000),
    )
