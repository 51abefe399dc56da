"""
Type-safe wrappers for Discord snowflake identifiers.

Snowflakes are 64-bit integers but travel as strings in JSON (rule bundles,
audit records), so every wrapper stores the canonical decimal string and
converts to ``int`` only at the Discord API boundary.
"""

from __future__ import annotations

from typing import Union

import discord


class SnowflakeID:
    """
    Base wrapper shared by all Discord identifier types.

    Equality works against another wrapper of the same class, a decimal
    string, or an int, which lets wrapped ids be compared directly with the
    raw string ids stored inside rule definitions.

    Example:
        >>> gid = GuildID(123456789012345678)
        >>> str(gid)
        '123456789012345678'
        >>> gid == "123456789012345678"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "SnowflakeID"]) -> None:
        """
        Args:
            value: The snowflake as a string, int, or wrapper.

        Raises:
            ValueError: If the value is not a valid integer snowflake.
        """
        if isinstance(value, SnowflakeID):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Return the snowflake as an integer for Discord API calls."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SnowflakeID):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(SnowflakeID):
    """Identifier of a Discord guild (the scope every rule belongs to)."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class UserID(SnowflakeID):
    """Identifier of a Discord user or member."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class ChannelID(SnowflakeID):
    """Identifier of a Discord channel."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.Snowflake) -> "ChannelID":
        return cls(channel.id)


class RoleID(SnowflakeID):
    """Identifier of a Discord role."""

    __slots__ = ()

    @classmethod
    def from_role(cls, role: discord.Role) -> "RoleID":
        return cls(role.id)


class MessageID(SnowflakeID):
    """Identifier of a Discord message."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageID":
        return cls(message.id)
