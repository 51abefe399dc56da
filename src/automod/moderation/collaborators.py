"""
Contracts the engine consumes from its surrounding system.

The engine never talks to Discord, SQLite or an AI provider directly; it
goes through these protocols so each concern can be swapped or faked.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

from automod.datatypes.action_datatypes import EnforcementResult
from automod.datatypes.analysis_datatypes import ContentAnalysis
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.datatypes.evaluation_datatypes import AuditRecord


@runtime_checkable
class MessageHandle(Protocol):
    """The triggering message, as far as enforcement needs it."""

    @property
    def deletable(self) -> bool: ...

    @property
    def deleted(self) -> bool: ...

    async def delete(self) -> None: ...

    async def reply(self, content: str) -> None: ...


class EnforcementBackend(Protocol):
    """Carries out enforcement intents; may refuse based on hierarchy or permissions."""

    async def warn(self, guild_id: GuildID, target_id: UserID, *, reason: str) -> EnforcementResult: ...

    async def mute(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult: ...

    async def kick(self, guild_id: GuildID, target_id: UserID, *, reason: str) -> EnforcementResult: ...

    async def ban(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult: ...

    async def timeout(
        self, guild_id: GuildID, target_id: UserID, *, reason: str, duration: str | None = None
    ) -> EnforcementResult: ...

    async def add_role(
        self, guild_id: GuildID, target_id: UserID, role_id: str, *, reason: str
    ) -> EnforcementResult: ...

    async def remove_role(
        self, guild_id: GuildID, target_id: UserID, role_id: str, *, reason: str
    ) -> EnforcementResult: ...

    async def send_dm(self, guild_id: GuildID, target_id: UserID, message: str) -> EnforcementResult: ...


class ModerationHistory(Protocol):
    async def get_warning_count(self, guild_id: GuildID, user_id: UserID) -> int: ...


class JoinVelocityCounter(Protocol):
    async def get_recent_join_count(self, guild_id: GuildID) -> int: ...


class AuditSink(Protocol):
    async def record(self, record: AuditRecord) -> None: ...


class TriggerNotifier(Protocol):
    async def notify(self, record: AuditRecord) -> None: ...


class ContentClassifier(Protocol):
    """External AI classifier; raises on transport or parsing failure."""

    async def analyze(self, text: str, context: Dict[str, Any]) -> ContentAnalysis: ...


class RuleRepository(Protocol):
    """Eventually-durable key/value persistence of the rule store snapshot.

    The snapshot is a mapping with ``rules``, ``keyword_lists``,
    ``guild_configs`` and ``feedback_data``. ``save`` replaces the whole
    snapshot; a crash between an in-memory change and the next save loses
    that change.
    """

    async def load(self) -> Dict[str, Any]: ...

    async def save(self, snapshot: Dict[str, Any]) -> None: ...
