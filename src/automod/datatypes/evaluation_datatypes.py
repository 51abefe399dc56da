"""
Ephemeral data structures produced while evaluating an event.

None of these are persisted except ``AuditRecord``, which is handed to the
audit sink and notifier after a rule's actions ran.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, TYPE_CHECKING

from automod.datatypes.action_datatypes import ActionResult
from automod.datatypes.discord_datatypes import ChannelID, GuildID, UserID

if TYPE_CHECKING:
    from automod.datatypes.rule_datatypes import Rule
    from automod.moderation.collaborators import MessageHandle


@dataclass(slots=True)
class EvaluationContext:
    """Input of one evaluation pass.

    Attributes:
        guild_id: Guild the event happened in.
        user_id: Author of the message or the member that joined.
        channel_id: Channel of the message; None for joins.
        member: Platform member object, when one is available.
        role_ids: Role ids held by ``member``.
        is_guild_owner: Whether ``user_id`` owns the guild.
        message_content: Text of the message, if any.
        message: Handle to the triggering message, used for deletion.
        join_timestamp: Epoch ms used as the origin of the account-age computation.
        message_count: Rolling message count supplied by the caller.
        time_window: Window (ms) ``message_count`` was measured over.
        dry_run_only: Evaluate and count matches without running actions.
    """
    guild_id: GuildID
    user_id: UserID
    channel_id: ChannelID | None = None
    member: Any = None
    role_ids: FrozenSet[str] = frozenset()
    is_guild_owner: bool = False
    message_content: str | None = None
    message: "MessageHandle | None" = None
    join_timestamp: int | None = None
    message_count: int | None = None
    time_window: int | None = None
    dry_run_only: bool = False


@dataclass(slots=True)
class TriggerResult:
    matched: bool
    reason: str | None = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ConditionResult:
    passed: bool
    reason: str | None = None


@dataclass(slots=True)
class RuleEvaluation:
    """Verdict of gate, trigger and condition stages for one rule."""
    matched: bool
    reason: str | None = None
    trigger_data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ExecutionOutcome:
    executed: bool
    results: List[ActionResult] = field(default_factory=list)
    reason: str | None = None

    @property
    def message_deleted(self) -> bool:
        return any(
            result.success and result.detail.get("deleted") for result in self.results
        )


@dataclass(slots=True)
class MatchedRule:
    rule: "Rule"
    evaluation: RuleEvaluation
    execution: ExecutionOutcome


@dataclass(slots=True)
class ProcessResult:
    """Rules that matched one event, in evaluation order."""
    rules: List[MatchedRule] = field(default_factory=list)

    @property
    def triggered(self) -> bool:
        return bool(self.rules)


@dataclass(slots=True)
class SpamDetectionResult:
    detected: bool
    rule_id: str | None = None
    rule_name: str | None = None


@dataclass(slots=True)
class AuditRecord:
    """Structured record of a rule firing, sent to the audit sink and notifier."""
    rule_id: str
    rule_name: str
    trigger_type: str
    guild_id: str
    user_id: str
    channel_id: str | None
    trigger_data: Dict[str, Any]
    action_results: List[Dict[str, Any]]
    timestamp: int

    @property
    def successful_actions(self) -> int:
        return sum(1 for result in self.action_results if result.get("success"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "trigger_type": self.trigger_type,
            "guild_id": self.guild_id,
            "user_id": self.user_id,
            "channel_id": self.channel_id,
            "trigger_data": dict(self.trigger_data),
            "action_results": list(self.action_results),
            "timestamp": self.timestamp,
        }
