"""
Rule, trigger and rule-settings data structures.

Rules are stored and exchanged as plain JSON-compatible dictionaries
(snake_case keys); ``Rule.from_dict`` / ``Rule.to_dict`` convert between that
form and the typed objects the engine evaluates. All timestamps are epoch
milliseconds and all rule-level durations are milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Union, assert_never

from automod.datatypes.action_datatypes import RuleAction, action_from_dict, action_to_dict
from automod.datatypes.discord_datatypes import GuildID
from automod.exceptions import RuleConfigurationError

ONE_DAY_MS = 86_400_000
DEFAULT_FUZZY_SENSITIVITY = 0.8
DEFAULT_REGEX_FLAGS = "i"
DEFAULT_RULE_NAME = "Untitled Rule"


class TriggerType(Enum):
    """Enumeration of the five trigger strategies."""

    MESSAGE_CONTENT = "message_content"
    JOIN_PATTERN = "join_pattern"
    MESSAGE_RATE = "message_rate"
    KEYWORD_MATCH = "keyword_match"
    REGEX_MATCH = "regex_match"

    def __str__(self) -> str:
        return self.value


class RuleTemplate(Enum):
    """Names of the built-in rule templates."""

    SPAM = "spam"
    HARASSMENT = "harassment"
    INVITE_LINKS = "invite_links"
    EXPLICIT_CONTENT = "explicit_content"
    NEW_ACCOUNT = "new_account"

    def __str__(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Trigger variants
# ---------------------------------------------------------------------------

@dataclass(slots=True, frozen=True)
class MessageContentTrigger:
    """Literal substring match against any of ``patterns``."""
    patterns: List[str] = field(default_factory=list)
    case_sensitive: bool = False
    type: ClassVar[TriggerType] = TriggerType.MESSAGE_CONTENT


@dataclass(slots=True, frozen=True)
class JoinPatternTrigger:
    """Account-age and join-burst detection for member joins."""
    min_account_age: int = 0
    max_account_age: int = ONE_DAY_MS
    check_join_velocity: bool = False
    join_threshold: int = 10
    type: ClassVar[TriggerType] = TriggerType.JOIN_PATTERN


@dataclass(slots=True, frozen=True)
class MessageRateTrigger:
    """Flood detection; the caller supplies the rolling count for ``time_window``."""
    threshold: int = 5
    time_window: int = 60_000
    type: ClassVar[TriggerType] = TriggerType.MESSAGE_RATE


@dataclass(slots=True, frozen=True)
class KeywordTrigger:
    keywords: List[str] = field(default_factory=list)
    fuzzy_sensitivity: float = DEFAULT_FUZZY_SENSITIVITY
    type: ClassVar[TriggerType] = TriggerType.KEYWORD_MATCH


@dataclass(slots=True, frozen=True)
class RegexTrigger:
    patterns: List[str] = field(default_factory=list)
    regex_flags: str = DEFAULT_REGEX_FLAGS
    type: ClassVar[TriggerType] = TriggerType.REGEX_MATCH


RuleTrigger = Union[
    MessageContentTrigger,
    JoinPatternTrigger,
    MessageRateTrigger,
    KeywordTrigger,
    RegexTrigger,
]


def _string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise RuleConfigurationError(f"{field_name} must be a list")
    return [str(item) for item in value]


def _optional_number(value: Any, cast, default):
    return default if value is None else cast(value)


def trigger_type_of(data: Dict[str, Any]) -> TriggerType:
    """Return the trigger type named by a trigger mapping."""
    if not isinstance(data, dict):
        raise RuleConfigurationError("Rule trigger must be an object with a 'type'")
    try:
        return TriggerType(data.get("type"))
    except ValueError as exc:
        raise RuleConfigurationError(f"Unknown trigger type: {data.get('type')!r}") from exc


def trigger_from_dict(data: Dict[str, Any]) -> RuleTrigger:
    """Build a trigger variant from its JSON-compatible form.

    Raises:
        RuleConfigurationError: If the type is unknown or a field has the wrong shape.
    """
    trigger_type = trigger_type_of(data)
    try:
        match trigger_type:
            case TriggerType.MESSAGE_CONTENT:
                return MessageContentTrigger(
                    patterns=_string_list(data.get("patterns"), "patterns"),
                    case_sensitive=bool(data.get("case_sensitive", False)),
                )
            case TriggerType.JOIN_PATTERN:
                return JoinPatternTrigger(
                    min_account_age=_optional_number(data.get("min_account_age"), int, 0),
                    max_account_age=_optional_number(data.get("max_account_age"), int, ONE_DAY_MS),
                    check_join_velocity=bool(data.get("check_join_velocity", False)),
                    join_threshold=_optional_number(data.get("join_threshold"), int, 10),
                )
            case TriggerType.MESSAGE_RATE:
                return MessageRateTrigger(
                    threshold=_optional_number(data.get("threshold"), int, 5),
                    time_window=_optional_number(data.get("time_window"), int, 60_000),
                )
            case TriggerType.KEYWORD_MATCH:
                return KeywordTrigger(
                    keywords=_string_list(data.get("keywords"), "keywords"),
                    fuzzy_sensitivity=_optional_number(
                        data.get("fuzzy_sensitivity"), float, DEFAULT_FUZZY_SENSITIVITY
                    ),
                )
            case TriggerType.REGEX_MATCH:
                flags = data.get("regex_flags")
                return RegexTrigger(
                    patterns=_string_list(data.get("patterns"), "patterns"),
                    regex_flags=DEFAULT_REGEX_FLAGS if flags is None else str(flags),
                )
            case _:
                assert_never(trigger_type)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, RuleConfigurationError):
            raise
        raise RuleConfigurationError(f"Invalid {trigger_type} trigger: {exc}") from exc


def trigger_to_dict(trigger: RuleTrigger) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"type": trigger.type.value}
    match trigger:
        case MessageContentTrigger():
            payload.update(patterns=list(trigger.patterns), case_sensitive=trigger.case_sensitive)
        case JoinPatternTrigger():
            payload.update(
                min_account_age=trigger.min_account_age,
                max_account_age=trigger.max_account_age,
                check_join_velocity=trigger.check_join_velocity,
                join_threshold=trigger.join_threshold,
            )
        case MessageRateTrigger():
            payload.update(threshold=trigger.threshold, time_window=trigger.time_window)
        case KeywordTrigger():
            payload.update(keywords=list(trigger.keywords), fuzzy_sensitivity=trigger.fuzzy_sensitivity)
        case RegexTrigger():
            payload.update(patterns=list(trigger.patterns), regex_flags=trigger.regex_flags)
        case _:
            assert_never(trigger)
    return payload


# ---------------------------------------------------------------------------
# Rule settings
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class RuleConditions:
    """Secondary filters applied after the trigger matched.

    Attributes:
        min_account_age: Reject when the account is younger than this (ms).
        max_warnings: Reject when the member already has at least this many warnings.
        required_roles: Reject when the member holds none of these role ids.
    """
    min_account_age: int | None = None
    max_warnings: int | None = None
    required_roles: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "RuleConditions":
        data = data or {}
        return cls(
            min_account_age=_optional_number(data.get("min_account_age"), int, None),
            max_warnings=_optional_number(data.get("max_warnings"), int, None),
            required_roles=_string_list(data.get("required_roles"), "required_roles"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_account_age": self.min_account_age,
            "max_warnings": self.max_warnings,
            "required_roles": list(self.required_roles),
        }


@dataclass(slots=True)
class CooldownConfig:
    """Cooldown gate. ``per_user`` wins over ``per_guild``; neither means per user.

    A supplied dict that leaves ``per_user`` out is per user only when it
    does not ask for ``per_guild``.
    """
    enabled: bool = False
    duration: int = 0
    per_user: bool = True
    per_guild: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "CooldownConfig":
        if not data:
            return cls()
        per_guild = bool(data.get("per_guild", False))
        return cls(
            enabled=bool(data.get("enabled", False)),
            duration=int(data.get("duration") or 0),
            per_user=bool(data.get("per_user", not per_guild)),
            per_guild=per_guild,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "duration": self.duration,
            "per_user": self.per_user,
            "per_guild": self.per_guild,
        }


@dataclass(slots=True)
class ScheduleConfig:
    """Active window of a rule.

    Attributes:
        start_time: Epoch ms the rule becomes active; None leaves the window open.
        end_time: Epoch ms the rule stops being active; None leaves the window open.
        days_of_week: Allowed weekdays, 0 = Sunday .. 6 = Saturday.
        timezone: IANA zone used to resolve the current weekday.
    """
    enabled: bool = False
    start_time: int | None = None
    end_time: int | None = None
    days_of_week: List[int] | None = None
    timezone: str = "UTC"

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "ScheduleConfig":
        data = data or {}
        days = data.get("days_of_week")
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=_optional_number(data.get("start_time"), int, None),
            end_time=_optional_number(data.get("end_time"), int, None),
            days_of_week=None if days is None else [int(day) for day in days],
            timezone=str(data.get("timezone") or "UTC"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "days_of_week": None if self.days_of_week is None else list(self.days_of_week),
            "timezone": self.timezone,
        }


@dataclass(slots=True)
class RuleExceptions:
    channels: List[str] = field(default_factory=list)
    roles: List[str] = field(default_factory=list)
    users: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "RuleExceptions":
        data = data or {}
        return cls(
            channels=_string_list(data.get("channels"), "exceptions.channels"),
            roles=_string_list(data.get("roles"), "exceptions.roles"),
            users=_string_list(data.get("users"), "exceptions.users"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"channels": list(self.channels), "roles": list(self.roles), "users": list(self.users)}


@dataclass(slots=True)
class RuleStats:
    triggers: int = 0
    actions_executed: int = 0
    false_positives: int = 0
    last_triggered: int | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "RuleStats":
        data = data or {}
        return cls(
            triggers=int(data.get("triggers") or 0),
            actions_executed=int(data.get("actions_executed") or 0),
            false_positives=int(data.get("false_positives") or 0),
            last_triggered=_optional_number(data.get("last_triggered"), int, None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggers": self.triggers,
            "actions_executed": self.actions_executed,
            "false_positives": self.false_positives,
            "last_triggered": self.last_triggered,
        }


# ---------------------------------------------------------------------------
# Rule
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Rule:
    """A named, prioritised policy unit: one trigger, optional conditions, ordered actions."""
    id: str
    guild_id: GuildID
    trigger: RuleTrigger
    name: str = DEFAULT_RULE_NAME
    description: str = ""
    enabled: bool = True
    priority: int = 0
    dry_run: bool = False
    conditions: RuleConditions = field(default_factory=RuleConditions)
    actions: List[RuleAction] = field(default_factory=list)
    cooldown: CooldownConfig = field(default_factory=CooldownConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    exceptions: RuleExceptions = field(default_factory=RuleExceptions)
    stats: RuleStats = field(default_factory=RuleStats)
    continue_after_match: bool = False
    created_at: int = 0
    updated_at: int = 0

    @property
    def trigger_type(self) -> TriggerType:
        return self.trigger.type

    def has_action(self, action_cls: type) -> bool:
        return any(isinstance(action, action_cls) for action in self.actions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Parse a stored or imported rule mapping.

        Raises:
            RuleConfigurationError: If required fields are missing or malformed.
        """
        if not isinstance(data, dict):
            raise RuleConfigurationError("Rule must be an object")
        if not data.get("id"):
            raise RuleConfigurationError("Rule is missing an id")
        if data.get("guild_id") in (None, ""):
            raise RuleConfigurationError("Rule is missing a guild_id")
        if "trigger" not in data:
            raise RuleConfigurationError("Rule is missing a trigger")

        actions = data.get("actions") or []
        if not isinstance(actions, list):
            raise RuleConfigurationError("actions must be a list")

        try:
            return cls(
                id=str(data["id"]),
                guild_id=GuildID(data["guild_id"]),
                trigger=trigger_from_dict(data["trigger"]),
                name=str(data.get("name") or DEFAULT_RULE_NAME),
                description=str(data.get("description") or ""),
                enabled=data.get("enabled") is not False,
                priority=int(data.get("priority") or 0),
                dry_run=bool(data.get("dry_run", False)),
                conditions=RuleConditions.from_dict(data.get("conditions")),
                actions=[action_from_dict(action) for action in actions],
                cooldown=CooldownConfig.from_dict(data.get("cooldown")),
                schedule=ScheduleConfig.from_dict(data.get("schedule")),
                exceptions=RuleExceptions.from_dict(data.get("exceptions")),
                stats=RuleStats.from_dict(data.get("stats")),
                continue_after_match=bool(data.get("continue_after_match", False)),
                created_at=int(data.get("created_at") or 0),
                updated_at=int(data.get("updated_at") or 0),
            )
        except RuleConfigurationError:
            raise
        except (TypeError, ValueError) as exc:
            raise RuleConfigurationError(f"Invalid rule {data.get('id')!r}: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "guild_id": str(self.guild_id),
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "priority": self.priority,
            "dry_run": self.dry_run,
            "trigger": trigger_to_dict(self.trigger),
            "conditions": self.conditions.to_dict(),
            "actions": [action_to_dict(action) for action in self.actions],
            "cooldown": self.cooldown.to_dict(),
            "schedule": self.schedule.to_dict(),
            "exceptions": self.exceptions.to_dict(),
            "stats": self.stats.to_dict(),
            "continue_after_match": self.continue_after_match,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
