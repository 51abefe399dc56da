"""
Action types and data structures for auto-moderation enforcement.

Each action a rule can carry is its own dataclass; ``RuleAction`` is the
closed union of them and is dispatched with ``match`` on the class, so an
unknown action type can only appear while parsing stored data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Union, assert_never

from automod.exceptions import RuleConfigurationError

DEFAULT_MUTE_DURATION = "1h"
DEFAULT_TIMEOUT_DURATION = "30m"
DEFAULT_DM_MESSAGE = "Please review our community guidelines."


class ActionType(Enum):
    """Enumeration of supported enforcement actions."""

    WARN = "warn"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"
    DELETE = "delete"
    TIMEOUT = "timeout"
    ROLE_ADD = "role_add"
    ROLE_REMOVE = "role_remove"
    DM_USER = "dm_user"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True, frozen=True)
class WarnAction:
    message: str | None = None
    type: ClassVar[ActionType] = ActionType.WARN


@dataclass(slots=True, frozen=True)
class MuteAction:
    """Mute the member. ``trigger_warnings`` opts the rule into warn escalation."""
    duration: str = DEFAULT_MUTE_DURATION
    trigger_warnings: bool = False
    type: ClassVar[ActionType] = ActionType.MUTE


@dataclass(slots=True, frozen=True)
class KickAction:
    type: ClassVar[ActionType] = ActionType.KICK


@dataclass(slots=True, frozen=True)
class BanAction:
    """Ban the member; ``duration`` of None means permanent."""
    duration: str | None = None
    type: ClassVar[ActionType] = ActionType.BAN


@dataclass(slots=True, frozen=True)
class DeleteAction:
    type: ClassVar[ActionType] = ActionType.DELETE


@dataclass(slots=True, frozen=True)
class TimeoutAction:
    duration: str = DEFAULT_TIMEOUT_DURATION
    type: ClassVar[ActionType] = ActionType.TIMEOUT


@dataclass(slots=True, frozen=True)
class RoleAddAction:
    role_id: str
    type: ClassVar[ActionType] = ActionType.ROLE_ADD


@dataclass(slots=True, frozen=True)
class RoleRemoveAction:
    role_id: str
    type: ClassVar[ActionType] = ActionType.ROLE_REMOVE


@dataclass(slots=True, frozen=True)
class DmUserAction:
    message: str = DEFAULT_DM_MESSAGE
    type: ClassVar[ActionType] = ActionType.DM_USER


RuleAction = Union[
    WarnAction,
    MuteAction,
    KickAction,
    BanAction,
    DeleteAction,
    TimeoutAction,
    RoleAddAction,
    RoleRemoveAction,
    DmUserAction,
]


def action_from_dict(data: Dict[str, Any]) -> RuleAction:
    """Build an action variant from its JSON-compatible form.

    Args:
        data: Mapping with a ``type`` key plus the variant's fields.

    Returns:
        The matching action dataclass.

    Raises:
        RuleConfigurationError: If the type is unknown or a required field is missing.
    """
    if not isinstance(data, dict):
        raise RuleConfigurationError(f"Action must be an object, got {type(data).__name__}")
    try:
        action_type = ActionType(data.get("type"))
    except ValueError as exc:
        raise RuleConfigurationError(f"Unknown action type: {data.get('type')!r}") from exc

    match action_type:
        case ActionType.WARN:
            return WarnAction(message=data.get("message"))
        case ActionType.MUTE:
            return MuteAction(
                duration=data.get("duration") or DEFAULT_MUTE_DURATION,
                trigger_warnings=bool(data.get("trigger_warnings", False)),
            )
        case ActionType.KICK:
            return KickAction()
        case ActionType.BAN:
            return BanAction(duration=data.get("duration"))
        case ActionType.DELETE:
            return DeleteAction()
        case ActionType.TIMEOUT:
            return TimeoutAction(duration=data.get("duration") or DEFAULT_TIMEOUT_DURATION)
        case ActionType.ROLE_ADD | ActionType.ROLE_REMOVE:
            role_id = data.get("role_id")
            if role_id in (None, ""):
                raise RuleConfigurationError(f"Action {action_type} requires a role_id")
            if action_type is ActionType.ROLE_ADD:
                return RoleAddAction(role_id=str(role_id))
            return RoleRemoveAction(role_id=str(role_id))
        case ActionType.DM_USER:
            return DmUserAction(message=data.get("message") or DEFAULT_DM_MESSAGE)
        case _:
            assert_never(action_type)


def action_to_dict(action: RuleAction) -> Dict[str, Any]:
    """Return the JSON-compatible form of an action variant."""
    payload: Dict[str, Any] = {"type": action.type.value}
    match action:
        case WarnAction(message=message):
            if message is not None:
                payload["message"] = message
        case MuteAction(duration=duration, trigger_warnings=trigger_warnings):
            payload["duration"] = duration
            payload["trigger_warnings"] = trigger_warnings
        case BanAction(duration=duration):
            payload["duration"] = duration
        case TimeoutAction(duration=duration):
            payload["duration"] = duration
        case RoleAddAction(role_id=role_id) | RoleRemoveAction(role_id=role_id):
            payload["role_id"] = role_id
        case DmUserAction(message=message):
            payload["message"] = message
        case KickAction() | DeleteAction():
            pass
        case _:
            assert_never(action)
    return payload


@dataclass(slots=True)
class EnforcementResult:
    """Outcome reported by the enforcement backend for a single intent.

    Attributes:
        success: Whether the backend carried out the action.
        case_id: Backend reference for the action (e.g. a moderation log row).
        error: Refusal or failure reason when ``success`` is False.
    """
    success: bool
    case_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class ActionResult:
    """Recorded outcome of one action in a rule's action list."""
    action: ActionType
    success: bool
    detail: Dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "action": self.action.value,
            "success": self.success,
            "detail": dict(self.detail),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
