"""
Executes a matched rule's action list against the enforcement backend.

Every action runs even when an earlier one failed; each outcome is recorded
as an :class:`ActionResult`. Once the list is done an :class:`AuditRecord`
is handed to the audit sink and the notifier, both best-effort.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, assert_never

from automod.datatypes.action_datatypes import (
    ActionResult,
    ActionType,
    BanAction,
    DeleteAction,
    DmUserAction,
    EnforcementResult,
    KickAction,
    MuteAction,
    RoleAddAction,
    RoleRemoveAction,
    RuleAction,
    TimeoutAction,
    WarnAction,
)
from automod.datatypes.evaluation_datatypes import AuditRecord, EvaluationContext, ExecutionOutcome
from automod.datatypes.rule_datatypes import Rule
from automod.moderation.collaborators import (
    AuditSink,
    EnforcementBackend,
    ModerationHistory,
    TriggerNotifier,
)
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("action_executor")

ESCALATION_WARNING_THRESHOLD = 5
ESCALATION_MUTE_DURATION = "1h"
ESCALATION_REASON = f"Auto-mute after {ESCALATION_WARNING_THRESHOLD} warnings"
OWNER_REFUSAL = "Cannot modify server owner"


def action_reason(trigger_data: Dict[str, Any], noun: str) -> str:
    """Reason string sent to the backend: the matched text, else a generic label."""
    return (
        trigger_data.get("matched_pattern")
        or trigger_data.get("matched_keyword")
        or f"Auto-moderation {noun}"
    )


def _from_enforcement(action: ActionType, result: EnforcementResult, **detail: Any) -> ActionResult:
    if result.case_id is not None:
        detail["case_id"] = result.case_id
    return ActionResult(action=action, success=result.success, detail=detail, error=result.error)


class ActionExecutor:
    """Dispatches rule actions to an :class:`EnforcementBackend`."""

    def __init__(
        self,
        backend: EnforcementBackend,
        history: ModerationHistory,
        audit_sink: AuditSink | None = None,
        notifier: TriggerNotifier | None = None,
        notification_timeout: float = 5.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._backend = backend
        self._history = history
        self._audit_sink = audit_sink
        self._notifier = notifier
        self._notification_timeout = notification_timeout
        self._clock = clock

    async def execute(
        self, rule: Rule, context: EvaluationContext, trigger_data: Dict[str, Any]
    ) -> ExecutionOutcome:
        """Run every action of ``rule`` in order and emit the audit record."""
        rule.stats.actions_executed += 1
        rule.stats.last_triggered = self._clock()

        results: List[ActionResult] = []
        for action in rule.actions:
            try:
                result = await self.execute_action(action, rule, context, trigger_data)
            except Exception as exc:
                logger.exception(
                    "[ACTION EXECUTOR] Action %s of rule %s failed for user %s",
                    action.type, rule.id, context.user_id,
                )
                result = ActionResult(action=action.type, success=False, error=str(exc))
            results.append(result)

        logger.info(
            "[ACTION EXECUTOR] Rule %s (%s) executed %d/%d actions for user %s in guild %s",
            rule.id, rule.name, sum(1 for r in results if r.success), len(results),
            context.user_id, context.guild_id,
        )

        await self.emit(self.build_record(rule, context, trigger_data, results))
        return ExecutionOutcome(executed=True, results=results)

    async def execute_action(
        self,
        action: RuleAction,
        rule: Rule,
        context: EvaluationContext,
        trigger_data: Dict[str, Any],
    ) -> ActionResult:
        guild_id, target_id = context.guild_id, context.user_id

        match action:
            case WarnAction(message=message):
                return await self._warn(rule, context, message or action_reason(trigger_data, "warning"))
            case MuteAction(duration=duration):
                result = await self._backend.mute(
                    guild_id, target_id, reason=action_reason(trigger_data, "mute"), duration=duration
                )
                return _from_enforcement(ActionType.MUTE, result, duration=duration)
            case KickAction():
                result = await self._backend.kick(guild_id, target_id, reason=action_reason(trigger_data, "kick"))
                return _from_enforcement(ActionType.KICK, result)
            case BanAction(duration=duration):
                result = await self._backend.ban(
                    guild_id, target_id, reason=action_reason(trigger_data, "ban"), duration=duration
                )
                return _from_enforcement(ActionType.BAN, result, duration=duration)
            case DeleteAction():
                return await self._delete(context)
            case TimeoutAction(duration=duration):
                result = await self._backend.timeout(
                    guild_id, target_id, reason=action_reason(trigger_data, "timeout"), duration=duration
                )
                return _from_enforcement(ActionType.TIMEOUT, result, duration=duration)
            case RoleAddAction(role_id=role_id):
                if context.is_guild_owner:
                    return ActionResult(ActionType.ROLE_ADD, False, {"role_id": role_id}, OWNER_REFUSAL)
                result = await self._backend.add_role(
                    guild_id, target_id, role_id, reason=f"Auto-moderation rule: {rule.name}"
                )
                return _from_enforcement(ActionType.ROLE_ADD, result, role_id=role_id)
            case RoleRemoveAction(role_id=role_id):
                if context.is_guild_owner:
                    return ActionResult(ActionType.ROLE_REMOVE, False, {"role_id": role_id}, OWNER_REFUSAL)
                result = await self._backend.remove_role(
                    guild_id, target_id, role_id, reason=f"Auto-moderation rule: {rule.name}"
                )
                return _from_enforcement(ActionType.ROLE_REMOVE, result, role_id=role_id)
            case DmUserAction(message=message):
                return await self._send_dm(context, message)
            case _:
                assert_never(action)

    async def _warn(self, rule: Rule, context: EvaluationContext, reason: str) -> ActionResult:
        result = await self._backend.warn(context.guild_id, context.user_id, reason=reason)
        action_result = _from_enforcement(ActionType.WARN, result)

        escalates = any(isinstance(a, MuteAction) and a.trigger_warnings for a in rule.actions)
        if not (result.success and escalates):
            return action_result

        try:
            warnings = await self._history.get_warning_count(context.guild_id, context.user_id)
        except Exception:
            logger.exception("[ACTION EXECUTOR] Could not read warning count for escalation")
            return action_result

        action_result.detail["warning_count"] = warnings
        if warnings >= ESCALATION_WARNING_THRESHOLD:
            mute = await self._backend.mute(
                context.guild_id,
                context.user_id,
                reason=ESCALATION_REASON,
                duration=ESCALATION_MUTE_DURATION,
            )
            action_result.detail["escalated"] = mute.success
            logger.info(
                "[ACTION EXECUTOR] Escalated user %s to a %s mute after %d warnings (success=%s)",
                context.user_id, ESCALATION_MUTE_DURATION, warnings, mute.success,
            )
        return action_result

    async def _delete(self, context: EvaluationContext) -> ActionResult:
        message = context.message
        if message is None:
            return ActionResult(ActionType.DELETE, False, {"deleted": False}, "No message")
        if not message.deletable:
            return ActionResult(ActionType.DELETE, False, {"deleted": False}, "Message not deletable")
        try:
            await message.delete()
        except Exception as exc:
            logger.warning("[ACTION EXECUTOR] Failed to delete message from user %s: %s", context.user_id, exc)
            return ActionResult(ActionType.DELETE, False, {"deleted": False}, str(exc))
        return ActionResult(ActionType.DELETE, True, {"deleted": True})

    async def _send_dm(self, context: EvaluationContext, message: str) -> ActionResult:
        # Closed DMs are an expected outcome, not a failed action
        try:
            result = await self._backend.send_dm(context.guild_id, context.user_id, message)
        except Exception as exc:
            logger.debug("[ACTION EXECUTOR] DM to user %s failed: %s", context.user_id, exc)
            return ActionResult(ActionType.DM_USER, True, {"sent": False}, str(exc))
        return ActionResult(ActionType.DM_USER, True, {"sent": result.success}, result.error)

    def build_record(
        self,
        rule: Rule,
        context: EvaluationContext,
        trigger_data: Dict[str, Any],
        results: List[ActionResult],
    ) -> AuditRecord:
        return AuditRecord(
            rule_id=rule.id,
            rule_name=rule.name,
            trigger_type=rule.trigger_type.value,
            guild_id=str(context.guild_id),
            user_id=str(context.user_id),
            channel_id=None if context.channel_id is None else str(context.channel_id),
            trigger_data=dict(trigger_data),
            action_results=[result.to_dict() for result in results],
            timestamp=self._clock(),
        )

    async def emit(self, record: AuditRecord) -> None:
        """Deliver ``record`` to the audit sink and notifier; failures are only logged."""
        if self._audit_sink is not None:
            try:
                await self._audit_sink.record(record)
            except Exception:
                logger.exception("[ACTION EXECUTOR] Audit sink rejected record for rule %s", record.rule_id)

        if self._notifier is not None:
            try:
                await asyncio.wait_for(self._notifier.notify(record), timeout=self._notification_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "[ACTION EXECUTOR] Notification for rule %s timed out after %.1fs",
                    record.rule_id, self._notification_timeout,
                )
            except Exception:
                logger.exception("[ACTION EXECUTOR] Notification for rule %s failed", record.rule_id)
