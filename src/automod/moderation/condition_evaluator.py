from __future__ import annotations

from typing import Callable

from automod.datatypes.evaluation_datatypes import ConditionResult, EvaluationContext
from automod.datatypes.rule_datatypes import Rule
from automod.moderation.collaborators import ModerationHistory
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("condition_evaluator")


class ConditionEvaluator:
    """Applies a rule's secondary filters once its trigger has matched."""

    def __init__(self, history: ModerationHistory, clock: Callable[[], int] = now_ms) -> None:
        self._history = history
        self._clock = clock

    async def warning_count(self, context: EvaluationContext) -> int:
        """Warning count from the history collaborator; a failed lookup counts as zero."""
        try:
            return await self._history.get_warning_count(context.guild_id, context.user_id)
        except Exception:
            logger.exception(
                "[CONDITIONS] Failed to fetch warning count for user %s in guild %s",
                context.user_id, context.guild_id,
            )
            return 0

    async def evaluate(self, rule: Rule, context: EvaluationContext) -> ConditionResult:
        conditions = rule.conditions

        if conditions.min_account_age and context.join_timestamp is not None:
            if self._clock() - context.join_timestamp < conditions.min_account_age:
                return ConditionResult(False, "Account too new")

        if conditions.max_warnings is not None:
            if await self.warning_count(context) >= conditions.max_warnings:
                return ConditionResult(False, "Warning threshold exceeded")

        # Roles can only be checked when the platform handed us a member
        if conditions.required_roles and context.member is not None:
            if context.role_ids.isdisjoint(conditions.required_roles):
                return ConditionResult(False, "Missing required role")

        return ConditionResult(True)
