"""
Rule engine orchestrating one event through the evaluation pipeline.

For every enabled rule of the event's guild, highest priority first:

    gates (cooldown, schedule, exceptions) -> trigger -> conditions

A rule that survives all three is matched: its trigger counter is bumped,
its actions run unless the rule or the event is a dry run, and evaluation
stops there unless the rule sets ``continue_after_match``. An exception
raised while handling one rule is logged and the next rule is evaluated.
"""

from __future__ import annotations

from typing import Callable, List

from automod.datatypes.action_datatypes import DeleteAction
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.datatypes.evaluation_datatypes import (
    EvaluationContext,
    ExecutionOutcome,
    MatchedRule,
    ProcessResult,
    RuleEvaluation,
    SpamDetectionResult,
)
from automod.datatypes.rule_datatypes import RegexTrigger, Rule, TriggerType
from automod.moderation.action_executor import ActionExecutor
from automod.moderation.collaborators import JoinVelocityCounter, ModerationHistory
from automod.moderation.condition_evaluator import ConditionEvaluator
from automod.moderation.gate_pipeline import CooldownTracker, GatePipeline
from automod.moderation.trigger_evaluators import RegexCache, TriggerEvaluator
from automod.store.rule_store import RuleStore
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("rule_engine")


class RuleEngine:
    """
    Evaluates message and join events against the rules held by a :class:`RuleStore`.

    Args:
        store: Source of rules; also persists stat changes.
        executor: Runs actions of matched rules.
        history: Warning-count lookup for the condition evaluator.
        join_counter: Recent-join lookup for join-velocity triggers.
        cooldowns: Cooldown state; pass one in to share or isolate it.
        regex_cache: Compiled pattern cache, invalidated when rules change.
        clock: Epoch-millisecond clock shared by all stages.
    """

    def __init__(
        self,
        store: RuleStore,
        executor: ActionExecutor,
        history: ModerationHistory,
        join_counter: JoinVelocityCounter | None = None,
        cooldowns: CooldownTracker | None = None,
        regex_cache: RegexCache | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.executor = executor
        self.cooldowns = cooldowns if cooldowns is not None else CooldownTracker()
        self.regex_cache = regex_cache if regex_cache is not None else RegexCache()
        self.gates = GatePipeline(self.cooldowns, clock)
        self.triggers = TriggerEvaluator(self.regex_cache, join_counter, clock)
        self.conditions = ConditionEvaluator(history, clock)

        store.add_change_listener(self._on_rule_changed)

    # ========== Event entry points ==========

    async def process_message(self, context: EvaluationContext) -> ProcessResult:
        """Evaluate a message event against every enabled rule of its guild."""
        rules = self.store.enabled_rules(context.guild_id)
        return await self._process(rules, context)

    async def process_member_join(self, context: EvaluationContext) -> ProcessResult:
        """Evaluate a member-join event against the guild's join-pattern rules only."""
        rules = self.store.enabled_rules(context.guild_id, TriggerType.JOIN_PATTERN)
        return await self._process(rules, context)

    async def process_spam_detection(
        self,
        guild_id: GuildID,
        user_id: UserID,
        message_count: int,
        time_window: int | None = None,
    ) -> SpamDetectionResult:
        """Evaluate a caller-measured message rate against the guild's message-rate rules.

        Stops at the first rule that matches.
        """
        context = EvaluationContext(
            guild_id=guild_id,
            user_id=user_id,
            message_count=message_count,
            time_window=time_window,
        )
        rules = self.store.enabled_rules(guild_id, TriggerType.MESSAGE_RATE)
        result = await self._process(rules, context, stop_on_first_match=True)
        if not result.triggered:
            return SpamDetectionResult(detected=False)
        rule = result.rules[0].rule
        return SpamDetectionResult(detected=True, rule_id=rule.id, rule_name=rule.name)

    # ========== Pipeline ==========

    async def evaluate_rule(self, rule: Rule, context: EvaluationContext) -> RuleEvaluation:
        """Run the gate, trigger and condition stages of a single rule."""
        if not rule.enabled:
            return RuleEvaluation(False, "Rule disabled")

        rejection = self.gates.check(rule, context)
        if rejection is not None:
            return RuleEvaluation(False, rejection)

        trigger_result = await self.triggers.evaluate(rule, context)
        if not trigger_result.matched:
            return RuleEvaluation(False, trigger_result.reason)

        condition_result = await self.conditions.evaluate(rule, context)
        if not condition_result.passed:
            return RuleEvaluation(False, condition_result.reason)

        return RuleEvaluation(True, trigger_data=trigger_result.data)

    async def _process(
        self,
        rules: List[Rule],
        context: EvaluationContext,
        stop_on_first_match: bool = False,
    ) -> ProcessResult:
        result = ProcessResult()

        for rule in rules:
            try:
                evaluation = await self.evaluate_rule(rule, context)
            except Exception:
                logger.exception(
                    "[RULE ENGINE] Rule %s failed while evaluating an event from user %s in guild %s",
                    rule.id, context.user_id, context.guild_id,
                )
                continue
            if not evaluation.matched:
                continue

            try:
                execution = await self._on_match(rule, context, evaluation)
            except Exception as exc:
                logger.exception(
                    "[RULE ENGINE] Rule %s matched user %s in guild %s but its actions failed",
                    rule.id, context.user_id, context.guild_id,
                )
                execution = ExecutionOutcome(executed=False, reason=f"Action execution failed: {exc}")
            result.rules.append(MatchedRule(rule, evaluation, execution))

            if stop_on_first_match or not rule.continue_after_match:
                break

        if result.triggered:
            self.store.mark_dirty()
        return result

    async def _on_match(
        self, rule: Rule, context: EvaluationContext, evaluation: RuleEvaluation
    ) -> ExecutionOutcome:
        rule.stats.triggers += 1
        logger.info(
            "[RULE ENGINE] Rule %s (%s) matched user %s in guild %s: %s",
            rule.id, rule.name, context.user_id, context.guild_id, evaluation.trigger_data,
        )

        if rule.dry_run or context.dry_run_only:
            return ExecutionOutcome(executed=False, reason="Dry run - no actions executed")

        execution = await self.executor.execute(rule, context, evaluation.trigger_data)

        message = context.message
        if (
            rule.has_action(DeleteAction)
            and not execution.message_deleted
            and message is not None
            and not message.deleted
            and message.deletable
        ):
            try:
                await message.delete()
            except Exception as exc:
                logger.warning("[RULE ENGINE] Follow-up delete for rule %s failed: %s", rule.id, exc)

        return execution

    def _on_rule_changed(self, old: Rule | None, new: Rule | None) -> None:
        if old is None:
            return
        if isinstance(old.trigger, RegexTrigger):
            self.regex_cache.invalidate(old.trigger.patterns, old.trigger.regex_flags)
        if new is None:
            self.cooldowns.clear_rule(old.id)
