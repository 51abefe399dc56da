"""
Trigger strategies.

``TriggerEvaluator.evaluate`` dispatches on the rule's trigger variant and
returns a :class:`TriggerResult`; match metadata goes into ``data`` under
snake_case keys (``matched_pattern``, ``matched_keyword``, ``match``, ...).
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Callable, Iterable, Pattern, Tuple, assert_never

from automod.datatypes.evaluation_datatypes import EvaluationContext, TriggerResult
from automod.datatypes.rule_datatypes import (
    JoinPatternTrigger,
    KeywordTrigger,
    MessageContentTrigger,
    MessageRateTrigger,
    RegexTrigger,
    Rule,
)
from automod.moderation.collaborators import JoinVelocityCounter
from automod.moderation.fuzzy_matcher import fuzzy_match, sanitize
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("trigger_evaluators")

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "a": re.ASCII,
}
# Flags that only change iteration state or are already the default in Python
_NO_OP_FLAGS = frozenset("guyd")


def compile_flags(flags: str) -> int:
    """Translate a flag string such as ``"im"`` into ``re`` flag bits."""
    compiled = 0
    for flag in flags:
        if flag in _FLAG_MAP:
            compiled |= _FLAG_MAP[flag]
        elif flag not in _NO_OP_FLAGS:
            logger.warning("[TRIGGERS] Ignoring unsupported regex flag %r", flag)
    return compiled


class RegexCache:
    """
    Compiled-pattern cache keyed by ``(pattern, flags)``.

    Compilation errors propagate as :class:`re.error` and are not cached.
    The least recently used entry is evicted once ``maxsize`` is reached.
    """

    def __init__(self, maxsize: int = 512) -> None:
        self._maxsize = maxsize
        self._patterns: OrderedDict[Tuple[str, str], Pattern[str]] = OrderedDict()

    def get(self, pattern: str, flags: str) -> Pattern[str]:
        key = (pattern, flags)
        compiled = self._patterns.get(key)
        if compiled is not None:
            self._patterns.move_to_end(key)
            return compiled

        compiled = re.compile(pattern, compile_flags(flags))
        self._patterns[key] = compiled
        if len(self._patterns) > self._maxsize:
            self._patterns.popitem(last=False)
        return compiled

    def invalidate(self, patterns: Iterable[str], flags: str) -> int:
        """Drop the given patterns compiled with ``flags``; returns how many were cached."""
        removed = 0
        for pattern in patterns:
            if self._patterns.pop((pattern, flags), None) is not None:
                removed += 1
        return removed

    def clear(self) -> None:
        self._patterns.clear()

    def __len__(self) -> int:
        return len(self._patterns)


class TriggerEvaluator:
    """Evaluates the five trigger strategies against an :class:`EvaluationContext`."""

    def __init__(
        self,
        regex_cache: RegexCache | None = None,
        join_counter: JoinVelocityCounter | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.regex_cache = regex_cache if regex_cache is not None else RegexCache()
        self._join_counter = join_counter
        self._clock = clock

    async def evaluate(self, rule: Rule, context: EvaluationContext) -> TriggerResult:
        trigger = rule.trigger
        match trigger:
            case MessageContentTrigger():
                return self.evaluate_message_content(trigger, context)
            case JoinPatternTrigger():
                return await self.evaluate_join_pattern(trigger, context)
            case MessageRateTrigger():
                return self.evaluate_message_rate(trigger, context)
            case KeywordTrigger():
                return self.evaluate_keyword(trigger, context)
            case RegexTrigger():
                return self.evaluate_regex(rule.id, trigger, context)
            case _:
                assert_never(trigger)

    def evaluate_message_content(
        self, trigger: MessageContentTrigger, context: EvaluationContext
    ) -> TriggerResult:
        if not context.message_content:
            return TriggerResult(False, "No message content")

        content = context.message_content
        if not trigger.case_sensitive:
            content = content.lower()

        for pattern in trigger.patterns:
            needle = pattern if trigger.case_sensitive else pattern.lower()
            if needle and needle in content:
                return TriggerResult(True, data={"matched_pattern": pattern})

        return TriggerResult(False, "No matching pattern")

    async def evaluate_join_pattern(
        self, trigger: JoinPatternTrigger, context: EvaluationContext
    ) -> TriggerResult:
        if not context.join_timestamp:
            return TriggerResult(False, "No join timestamp")

        account_age = self._clock() - context.join_timestamp
        if account_age < trigger.min_account_age:
            return TriggerResult(
                True,
                data={
                    "account_age": account_age,
                    "max_account_age": trigger.max_account_age,
                    "reason": "Account too new",
                },
            )

        if trigger.check_join_velocity:
            if self._join_counter is None:
                logger.debug("[TRIGGERS] Join velocity requested but no join counter is configured")
            else:
                recent_joins = await self._join_counter.get_recent_join_count(context.guild_id)
                if recent_joins >= trigger.join_threshold:
                    return TriggerResult(
                        True,
                        data={"recent_joins": recent_joins, "reason": "High join velocity"},
                    )

        return TriggerResult(False, "Join pattern not matched")

    def evaluate_message_rate(
        self, trigger: MessageRateTrigger, context: EvaluationContext
    ) -> TriggerResult:
        if not context.message_count:
            return TriggerResult(False, "No message count")

        if context.message_count >= trigger.threshold:
            return TriggerResult(
                True,
                data={
                    "message_count": context.message_count,
                    "threshold": trigger.threshold,
                    "time_window": trigger.time_window,
                },
            )
        return TriggerResult(False, "Message rate within limits")

    def evaluate_keyword(self, trigger: KeywordTrigger, context: EvaluationContext) -> TriggerResult:
        if not context.message_content:
            return TriggerResult(False, "No message content")

        content = sanitize(context.message_content)
        for keyword in trigger.keywords:
            if keyword and fuzzy_match(content, keyword, trigger.fuzzy_sensitivity):
                return TriggerResult(True, data={"matched_keyword": keyword})

        return TriggerResult(False, "No keyword match")

    def evaluate_regex(self, rule_id: str, trigger: RegexTrigger, context: EvaluationContext) -> TriggerResult:
        if not context.message_content:
            return TriggerResult(False, "No message content")

        for pattern in trigger.patterns:
            try:
                compiled = self.regex_cache.get(pattern, trigger.regex_flags)
            except re.error as exc:
                logger.error("[TRIGGERS] Invalid regex %r in rule %s: %s", pattern, rule_id, exc)
                continue

            found = compiled.search(context.message_content)
            if found:
                return TriggerResult(True, data={"matched_pattern": pattern, "match": found.group(0)})

        return TriggerResult(False, "No regex match")
