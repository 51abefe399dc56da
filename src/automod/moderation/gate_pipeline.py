"""
Gates evaluated before a rule's trigger: cooldown, schedule, exceptions.

The cooldown gate stamps its key whenever it lets an event through, even if
the trigger later fails to match; the rule is cooled down on the
opportunity to fire, not on an actual match.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from automod.datatypes.evaluation_datatypes import EvaluationContext
from automod.datatypes.rule_datatypes import CooldownConfig, Rule, RuleExceptions, ScheduleConfig
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("gate_pipeline")

REASON_COOLDOWN = "Rule in cooldown"
REASON_SCHEDULE = "Rule outside scheduled time"
REASON_EXCEPTION = "Target in exception list"
PRUNE_INTERVAL_MS = 5 * 60 * 1000


class CooldownTracker:
    """
    Last-stamp store for cooldown keys.

    ``try_acquire`` checks and stamps under one lock, so at most one caller
    per key gets through within a cooldown window even when called from
    several threads. Keys whose cooldown has run out are swept from
    ``try_acquire`` at most once per ``prune_interval_ms``.
    """

    def __init__(self, prune_interval_ms: int = PRUNE_INTERVAL_MS) -> None:
        # key -> (stamp, duration)
        self._stamps: Dict[str, Tuple[int, int]] = {}
        self._lock = threading.Lock()
        self._prune_interval_ms = prune_interval_ms
        self._last_prune: int | None = None

    def try_acquire(self, key: str, duration_ms: int, now: int) -> bool:
        """Return False if ``key`` was stamped less than ``duration_ms`` ago; otherwise stamp it."""
        with self._lock:
            if self._last_prune is None or now - self._last_prune >= self._prune_interval_ms:
                self._prune_locked(now, None)
                self._last_prune = now
            entry = self._stamps.get(key)
            if entry is not None and now - entry[0] < duration_ms:
                return False
            self._stamps[key] = (now, duration_ms)
            return True

    def last_stamp(self, key: str) -> int | None:
        with self._lock:
            entry = self._stamps.get(key)
            return entry[0] if entry is not None else None

    def prune(self, now: int, max_age_ms: int | None = None) -> int:
        """Forget expired stamps. Returns the number removed.

        Args:
            now: Current epoch ms.
            max_age_ms: Drop stamps at least this old. When None, each stamp
                expires after the duration it was acquired with.
        """
        with self._lock:
            return self._prune_locked(now, max_age_ms)

    def _prune_locked(self, now: int, max_age_ms: int | None) -> int:
        expired = [
            key for key, (stamp, duration) in self._stamps.items()
            if now - stamp >= (duration if max_age_ms is None else max_age_ms)
        ]
        for key in expired:
            del self._stamps[key]
        return len(expired)

    def clear_rule(self, rule_id: str) -> None:
        prefix = f"{rule_id}:"
        with self._lock:
            for key in [key for key in self._stamps if key.startswith(prefix)]:
                del self._stamps[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._stamps)


def cooldown_key(rule_id: str, cooldown: CooldownConfig, context: EvaluationContext) -> str:
    if cooldown.per_user:
        return f"{rule_id}:{context.user_id}:{context.guild_id}"
    if cooldown.per_guild:
        return f"{rule_id}:{context.guild_id}"
    return f"{rule_id}:{context.user_id}"


def _zone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("[GATES] Unknown schedule timezone %r, using UTC", name)
        return timezone.utc


def is_outside_schedule(schedule: ScheduleConfig, now: int) -> bool:
    """True when an enabled schedule excludes the instant ``now`` (epoch ms)."""
    if not schedule.enabled:
        return False

    if schedule.days_of_week is not None:
        local_now = datetime.fromtimestamp(now / 1000, tz=_zone(schedule.timezone))
        weekday = (local_now.weekday() + 1) % 7  # Sunday = 0
        if weekday not in schedule.days_of_week:
            return True

    if schedule.start_time is not None and now < schedule.start_time:
        return True
    if schedule.end_time is not None and now > schedule.end_time:
        return True
    return False


def is_excepted(exceptions: RuleExceptions, context: EvaluationContext) -> bool:
    if str(context.user_id) in exceptions.users:
        return True
    if context.channel_id is not None and str(context.channel_id) in exceptions.channels:
        return True
    if context.member is not None and exceptions.roles:
        return not context.role_ids.isdisjoint(exceptions.roles)
    return False


class GatePipeline:
    """Runs cooldown, schedule and exception gates in that order."""

    def __init__(self, cooldowns: CooldownTracker, clock: Callable[[], int] = now_ms) -> None:
        self.cooldowns = cooldowns
        self._clock = clock

    def check(self, rule: Rule, context: EvaluationContext) -> str | None:
        """Return the rejection reason of the first failing gate, or None if all pass."""
        now = self._clock()

        if rule.cooldown.enabled:
            key = cooldown_key(rule.id, rule.cooldown, context)
            if not self.cooldowns.try_acquire(key, rule.cooldown.duration, now):
                return REASON_COOLDOWN

        if is_outside_schedule(rule.schedule, now):
            return REASON_SCHEDULE

        if is_excepted(rule.exceptions, context):
            return REASON_EXCEPTION

        return None
