"""
In-memory rule store with debounced write-back.

Provides the rule API used by the engine and by management surfaces:
- create/update/delete/get/list_all/toggle: rule CRUD
- instantiate_from_template: build a rule from a built-in template
- export_all/import_all: JSON-compatible bundles
- keyword lists, guild configuration, false/true-positive feedback, statistics

Memory is authoritative. Every mutation marks the store dirty and schedules
a save of the full snapshot through the repository; saves are debounced so a
burst of mutations (or stat updates) produces one write. A crash before the
debounced save runs loses the changes made since the last save.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Set

import jsonschema
from jsonschema import ValidationError

from automod.datatypes.discord_datatypes import GuildID
from automod.datatypes.rule_datatypes import Rule, RuleTemplate, TriggerType, trigger_type_of
from automod.exceptions import RuleConfigurationError, RuleImportError
from automod.moderation.collaborators import RuleRepository
from automod.store.rule_templates import template_options
from automod.util.format_utils import now_ms
from automod.util.logger import get_logger

logger = get_logger("rule_store")

BUNDLE_VERSION = "1.0"
KEYWORD_LISTS = ("whitelist", "blacklist")
FALSE_POSITIVE_WINDOW_MS = 86_400_000
TOP_RULES_LIMIT = 5

# Fields a patch may not overwrite
_IMMUTABLE_FIELDS = frozenset({"id", "guild_id", "created_at", "stats"})

BUNDLE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "version": {"type": "string"},
        "exported_at": {"type": "string"},
        "rules": {
            "type": "array",
            "items": {"type": "object"},
        },
        "keyword_lists": {
            "type": "object",
            "additionalProperties": {"type": "array", "items": {"type": "string"}},
        },
        "guild_configs": {
            "type": "object",
            "additionalProperties": {"type": ["object", "null"]},
        },
    },
    "required": ["rules"],
}

RuleChangeListener = Callable[[Rule | None, Rule | None], None]


@dataclass(slots=True)
class ImportResult:
    imported_count: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


def generate_rule_id(now: int) -> str:
    return f"rule_{now}_{uuid.uuid4().hex[:9]}"


class RuleStore:
    """
    Holds every rule plus the global keyword lists, guild configs and feedback.

    Args:
        repository: Persistence backend; None keeps everything in memory only.
        persist_debounce_seconds: Delay between the first pending change and its save.
        clock: Epoch-millisecond clock.
    """

    def __init__(
        self,
        repository: RuleRepository | None = None,
        persist_debounce_seconds: float = 1.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._repository = repository
        self._debounce = persist_debounce_seconds
        self._clock = clock

        self._rules: Dict[str, Rule] = {}
        self._keyword_lists: Dict[str, List[str]] = {name: [] for name in KEYWORD_LISTS}
        self._guild_configs: Dict[str, Dict[str, Any]] = {}
        self._feedback: List[Dict[str, Any]] = []

        self._listeners: List[RuleChangeListener] = []
        self._dirty = False
        self._persist_lock = asyncio.Lock()
        self._pending_persist: asyncio.Task | None = None
        self._active_persists: Set[asyncio.Task] = set()

    # ========== Lifecycle ==========

    async def initialize(self) -> None:
        """Load the last saved snapshot from the repository."""
        if self._repository is None:
            return
        snapshot = await self._repository.load()
        self.load_snapshot(snapshot or {})
        logger.info("[RULE STORE] Loaded %d rules", len(self._rules))

    def load_snapshot(self, snapshot: Dict[str, Any]) -> None:
        rules: Dict[str, Rule] = {}
        for data in snapshot.get("rules") or []:
            try:
                rule = Rule.from_dict(data)
            except RuleConfigurationError as exc:
                logger.error("[RULE STORE] Skipping stored rule %s: %s", data.get("id") if isinstance(data, dict) else "?", exc)
                continue
            rules[rule.id] = rule
        self._rules = rules

        keyword_lists = snapshot.get("keyword_lists") or {}
        self._keyword_lists = {name: [str(k) for k in keyword_lists.get(name) or []] for name in KEYWORD_LISTS}
        self._guild_configs = {str(k): dict(v or {}) for k, v in (snapshot.get("guild_configs") or {}).items()}
        self._feedback = list(snapshot.get("feedback_data") or [])
        self._dirty = False

    def snapshot(self) -> Dict[str, Any]:
        """Full JSON-compatible state, as handed to the repository."""
        return {
            "rules": [rule.to_dict() for rule in self._rules.values()],
            "keyword_lists": copy.deepcopy(self._keyword_lists),
            "guild_configs": copy.deepcopy(self._guild_configs),
            "feedback_data": copy.deepcopy(self._feedback),
        }

    async def flush(self) -> bool:
        """Save now if anything changed since the last save."""
        return await self._persist_now()

    async def shutdown(self) -> None:
        """Flush pending changes and stop the debounced save."""
        await self.flush()
        if self._pending_persist is not None and not self._pending_persist.done():
            self._pending_persist.cancel()
        await asyncio.gather(*self._active_persists, return_exceptions=True)
        self._active_persists.clear()
        logger.info("[RULE STORE] Shutdown complete")

    def add_change_listener(self, listener: RuleChangeListener) -> None:
        """Register ``listener(old_rule, new_rule)``, called after a rule is updated or deleted."""
        self._listeners.append(listener)

    def mark_dirty(self) -> None:
        """Record that rule stats changed in place and schedule a save."""
        self._schedule_persist()

    # ========== Rule CRUD ==========

    def create(self, options: Dict[str, Any]) -> Rule:
        """Create a rule from JSON-compatible options.

        Args:
            options: Rule fields; ``guild_id`` and ``trigger`` are required.

        Returns:
            The stored rule with a fresh id, zeroed stats and timestamps.

        Raises:
            RuleConfigurationError: If the options do not describe a valid rule.
        """
        now = self._clock()
        data = {key: value for key, value in options.items() if key != "stats"}
        data.update(id=generate_rule_id(now), created_at=now, updated_at=now)

        rule = Rule.from_dict(data)
        self._rules[rule.id] = rule
        logger.info("[RULE STORE] Created rule %s (%s) in guild %s", rule.id, rule.name, rule.guild_id)
        self._schedule_persist()
        return rule

    def update(self, rule_id: str, patch: Dict[str, Any]) -> Rule | None:
        """Apply a partial update; the trigger type cannot change.

        Raises:
            RuleConfigurationError: If the patch changes the trigger type or is invalid.
        """
        current = self._rules.get(rule_id)
        if current is None:
            return None

        data = current.to_dict()
        for key, value in patch.items():
            if key in _IMMUTABLE_FIELDS:
                logger.warning("[RULE STORE] Ignoring immutable field %s in update of %s", key, rule_id)
                continue
            data[key] = value

        if "trigger" in patch:
            trigger = dict(patch["trigger"] or {})
            trigger.setdefault("type", current.trigger_type.value)
            if trigger_type_of(trigger) is not current.trigger_type:
                raise RuleConfigurationError(
                    f"Cannot change trigger type of rule {rule_id} from {current.trigger_type} "
                    f"to {trigger['type']}; delete and recreate the rule instead"
                )
            data["trigger"] = trigger

        data["updated_at"] = self._clock()
        updated = Rule.from_dict(data)
        # Keep the live stats object so in-flight evaluations still count
        updated.stats = current.stats

        self._rules[rule_id] = updated
        self._notify_listeners(current, updated)
        self._schedule_persist()
        return updated

    def delete(self, rule_id: str) -> bool:
        rule = self._rules.pop(rule_id, None)
        if rule is None:
            return False
        logger.info("[RULE STORE] Deleted rule %s", rule_id)
        self._notify_listeners(rule, None)
        self._schedule_persist()
        return True

    def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    def list_all(self, guild_id: GuildID | str | int | None = None) -> List[Rule]:
        """Rules sorted by descending priority, optionally limited to one guild."""
        rules = list(self._rules.values())
        if guild_id is not None:
            rules = [rule for rule in rules if rule.guild_id == GuildID(guild_id)]
        return sorted(rules, key=lambda rule: rule.priority, reverse=True)

    def enabled_rules(self, guild_id: GuildID, trigger_type: TriggerType | None = None) -> List[Rule]:
        """Snapshot of a guild's enabled rules, highest priority first."""
        return [
            rule
            for rule in self.list_all(guild_id)
            if rule.enabled and (trigger_type is None or rule.trigger_type is trigger_type)
        ]

    def toggle(self, rule_id: str, enabled: bool) -> Rule | None:
        rule = self._rules.get(rule_id)
        if rule is None:
            return None
        rule.enabled = bool(enabled)
        rule.updated_at = self._clock()
        logger.info("[RULE STORE] Rule %s %s", rule_id, "enabled" if rule.enabled else "disabled")
        self._schedule_persist()
        return rule

    def instantiate_from_template(
        self,
        template: RuleTemplate | str,
        guild_id: GuildID | str | int,
        overrides: Dict[str, Any] | None = None,
    ) -> Rule | None:
        """Create a rule from a built-in template; overrides win, ``guild_id`` is forced."""
        options = template_options(template)
        if options is None:
            logger.warning("[RULE STORE] Unknown rule template %r", template)
            return None
        options.update(overrides or {})
        options["guild_id"] = str(guild_id)
        return self.create(options)

    # ========== Import / export ==========

    def export_all(self, guild_id: GuildID | str | int | None = None) -> Dict[str, Any]:
        rules = self.list_all(guild_id)
        if guild_id is None:
            guild_configs = copy.deepcopy(self._guild_configs)
        else:
            key = str(GuildID(guild_id))
            guild_configs = {key: copy.deepcopy(self._guild_configs.get(key))}

        return {
            "version": BUNDLE_VERSION,
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "rules": [rule.to_dict() for rule in rules],
            "keyword_lists": copy.deepcopy(self._keyword_lists),
            "guild_configs": guild_configs,
        }

    def import_all(
        self, bundle: Dict[str, Any], guild_id: GuildID | str | int, overwrite: bool = False
    ) -> ImportResult:
        """Import a bundle into ``guild_id``.

        Rules get new ids and fresh stats. With ``overwrite`` the guild's
        existing rules are removed first. Rules that fail to parse are
        reported in ``errors`` and do not stop the import.

        Raises:
            RuleImportError: If the bundle does not have the expected shape.
        """
        try:
            jsonschema.validate(instance=bundle, schema=BUNDLE_SCHEMA)
        except ValidationError as exc:
            raise RuleImportError(f"Invalid rule bundle: {exc.message}") from exc

        target = GuildID(guild_id)
        if overwrite:
            for rule in self.list_all(target):
                self.delete(rule.id)

        result = ImportResult()
        for data in bundle.get("rules") or []:
            options = {k: v for k, v in data.items() if k not in ("id", "stats", "created_at", "updated_at")}
            options["guild_id"] = str(target)
            try:
                self.create(options)
                result.imported_count += 1
            except RuleConfigurationError as exc:
                result.errors.append({"rule": str(data.get("name", "")), "error": str(exc)})

        for name, keywords in (bundle.get("keyword_lists") or {}).items():
            if name in KEYWORD_LISTS:
                self._keyword_lists[name] = list(keywords)

        imported_config = (bundle.get("guild_configs") or {}).get(str(target))
        if imported_config:
            self._guild_configs[str(target)] = dict(imported_config)

        logger.info(
            "[RULE STORE] Imported %d rules into guild %s (%d errors)",
            result.imported_count, target, len(result.errors),
        )
        self._schedule_persist()
        return result

    # ========== Keyword lists ==========

    def _keyword_list(self, name: str) -> List[str]:
        if name not in KEYWORD_LISTS:
            raise ValueError(f"Unknown keyword list {name!r}; expected one of {KEYWORD_LISTS}")
        return self._keyword_lists[name]

    def add_keyword(self, list_name: str, keyword: str) -> bool:
        keywords = self._keyword_list(list_name)
        if keyword in keywords:
            return False
        keywords.append(keyword)
        self._schedule_persist()
        return True

    def remove_keyword(self, list_name: str, keyword: str) -> bool:
        keywords = self._keyword_list(list_name)
        if keyword not in keywords:
            return False
        keywords.remove(keyword)
        self._schedule_persist()
        return True

    def import_keywords(self, list_name: str, keywords: Iterable[str]) -> List[str]:
        """Add each keyword not already present; returns the ones added."""
        return [keyword for keyword in keywords if self.add_keyword(list_name, keyword)]

    def export_keywords(self, list_name: str) -> List[str]:
        return list(self._keyword_list(list_name))

    # ========== Guild configuration ==========

    def configure_guild(self, guild_id: GuildID | str | int, config: Dict[str, Any]) -> Dict[str, Any]:
        key = str(GuildID(guild_id))
        merged = {**self._guild_configs.get(key, {}), **config, "updated_at": self._clock()}
        self._guild_configs[key] = merged
        self._schedule_persist()
        return dict(merged)

    def get_guild_config(self, guild_id: GuildID | str | int) -> Dict[str, Any]:
        return dict(self._guild_configs.get(str(GuildID(guild_id)), {}))

    # ========== Feedback & statistics ==========

    def report_false_positive(self, analysis_id: str, reason: str, rule_id: str | None = None) -> bool:
        """Record a false positive and charge it to a rule.

        The rule is ``rule_id`` when given, otherwise the most recently
        triggered rule if it fired within the last 24 hours.
        """
        now = self._clock()
        self._feedback.append({
            "type": "false_positive",
            "analysis_id": analysis_id,
            "reason": reason,
            "rule_id": rule_id,
            "timestamp": now,
            "reviewed": False,
        })

        if rule_id is not None:
            related = self._rules.get(rule_id)
        else:
            recent = [
                rule for rule in self._rules.values()
                if rule.stats.last_triggered is not None
                and now - rule.stats.last_triggered < FALSE_POSITIVE_WINDOW_MS
            ]
            related = max(recent, key=lambda rule: rule.stats.last_triggered, default=None)

        if related is not None:
            related.stats.false_positives += 1
            logger.info("[RULE STORE] False positive charged to rule %s", related.id)

        self._schedule_persist()
        return True

    def report_true_positive(self, analysis_id: str) -> bool:
        self._feedback.append({
            "type": "true_positive",
            "analysis_id": analysis_id,
            "timestamp": self._clock(),
            "reviewed": False,
        })
        self._schedule_persist()
        return True

    @property
    def feedback(self) -> List[Dict[str, Any]]:
        return list(self._feedback)

    def get_rule_stats(self, guild_id: GuildID | str | int | None = None) -> Dict[str, Any]:
        rules = self.list_all(guild_id)
        top_rules = sorted(rules, key=lambda rule: rule.stats.triggers, reverse=True)[:TOP_RULES_LIMIT]
        return {
            "total_rules": len(rules),
            "enabled_rules": sum(1 for rule in rules if rule.enabled),
            "total_triggers": sum(rule.stats.triggers for rule in rules),
            "total_actions_executed": sum(rule.stats.actions_executed for rule in rules),
            "false_positives": sum(rule.stats.false_positives for rule in rules),
            "top_rules": [
                {
                    "id": rule.id,
                    "name": rule.name,
                    "triggers": rule.stats.triggers,
                    "actions_executed": rule.stats.actions_executed,
                }
                for rule in top_rules
            ],
        }

    # ========== Private Methods ==========

    def _notify_listeners(self, old: Rule | None, new: Rule | None) -> None:
        for listener in self._listeners:
            try:
                listener(old, new)
            except Exception:
                logger.exception("[RULE STORE] Rule change listener failed")

    def _schedule_persist(self) -> None:
        self._dirty = True
        if self._repository is None:
            return
        if self._pending_persist is not None and not self._pending_persist.done():
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("[RULE STORE] Cannot schedule persist: no running event loop")
            return

        task = loop.create_task(self._persist_after_delay())
        self._pending_persist = task
        self._active_persists.add(task)

        def _cleanup(completed: asyncio.Task) -> None:
            self._active_persists.discard(completed)
            if completed.cancelled():
                return
            try:
                if not completed.result():
                    logger.error("[RULE STORE] Failed to persist rule snapshot")
            except Exception:
                logger.exception("[RULE STORE] Error persisting rule snapshot")

        task.add_done_callback(_cleanup)

    async def _persist_after_delay(self) -> bool:
        while True:
            await asyncio.sleep(self._debounce)
            ok = await self._persist_now()
            # Changes made while the save was running need another pass
            if not ok or not self._dirty:
                return ok

    async def _persist_now(self) -> bool:
        if self._repository is None:
            return True
        async with self._persist_lock:
            if not self._dirty:
                return True
            self._dirty = False
            snapshot = self.snapshot()
            try:
                await self._repository.save(snapshot)
            except Exception:
                self._dirty = True
                logger.exception("[RULE STORE] Repository save failed; keeping changes in memory")
                return False
        logger.debug("[RULE STORE] Persisted %d rules", len(snapshot["rules"]))
        return True
