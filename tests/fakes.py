"""In-memory collaborators used across the automod tests."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from automod.datatypes.action_datatypes import EnforcementResult
from automod.datatypes.analysis_datatypes import ContentAnalysis
from automod.datatypes.discord_datatypes import GuildID, UserID
from automod.datatypes.evaluation_datatypes import AuditRecord, EvaluationContext

NOW_MS = 1_700_000_000_000
GUILD = "111111111111111111"
OTHER_GUILD = "222222222222222222"
USER = "333333333333333333"
CHANNEL = "444444444444444444"


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeMessage:
    def __init__(self, deletable: bool = True, fail_delete: bool = False) -> None:
        self._deletable = deletable
        self._fail_delete = fail_delete
        self.deleted = False
        self.delete_calls = 0
        self.replies: List[str] = []

    @property
    def deletable(self) -> bool:
        return self._deletable and not self.deleted

    async def delete(self) -> None:
        self.delete_calls += 1
        if self._fail_delete:
            raise RuntimeError("403 Forbidden")
        self.deleted = True

    async def reply(self, content: str) -> None:
        self.replies.append(content)


class FakeBackend:
    """Records every enforcement call; individual methods can be made to refuse."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.refuse: Dict[str, str] = {}
        self.raise_on: Dict[str, Exception] = {}
        self._case = 0

    def _result(self, name: str, **kwargs: Any) -> EnforcementResult:
        self.calls.append((name, kwargs))
        if name in self.raise_on:
            raise self.raise_on[name]
        if name in self.refuse:
            return EnforcementResult(success=False, error=self.refuse[name])
        self._case += 1
        return EnforcementResult(success=True, case_id=str(self._case))

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def warn(self, guild_id: GuildID, target_id: UserID, *, reason: str) -> EnforcementResult:
        return self._result("warn", guild_id=guild_id, target_id=target_id, reason=reason)

    async def mute(self, guild_id, target_id, *, reason, duration=None) -> EnforcementResult:
        return self._result("mute", guild_id=guild_id, target_id=target_id, reason=reason, duration=duration)

    async def kick(self, guild_id, target_id, *, reason) -> EnforcementResult:
        return self._result("kick", guild_id=guild_id, target_id=target_id, reason=reason)

    async def ban(self, guild_id, target_id, *, reason, duration=None) -> EnforcementResult:
        return self._result("ban", guild_id=guild_id, target_id=target_id, reason=reason, duration=duration)

    async def timeout(self, guild_id, target_id, *, reason, duration=None) -> EnforcementResult:
        return self._result("timeout", guild_id=guild_id, target_id=target_id, reason=reason, duration=duration)

    async def add_role(self, guild_id, target_id, role_id, *, reason) -> EnforcementResult:
        return self._result("add_role", guild_id=guild_id, target_id=target_id, role_id=role_id, reason=reason)

    async def remove_role(self, guild_id, target_id, role_id, *, reason) -> EnforcementResult:
        return self._result("remove_role", guild_id=guild_id, target_id=target_id, role_id=role_id, reason=reason)

    async def send_dm(self, guild_id, target_id, message) -> EnforcementResult:
        return self._result("send_dm", guild_id=guild_id, target_id=target_id, message=message)


class FakeHistory:
    def __init__(self, warnings: int = 0) -> None:
        self.warnings = warnings
        self.fail = False
        self.lookups = 0

    async def get_warning_count(self, guild_id: GuildID, user_id: UserID) -> int:
        self.lookups += 1
        if self.fail:
            raise RuntimeError("history unavailable")
        return self.warnings


class FakeJoinCounter:
    def __init__(self, joins: int = 0) -> None:
        self.joins = joins

    async def get_recent_join_count(self, guild_id: GuildID) -> int:
        return self.joins


class FakeAuditSink:
    def __init__(self) -> None:
        self.records: List[AuditRecord] = []
        self.fail = False

    async def record(self, record: AuditRecord) -> None:
        if self.fail:
            raise RuntimeError("sink down")
        self.records.append(record)


class FakeNotifier:
    def __init__(self) -> None:
        self.records: List[AuditRecord] = []

    async def notify(self, record: AuditRecord) -> None:
        self.records.append(record)


class FakeClassifier:
    def __init__(self, analysis: ContentAnalysis | None = None, error: Exception | None = None) -> None:
        self.analysis = analysis
        self.error = error
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def analyze(self, text: str, context: Dict[str, Any]) -> ContentAnalysis:
        self.calls.append((text, context))
        if self.error is not None:
            raise self.error
        return self.analysis


def message_context(content: str, message: FakeMessage | None = None, **overrides: Any) -> EvaluationContext:
    values: Dict[str, Any] = dict(
        guild_id=GuildID(GUILD),
        user_id=UserID(USER),
        message_content=content,
        message=message,
    )
    values.update(overrides)
    return EvaluationContext(**values)


def rule_options(trigger: Dict[str, Any], actions: List[Dict[str, Any]] | None = None, **extra: Any) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "guild_id": GUILD,
        "name": extra.pop("name", "Test rule"),
        "trigger": trigger,
        "actions": actions or [],
    }
    options.update(extra)
    return options
