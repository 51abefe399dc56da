"""
Tests for rule, trigger and action parsing.
"""

import pytest

from automod.datatypes.action_datatypes import (
    DEFAULT_DM_MESSAGE,
    DEFAULT_MUTE_DURATION,
    DEFAULT_TIMEOUT_DURATION,
    ActionType,
    BanAction,
    DmUserAction,
    MuteAction,
    RoleAddAction,
    TimeoutAction,
    WarnAction,
    action_from_dict,
    action_to_dict,
)
from automod.datatypes.rule_datatypes import (
    ONE_DAY_MS,
    CooldownConfig,
    JoinPatternTrigger,
    KeywordTrigger,
    MessageRateTrigger,
    RegexTrigger,
    Rule,
    ScheduleConfig,
    TriggerType,
    trigger_from_dict,
    trigger_to_dict,
)
from automod.exceptions import RuleConfigurationError

from fakes import GUILD


def rule_data(**overrides):
    data = {"id": "rule_1", "guild_id": GUILD, "trigger": {"type": "keyword_match", "keywords": ["spam"]}}
    data.update(overrides)
    return data


class TestTriggers:
    def test_defaults_fill_missing_fields(self):
        assert trigger_from_dict({"type": "join_pattern"}) == JoinPatternTrigger(
            min_account_age=0, max_account_age=ONE_DAY_MS, check_join_velocity=False, join_threshold=10
        )
        assert trigger_from_dict({"type": "message_rate"}) == MessageRateTrigger(threshold=5, time_window=60_000)
        assert trigger_from_dict({"type": "regex_match", "patterns": ["x"]}).regex_flags == "i"
        assert trigger_from_dict({"type": "keyword_match"}).fuzzy_sensitivity == 0.8

    def test_empty_regex_flags_are_kept(self):
        assert trigger_from_dict({"type": "regex_match", "regex_flags": ""}) == RegexTrigger(regex_flags="")

    @pytest.mark.parametrize("data", [
        {"type": "psychic"},
        {},
        "keyword_match",
        {"type": "keyword_match", "keywords": "spam"},
        {"type": "message_rate", "threshold": "lots"},
    ])
    def test_invalid_trigger(self, data):
        with pytest.raises(RuleConfigurationError):
            trigger_from_dict(data)

    def test_to_dict_carries_type(self):
        payload = trigger_to_dict(KeywordTrigger(keywords=["a"], fuzzy_sensitivity=0.5))

        assert payload == {"type": "keyword_match", "keywords": ["a"], "fuzzy_sensitivity": 0.5}


class TestActions:
    def test_defaults(self):
        assert action_from_dict({"type": "mute"}) == MuteAction(duration=DEFAULT_MUTE_DURATION)
        assert action_from_dict({"type": "timeout"}) == TimeoutAction(duration=DEFAULT_TIMEOUT_DURATION)
        assert action_from_dict({"type": "dm_user"}) == DmUserAction(message=DEFAULT_DM_MESSAGE)
        assert action_from_dict({"type": "ban"}) == BanAction(duration=None)

    def test_role_actions_require_role_id(self):
        with pytest.raises(RuleConfigurationError):
            action_from_dict({"type": "role_add"})
        assert action_from_dict({"type": "role_add", "role_id": 42}) == RoleAddAction(role_id="42")

    def test_unknown_action(self):
        with pytest.raises(RuleConfigurationError):
            action_from_dict({"type": "launch_missiles"})
        with pytest.raises(RuleConfigurationError):
            action_from_dict(["warn"])

    def test_to_dict_omits_unset_warn_message(self):
        assert action_to_dict(WarnAction()) == {"type": "warn"}
        assert action_to_dict(WarnAction(message="hi")) == {"type": "warn", "message": "hi"}
        assert action_to_dict(MuteAction(duration="2h", trigger_warnings=True)) == {
            "type": "mute", "duration": "2h", "trigger_warnings": True,
        }

    def test_action_type_str(self):
        assert str(ActionType.DM_USER) == "dm_user"


class TestRule:
    def test_from_dict_defaults(self):
        rule = Rule.from_dict(rule_data())

        assert rule.guild_id == GUILD
        assert rule.name == "Untitled Rule"
        assert rule.enabled is True
        assert rule.priority == 0
        assert rule.trigger_type is TriggerType.KEYWORD_MATCH
        assert rule.cooldown == CooldownConfig()
        assert rule.schedule == ScheduleConfig()
        assert rule.actions == []

    def test_only_explicit_false_disables(self):
        assert Rule.from_dict(rule_data(enabled=None)).enabled is True
        assert Rule.from_dict(rule_data(enabled=False)).enabled is False

    @pytest.mark.parametrize("missing", ["id", "guild_id", "trigger"])
    def test_missing_required_field(self, missing):
        data = rule_data()
        del data[missing]

        with pytest.raises(RuleConfigurationError):
            Rule.from_dict(data)

    def test_bad_guild_id(self):
        with pytest.raises(RuleConfigurationError):
            Rule.from_dict(rule_data(guild_id="not-a-snowflake"))

    def test_actions_must_be_list(self):
        with pytest.raises(RuleConfigurationError):
            Rule.from_dict(rule_data(actions={"type": "warn"}))

    def test_to_dict_is_accepted_by_from_dict(self):
        rule = Rule.from_dict(rule_data(
            name="Spam",
            priority=4,
            actions=[{"type": "delete"}, {"type": "role_remove", "role_id": "9"}],
            cooldown={"enabled": True, "duration": 5000},
            schedule={"enabled": True, "days_of_week": [1, 2], "timezone": "Europe/Paris"},
            exceptions={"users": ["1"]},
            stats={"triggers": 3, "last_triggered": 10},
        ))

        assert Rule.from_dict(rule.to_dict()) == rule

    def test_has_action(self):
        rule = Rule.from_dict(rule_data(actions=[{"type": "warn"}]))

        assert rule.has_action(WarnAction)
        assert not rule.has_action(BanAction)

    def test_cooldown_defaults_to_per_user(self):
        assert CooldownConfig.from_dict({"enabled": True}).per_user is True

    def test_cooldown_dict_asking_for_per_guild_is_not_per_user(self):
        cooldown = CooldownConfig.from_dict({"enabled": True, "duration": 60_000, "per_guild": True})

        assert cooldown.per_user is False
        assert cooldown.per_guild is True

    def test_missing_cooldown_defaults_to_per_user(self):
        assert CooldownConfig.from_dict(None).per_user is True
        assert Rule.from_dict(rule_data()).cooldown.per_user is True
