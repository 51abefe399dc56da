import pytest

from automod.datatypes.discord_datatypes import GuildID
from automod.datatypes.rule_datatypes import MessageContentTrigger, Rule, RuleConditions
from automod.moderation.condition_evaluator import ConditionEvaluator

from fakes import GUILD, FakeHistory, ManualClock, message_context


def make_rule(conditions: RuleConditions) -> Rule:
    return Rule(
        id="rule_1",
        guild_id=GuildID(GUILD),
        trigger=MessageContentTrigger(patterns=["x"]),
        conditions=conditions,
    )


@pytest.mark.asyncio
async def test_no_conditions_pass():
    evaluator = ConditionEvaluator(FakeHistory())

    result = await evaluator.evaluate(make_rule(RuleConditions()), message_context("x"))

    assert result.passed


@pytest.mark.asyncio
async def test_min_account_age_rejects_young_account():
    clock = ManualClock()
    evaluator = ConditionEvaluator(FakeHistory(), clock)
    rule = make_rule(RuleConditions(min_account_age=86_400_000))

    result = await evaluator.evaluate(rule, message_context("x", join_timestamp=clock.now - 1000))

    assert not result.passed
    assert result.reason == "Account too new"


@pytest.mark.asyncio
async def test_min_account_age_ignored_without_join_timestamp():
    evaluator = ConditionEvaluator(FakeHistory(), ManualClock())
    rule = make_rule(RuleConditions(min_account_age=86_400_000))

    assert (await evaluator.evaluate(rule, message_context("x"))).passed


@pytest.mark.asyncio
async def test_max_warnings_rejects_at_threshold():
    evaluator = ConditionEvaluator(FakeHistory(warnings=3))

    below = await evaluator.evaluate(make_rule(RuleConditions(max_warnings=4)), message_context("x"))
    at = await evaluator.evaluate(make_rule(RuleConditions(max_warnings=3)), message_context("x"))

    assert below.passed
    assert not at.passed
    assert at.reason == "Warning threshold exceeded"


@pytest.mark.asyncio
async def test_failed_warning_lookup_counts_as_zero():
    history = FakeHistory(warnings=10)
    history.fail = True
    evaluator = ConditionEvaluator(history)

    result = await evaluator.evaluate(make_rule(RuleConditions(max_warnings=1)), message_context("x"))

    assert result.passed
    assert history.lookups == 1


@pytest.mark.asyncio
async def test_required_roles():
    evaluator = ConditionEvaluator(FakeHistory())
    rule = make_rule(RuleConditions(required_roles=["10", "20"]))

    with_role = message_context("x", member=object(), role_ids=frozenset({"20"}))
    without_role = message_context("x", member=object(), role_ids=frozenset({"30"}))
    no_member = message_context("x")

    assert (await evaluator.evaluate(rule, with_role)).passed
    missing = await evaluator.evaluate(rule, without_role)
    assert not missing.passed
    assert missing.reason == "Missing required role"
    assert (await evaluator.evaluate(rule, no_member)).passed
