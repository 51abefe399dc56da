"""Built-in rule templates, in the same dictionary form rules are created from."""

from __future__ import annotations

import copy
from typing import Any, Dict

from automod.datatypes.rule_datatypes import ONE_DAY_MS, RuleTemplate, TriggerType
from automod.datatypes.action_datatypes import ActionType

RULE_TEMPLATES: Dict[RuleTemplate, Dict[str, Any]] = {
    RuleTemplate.SPAM: {
        "name": "Anti-Spam",
        "trigger": {"type": TriggerType.MESSAGE_RATE.value, "threshold": 5, "time_window": 10_000},
        "actions": [
            {"type": ActionType.DELETE.value},
            {"type": ActionType.WARN.value, "message": "Please avoid spamming."},
        ],
        "conditions": {},
    },
    RuleTemplate.HARASSMENT: {
        "name": "Anti-Harassment",
        "trigger": {"type": TriggerType.KEYWORD_MATCH.value, "keywords": []},
        "actions": [
            {"type": ActionType.DELETE.value},
            {"type": ActionType.WARN.value, "message": "Harassment is not tolerated."},
        ],
        "conditions": {},
    },
    RuleTemplate.INVITE_LINKS: {
        "name": "Block External Invites",
        "trigger": {
            "type": TriggerType.REGEX_MATCH.value,
            "patterns": [r"discord\.gg/\w+", r"discord\.com/invite/\w+"],
        },
        "actions": [{"type": ActionType.DELETE.value}],
        "conditions": {},
    },
    RuleTemplate.EXPLICIT_CONTENT: {
        "name": "Filter Explicit Content",
        "trigger": {"type": TriggerType.KEYWORD_MATCH.value, "keywords": []},
        "actions": [{"type": ActionType.DELETE.value}],
        "conditions": {},
    },
    RuleTemplate.NEW_ACCOUNT: {
        "name": "New Account Protection",
        # Accounts younger than a day match; max_account_age is reported alongside
        "trigger": {
            "type": TriggerType.JOIN_PATTERN.value,
            "min_account_age": ONE_DAY_MS,
            "max_account_age": ONE_DAY_MS,
        },
        "actions": [
            {"type": ActionType.TIMEOUT.value, "duration": "1h"},
            {
                "type": ActionType.DM_USER.value,
                "message": "Your account is too new. You will be able to send messages after 24 hours.",
            },
        ],
        "conditions": {},
    },
}


def resolve_template(template: RuleTemplate | str) -> RuleTemplate | None:
    if isinstance(template, RuleTemplate):
        return template
    try:
        return RuleTemplate(template)
    except ValueError:
        return None


def template_options(template: RuleTemplate | str) -> Dict[str, Any] | None:
    """Return a fresh copy of a template's rule options, or None for unknown names."""
    resolved = resolve_template(template)
    if resolved is None:
        return None
    return copy.deepcopy(RULE_TEMPLATES[resolved])
