"""
Auto-moderation evaluation pipeline.

- **fuzzy_matcher.py**: sanitising and Levenshtein similarity for keywords.
- **trigger_evaluators.py**: the five trigger strategies and the compiled regex cache.
- **gate_pipeline.py**: cooldown, schedule and exception gates plus ``CooldownTracker``.
- **condition_evaluator.py**: post-trigger filters (account age, warnings, roles).
- **action_executor.py**: enforcement dispatch, escalation and audit emission.
- **rule_engine.py**: orchestrates the above for message, join and spam events.
- **collaborators.py**: protocols for everything the engine depends on.
"""
