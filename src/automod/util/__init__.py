"""
Utility helpers shared across the auto-moderation engine.

- **logger.py**: Centralized logging with colored prompt_toolkit console output
  and one log file per session.
- **format_utils.py**: Clock and human duration helpers.
- **sliding_window.py**: Rolling event counters (message rate, join velocity).
- **discord_utils.py**: Stateless py-cord helpers that turn events into
  evaluation contexts.
"""
