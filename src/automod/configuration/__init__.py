"""
Configuration management for the auto-moderation engine.

- **app_configuration.py**: fcntl-locked YAML loader for ``config/app_config.yml``
  with typed shortcuts for engine, persistence and notification settings.
- **ai_settings.py**: Typed accessor for the optional AI content classifier.
"""
