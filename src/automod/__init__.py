"""Rule-based auto-moderation engine for Discord guilds."""

__version__ = "0.1.0"
