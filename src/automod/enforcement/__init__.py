"""Discord-backed implementations of the enforcement and notification contracts."""
