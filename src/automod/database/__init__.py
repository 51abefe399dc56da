"""
SQLite persistence for the auto-moderation engine.

- **db_connection.py**: single long-lived aiosqlite connection with serialised writes.
- **db_schema.py**: table and index creation.
- **moderation.py**: moderation action history (warning counts for conditions and escalation).
- **audit_log.py**: audit sink for rule trigger records.
"""
