"""
Optional AI content moderation.

- **content_moderator.py**: fingerprint cache, timeout, confidence threshold and
  the responses applied to confident violations.
- **openai_classifier.py**: classifier over any OpenAI-compatible API using
  structured JSON outputs validated with jsonschema.
"""
